"""
Database Schemas for the Portfolio CMS

Each Pydantic model maps to one MongoDB collection:
- User -> "user"
- Profile -> "profile" (singleton)
- Education -> "education"
- Skill -> "skill"
- Project -> "project"
- Message -> "message"

The *Update models are the allow-list of fields an admin may change.
"""

from datetime import date, datetime, timezone
from typing import Any, ClassVar, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

SkillCategory = Literal["Frontend", "Backend", "Tools", "Languages", "Database", "Other"]
ProjectStatus = Literal["Completed", "In Progress", "Planned"]
ProjectCategory = Literal["Web Application", "Mobile App", "Desktop App", "Game", "API", "Other"]
MessageStatus = Literal["new", "read", "replied"]


def parse_datetime(value: Any) -> Any:
    """Accept ISO-8601 dates or datetimes; empty strings mean "not set"."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("Valid ISO 8601 date is required")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


def split_list(value: Any) -> Any:
    # multipart forms send technologies as "React, Node.js"
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return value


class Document(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class UpdateModel(Document):
    nullable: ClassVar[Set[str]] = set()

    def changes(self) -> Dict[str, Any]:
        """Only the fields the client sent, minus nulls for non-nullable fields."""
        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k in self.nullable}


# Auth
class User(Document):
    email: EmailStr
    passwordHash: str
    role: str = Field(default="admin")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class Credentials(Document):
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


# Profile (singleton)
class SocialLinks(Document):
    github: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    instagram: Optional[str] = None
    website: Optional[str] = None


class Profile(Document):
    name: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    profilePicture: str
    homeImage: str = ""
    aboutImage: str = ""
    welcomeMessage: str = Field(..., max_length=500)
    aboutText: str = Field(..., max_length=2000)
    resumeUrl: str = ""
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    location: Optional[str] = Field(None, max_length=100)
    socialLinks: SocialLinks = Field(default_factory=SocialLinks)
    cvText: Optional[str] = Field(None, max_length=1000)


class ProfileUpdate(UpdateModel):
    # form keys that clear a link when sent empty
    nullable: ClassVar[Set[str]] = {f"socialLinks.{name}" for name in SocialLinks.model_fields}

    name: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = Field(None, min_length=1)
    profilePicture: Optional[str] = None
    homeImage: Optional[str] = None
    aboutImage: Optional[str] = None
    welcomeMessage: Optional[str] = Field(None, max_length=500)
    aboutText: Optional[str] = Field(None, max_length=2000)
    resumeUrl: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    location: Optional[str] = Field(None, max_length=100)
    cvText: Optional[str] = Field(None, max_length=1000)
    socialLinks: Optional[SocialLinks] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower() if v else v

    def changes(self) -> Dict[str, Any]:
        # socialLinks is flattened to dotted keys so siblings are left alone;
        # a link sent as null is cleared
        data = super().changes()
        links = data.pop("socialLinks", None) or {}
        for key, value in links.items():
            data[f"socialLinks.{key}"] = value
        return data


# Education
class Education(Document):
    institution: str = Field(..., min_length=1)
    degree: str = Field(..., min_length=1)
    field: str = Field(..., min_length=1)
    startDate: datetime
    endDate: Optional[datetime] = None  # None = ongoing
    description: Optional[str] = Field(None, max_length=500)
    grade: Optional[str] = None
    location: Optional[str] = None
    sortOrder: int = 0
    isActive: bool = True

    @field_validator("startDate", "endDate", mode="before")
    @classmethod
    def coerce_dates(cls, v):
        return parse_datetime(v)


class EducationUpdate(UpdateModel):
    nullable: ClassVar[Set[str]] = {"endDate"}

    institution: Optional[str] = Field(None, min_length=1)
    degree: Optional[str] = Field(None, min_length=1)
    field: Optional[str] = Field(None, min_length=1)
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    description: Optional[str] = Field(None, max_length=500)
    grade: Optional[str] = None
    location: Optional[str] = None
    sortOrder: Optional[int] = None
    isActive: Optional[bool] = None

    @field_validator("startDate", "endDate", mode="before")
    @classmethod
    def coerce_dates(cls, v):
        return parse_datetime(v)


# Skills
class Skill(Document):
    name: str = Field(..., min_length=1)
    category: SkillCategory = "Other"
    proficiency: int = Field(50, ge=1, le=100)
    icon: Optional[str] = None  # icon name
    iconUrl: Optional[str] = None
    color: str = "#3B82F6"
    description: Optional[str] = Field(None, max_length=200)
    sortOrder: int = 0
    isActive: bool = True


class SkillUpdate(UpdateModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[SkillCategory] = None
    proficiency: Optional[int] = Field(None, ge=1, le=100)
    icon: Optional[str] = None
    iconUrl: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = Field(None, max_length=200)
    sortOrder: Optional[int] = None
    isActive: Optional[bool] = None


# Projects
class Project(Document):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=10)
    longDescription: Optional[str] = Field(None, max_length=1000)
    image: str = Field(..., min_length=1)  # url or /uploads path
    technologies: List[str] = []
    demoUrl: str = ""
    githubUrl: str = ""
    featured: bool = False
    status: ProjectStatus = "Completed"
    category: ProjectCategory = "Web Application"
    startDate: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    endDate: Optional[datetime] = None
    sortOrder: int = 0
    isActive: bool = True

    @field_validator("startDate", mode="before")
    @classmethod
    def coerce_start(cls, v):
        v = parse_datetime(v)
        return datetime.now(timezone.utc) if v is None else v

    @field_validator("endDate", mode="before")
    @classmethod
    def coerce_end(cls, v):
        return parse_datetime(v)

    @field_validator("technologies", mode="before")
    @classmethod
    def coerce_technologies(cls, v):
        return split_list(v)


class ProjectUpdate(UpdateModel):
    nullable: ClassVar[Set[str]] = {"endDate"}

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=10)
    longDescription: Optional[str] = Field(None, max_length=1000)
    image: Optional[str] = Field(None, min_length=1)
    technologies: Optional[List[str]] = None
    demoUrl: Optional[str] = None
    githubUrl: Optional[str] = None
    featured: Optional[bool] = None
    status: Optional[ProjectStatus] = None
    category: Optional[ProjectCategory] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    sortOrder: Optional[int] = None
    isActive: Optional[bool] = None

    @field_validator("startDate", "endDate", mode="before")
    @classmethod
    def coerce_dates(cls, v):
        return parse_datetime(v)

    @field_validator("technologies", mode="before")
    @classmethod
    def coerce_technologies(cls, v):
        return split_list(v)


# Contact messages
class ContactIn(Document):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    subject: Optional[str] = Field(None, max_length=200)
    message: str = Field(..., min_length=10, max_length=5000)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class Message(ContactIn):
    status: MessageStatus = "new"
    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None


class MessageStatusUpdate(Document):
    status: MessageStatus
