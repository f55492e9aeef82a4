"""
Collection access for the portfolio content.

Each repository wraps one MongoDB collection. Documents come back as plain
dicts with `_id` already converted to a string.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from database import create_document, get_db, get_documents, now, serialize
from errors import NotFoundError, ServerError
from schemas import Profile

logger = logging.getLogger(__name__)

ACTIVE = {"isActive": True}

PROFILE_TEMPLATE = {
    "name": "Your Name",
    "title": "Full Stack Developer",
    "profilePicture": "/default-profile.jpg",
    "homeImage": "",
    "aboutImage": "",
    "welcomeMessage": "Welcome to my portfolio! I am a passionate developer...",
    "aboutText": "I am a passionate full-stack developer...",
    "resumeUrl": "",
    "email": "hello@portfolio.dev",
    "phone": "",
    "location": "Your Location",
    "socialLinks": {},
    "cvText": "",
}


def object_id(value: str, label: str = "Resource") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{label} not found")


class Repository:
    def __init__(self, collection: str, label: str, sort: Sequence[Tuple[str, int]]):
        self.collection = collection
        self.label = label
        self.sort = list(sort)

    @property
    def coll(self):
        return get_db()[self.collection]

    def list(
        self,
        filter_dict: Optional[dict] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[dict]:
        docs = get_documents(self.collection, filter_dict, sort or self.sort, skip, limit)
        return [serialize(d) for d in docs]

    def count(self, filter_dict: Optional[dict] = None) -> int:
        return self.coll.count_documents(filter_dict or {})

    def get(self, doc_id: str, filter_dict: Optional[dict] = None) -> dict:
        coll = self.coll
        query = {"_id": object_id(doc_id, self.label)}
        query.update(filter_dict or {})
        doc = coll.find_one(query)
        if doc is None:
            raise NotFoundError(f"{self.label} not found")
        return serialize(doc)

    def create(self, data: BaseModel) -> dict:
        return serialize(create_document(self.collection, data))

    def update(self, doc_id: str, fields: Dict[str, Any]) -> dict:
        coll = self.coll
        changes = dict(fields)
        changes["updatedAt"] = now()
        doc = coll.find_one_and_update(
            {"_id": object_id(doc_id, self.label)},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFoundError(f"{self.label} not found")
        return serialize(doc)

    def delete(self, doc_id: str) -> bool:
        coll = self.coll
        res = coll.delete_one({"_id": object_id(doc_id, self.label)})
        return res.deleted_count > 0


class ProjectRepository(Repository):
    def toggle_featured(self, doc_id: str) -> dict:
        current = self.get(doc_id)
        return self.update(doc_id, {"featured": not current.get("featured", False)})


class MessageRepository(Repository):
    def paginate(self, status: Optional[str] = None, page: int = 1, limit: int = 10) -> Tuple[List[dict], int, int]:
        query = {"status": status} if status else {}
        items = self.list(query, skip=(page - 1) * limit, limit=limit)
        total = self.count(query)
        return items, total, math.ceil(total / limit) if limit else 0

    def mark_read(self, doc_id: str) -> dict:
        message = self.get(doc_id)
        if message.get("status") == "new":
            message = self.update(doc_id, {"status": "read"})
        return message


class ProfileRepository:
    """The profile is a singleton: the oldest document is the canonical one."""

    collection = "profile"
    order = [("createdAt", ASCENDING), ("_id", ASCENDING)]

    @property
    def coll(self):
        return get_db()[self.collection]

    def get_or_create(self) -> dict:
        doc = self.coll.find_one({}, sort=self.order)
        if doc is None:
            stamp = now()
            defaults = Profile.model_validate(PROFILE_TEMPLATE).model_dump(exclude_none=True)
            defaults.update(createdAt=stamp, updatedAt=stamp)
            # upsert so two concurrent first reads still converge on one document
            doc = self.coll.find_one_and_update(
                {},
                {"$setOnInsert": defaults},
                upsert=True,
                sort=self.order,
                return_document=ReturnDocument.AFTER,
            )
            logger.info("Created default profile %s", doc["_id"])
        return serialize(doc)

    def update(self, fields: Dict[str, Any]) -> dict:
        current = self.get_or_create()
        changes = dict(fields)
        changes["updatedAt"] = now()
        doc = self.coll.find_one_and_update(
            {"_id": ObjectId(current["_id"])},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            # removed between the lookup and the write
            raise ServerError("Profile could not be saved")
        return serialize(doc)


class UserRepository:
    collection = "user"

    @property
    def coll(self):
        return get_db()[self.collection]

    def find_by_email(self, email: str) -> Optional[dict]:
        return self.coll.find_one({"email": email.lower()})

    def find_by_id(self, user_id: str) -> Optional[dict]:
        try:
            oid = ObjectId(user_id)
        except (InvalidId, TypeError):
            return None
        return self.coll.find_one({"_id": oid})

    def admin_exists(self) -> bool:
        return self.coll.find_one({"role": "admin"}) is not None

    def create(self, user: BaseModel) -> dict:
        return create_document(self.collection, user)


education = Repository("education", "Education entry", [("sortOrder", ASCENDING), ("startDate", DESCENDING)])
skills = Repository("skill", "Skill", [("sortOrder", ASCENDING), ("name", ASCENDING)])
projects = ProjectRepository("project", "Project", [("sortOrder", ASCENDING), ("createdAt", DESCENDING)])
messages = MessageRepository("message", "Message", [("createdAt", DESCENDING)])
profile = ProfileRepository()
users = UserRepository()
