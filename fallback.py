"""
Default content served by the public endpoints while the database is down.
"""

import copy
import logging
from typing import Callable, TypeVar

from pymongo.errors import PyMongoError

from config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PROFILE = {
    "_id": "default",
    "name": "Your Name",
    "title": "Full Stack Developer",
    "profilePicture": "/default-profile.jpg",
    "homeImage": "",
    "aboutImage": "",
    "welcomeMessage": "Welcome to my portfolio! I am a passionate developer with expertise in modern web technologies.",
    "aboutText": (
        "I am a passionate full-stack developer with expertise in modern web technologies. "
        "I love creating innovative solutions and bringing ideas to life through clean, efficient code. "
        "With a strong foundation in both frontend and backend development, I specialize in building "
        "scalable web applications."
    ),
    "resumeUrl": "",
    "email": "your-email@example.com",
    "phone": "+1 (234) 567-890",
    "location": "Your Location",
    "socialLinks": {
        "github": "https://github.com/yourusername",
        "linkedin": "https://linkedin.com/in/yourusername",
        "twitter": "https://twitter.com/yourusername",
    },
    "cvText": (
        "With a strong foundation in both frontend and backend development, I specialize in building "
        "scalable web applications using technologies like React, Python, and MongoDB."
    ),
}

DEFAULT_EDUCATION = [
    {
        "_id": "default1",
        "institution": "University of Technology",
        "degree": "Bachelor of Science",
        "field": "Computer Science",
        "startDate": "2020-09-01",
        "endDate": "2024-06-01",
        "description": "Focused on software engineering, algorithms, and web development.",
        "grade": "3.8/4.0",
        "location": "New York, NY",
        "sortOrder": 1,
        "isActive": True,
    },
]

DEFAULT_SKILLS = [
    {"_id": "1", "name": "React", "category": "Frontend", "proficiency": 90, "color": "#61DAFB", "sortOrder": 1, "isActive": True},
    {"_id": "2", "name": "JavaScript", "category": "Languages", "proficiency": 95, "color": "#F7DF1E", "sortOrder": 2, "isActive": True},
    {"_id": "3", "name": "Python", "category": "Languages", "proficiency": 85, "color": "#3776AB", "sortOrder": 3, "isActive": True},
    {"_id": "4", "name": "MongoDB", "category": "Database", "proficiency": 80, "color": "#47A248", "sortOrder": 4, "isActive": True},
    {"_id": "5", "name": "TypeScript", "category": "Languages", "proficiency": 88, "color": "#3178C6", "sortOrder": 5, "isActive": True},
    {"_id": "6", "name": "FastAPI", "category": "Backend", "proficiency": 85, "color": "#009688", "sortOrder": 6, "isActive": True},
]

DEFAULT_PROJECTS = [
    {
        "_id": "1",
        "title": "E-Commerce Platform",
        "description": (
            "A full-stack e-commerce application built with React, FastAPI, and MongoDB. Features include "
            "user authentication, product management, shopping cart, and payment integration."
        ),
        "image": "https://via.placeholder.com/400x300/4F46E5/FFFFFF?text=E-Commerce+App",
        "technologies": ["React", "FastAPI", "MongoDB", "Stripe"],
        "demoUrl": "https://demo.example.com",
        "githubUrl": "https://github.com/username/ecommerce",
        "featured": True,
        "status": "Completed",
        "category": "Web Application",
        "sortOrder": 1,
        "isActive": True,
    },
    {
        "_id": "2",
        "title": "Task Management App",
        "description": (
            "A collaborative task management application with real-time updates, drag-and-drop "
            "functionality, and team collaboration features."
        ),
        "image": "https://via.placeholder.com/400x300/10B981/FFFFFF?text=Task+Manager",
        "technologies": ["React", "WebSockets", "FastAPI", "PostgreSQL"],
        "demoUrl": "https://tasks.example.com",
        "githubUrl": "https://github.com/username/taskmanager",
        "featured": True,
        "status": "Completed",
        "category": "Web Application",
        "sortOrder": 2,
        "isActive": True,
    },
    {
        "_id": "3",
        "title": "Weather Dashboard",
        "description": (
            "A responsive weather dashboard that displays current weather conditions and forecasts "
            "for multiple cities with interactive maps."
        ),
        "image": "https://via.placeholder.com/400x300/F59E0B/FFFFFF?text=Weather+App",
        "technologies": ["React", "TypeScript", "Chart.js", "OpenWeather API"],
        "demoUrl": "https://weather.example.com",
        "githubUrl": "https://github.com/username/weather",
        "featured": False,
        "status": "Completed",
        "category": "Web Application",
        "sortOrder": 3,
        "isActive": True,
    },
]


def public_read(fetch: Callable[[], T], default: T, what: str) -> T:
    """Run `fetch`; when the database fails and fallback is enabled, return a copy of `default`."""
    try:
        return fetch()
    except PyMongoError as exc:
        if not settings.public_fallback:
            raise
        logger.warning("Serving default %s, database unavailable: %s", what, exc)
        return copy.deepcopy(default)
