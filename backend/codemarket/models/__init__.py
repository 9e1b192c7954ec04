"""Database models for CodeMarket API."""
from codemarket.models.user import User
from codemarket.models.project import Project
from codemarket.models.license import License
from codemarket.models.review import Review

__all__ = [
    "User",
    "Project",
    "License",
    "Review",
]
