"""ORM models package - exports all models and Base."""

from edutrack.database import Base
from edutrack.models.user import User
from edutrack.models.classroom import Classroom
from edutrack.models.media import Media
from edutrack.models.assignment import Assignment
from edutrack.models.practice import PracticeSession

__all__ = [
    "Base",
    "User",
    "Classroom",
    "Media",
    "Assignment",
    "PracticeSession",
]
