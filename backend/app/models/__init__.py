from .course import Course
from .player import Player
from .round import Round

__all__ = [
    "Player",
    "Course",
    "Round",
]
