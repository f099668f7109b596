from .denial import MentorDenial
from .rating import SessionRating
from .session import Session
from .skill_popularity import SkillPopularity
from .user_profile import UserProfile

__all__ = [
    'MentorDenial',
    'Session',
    'SessionRating',
    'SkillPopularity',
    'UserProfile',
]
