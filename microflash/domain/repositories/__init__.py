from .card_repository import CardRepository
from .sprint_repository import SprintRepository
from .user_repository import UserRepository

__all__ = ["CardRepository", "SprintRepository", "UserRepository"]
