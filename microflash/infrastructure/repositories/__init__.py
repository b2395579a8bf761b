from .sqlalchemy_card_repository import SqlAlchemyCardRepository
from .sqlalchemy_sprint_repository import SqlAlchemySprintRepository
from .sqlalchemy_user_repository import SqlAlchemyUserRepository

__all__ = [
    "SqlAlchemyCardRepository",
    "SqlAlchemySprintRepository",
    "SqlAlchemyUserRepository",
]
