"""Graph repositories, one per entity label."""

from .articles import ArticleRepository
from .base import GraphRepository
from .categories import CategoryRepository
from .tickets import TicketRepository
from .users import UserRepository

__all__ = [
    'GraphRepository',
    'TicketRepository',
    'UserRepository',
    'CategoryRepository',
    'ArticleRepository',
]
