from .recipes import RecipesRepository
from .posts import PostsRepository

__all__ = [
    "RecipesRepository",
    "PostsRepository",
]
