"""In-memory repositories for the movie catalog and user accounts."""

from __future__ import annotations

from .errors import DataError, DuplicateEmailError, EditConflictError, RecordNotFoundError
from .movies import Movie, MovieFilters, MovieModel
from .users import User, UserModel

__all__ = [
    "DataError",
    "DuplicateEmailError",
    "EditConflictError",
    "RecordNotFoundError",
    "Movie",
    "MovieFilters",
    "MovieModel",
    "User",
    "UserModel",
    "Models",
]


class Models:
    """Bundle of repositories handed to the route handlers."""

    def __init__(self, movies: MovieModel | None = None, users: UserModel | None = None) -> None:
        self.movies = movies or MovieModel()
        self.users = users or UserModel()
