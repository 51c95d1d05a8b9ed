"""Movie records and their repository."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional

from .errors import EditConflictError, RecordNotFoundError


@dataclass(slots=True)
class Movie:
    title: str
    year: int = 0
    runtime: int = 0
    genres: List[str] = field(default_factory=list)
    id: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape; zero year/runtime and empty genres are omitted."""
        payload: Dict[str, Any] = {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "title": self.title,
        }
        if self.year:
            payload["year"] = self.year
        if self.runtime:
            payload["runtime"] = f"{self.runtime} mins"
        if self.genres:
            payload["genres"] = list(self.genres)
        payload["version"] = self.version
        return payload


@dataclass(slots=True)
class MovieFilters:
    title: str = ""
    genres: List[str] = field(default_factory=list)

    def matches(self, movie: Movie) -> bool:
        if self.title and self.title.lower() not in movie.title.lower():
            return False
        wanted = {g.lower() for g in self.genres}
        have = {g.lower() for g in movie.genres}
        return wanted <= have


class MovieModel:
    """Thread-safe in-memory movie store keyed by id."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._movies: Dict[int, Movie] = {}
        self._next_id = 1

    def insert(self, movie: Movie) -> Movie:
        with self._lock:
            movie.id = self._next_id
            self._next_id += 1
            movie.created_at = datetime.now(timezone.utc)
            movie.version = 1
            self._movies[movie.id] = copy.deepcopy(movie)
        return movie

    def get(self, movie_id: int) -> Movie:
        with self._lock:
            stored = self._movies.get(movie_id)
            if stored is None:
                raise RecordNotFoundError(f"movie {movie_id} not found")
            return copy.deepcopy(stored)

    def get_all(self, filters: Optional[MovieFilters] = None) -> List[Movie]:
        filters = filters or MovieFilters()
        with self._lock:
            return [copy.deepcopy(m) for m in sorted(self._movies.values(), key=lambda m: m.id) if filters.matches(m)]

    def update(self, movie: Movie) -> Movie:
        """Persist ``movie`` if its version is still current, then bump the version."""
        with self._lock:
            stored = self._movies.get(movie.id)
            if stored is None or stored.version != movie.version:
                raise EditConflictError(f"movie {movie.id} was modified concurrently")
            movie.version += 1
            self._movies[movie.id] = copy.deepcopy(movie)
        return movie

    def delete(self, movie_id: int) -> None:
        with self._lock:
            if self._movies.pop(movie_id, None) is None:
                raise RecordNotFoundError(f"movie {movie_id} not found")
