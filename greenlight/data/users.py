"""User accounts and their repository."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict

from argon2 import PasswordHasher

from .errors import DuplicateEmailError

_hasher = PasswordHasher(time_cost=3, memory_cost=65536, parallelism=1, hash_len=32, salt_len=16)


def hash_password(plaintext: str) -> str:
    """Encode ``plaintext`` as an Argon2id hash string (salt embedded)."""
    return _hasher.hash(plaintext)


@dataclass(slots=True)
class User:
    name: str
    email: str
    password_hash: str = ""
    activated: bool = False
    id: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    def set_password(self, plaintext: str) -> None:
        self.password_hash = hash_password(plaintext)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "name": self.name,
            "email": self.email,
            "activated": self.activated,
        }


class UserModel:
    """Thread-safe in-memory user store; emails are unique ignoring case."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._users: Dict[int, User] = {}
        self._by_email: Dict[str, int] = {}
        self._next_id = 1

    def insert(self, user: User) -> User:
        email_key = user.email.lower()
        with self._lock:
            if email_key in self._by_email:
                raise DuplicateEmailError(f"duplicate email {user.email}")
            user.id = self._next_id
            self._next_id += 1
            user.created_at = datetime.now(timezone.utc)
            user.version = 1
            self._users[user.id] = copy.deepcopy(user)
            self._by_email[email_key] = user.id
        return user
