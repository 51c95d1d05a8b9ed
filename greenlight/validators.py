"""Input validation for movie and user payloads."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Loose RFC 5322 shape check; deliverability is the mailer's problem.
EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$")

MAX_TEXT_BYTES = 500
FIRST_FILM_YEAR = 1888
MAX_GENRES = 5
PASSWORD_MIN_BYTES = 8
PASSWORD_MAX_BYTES = 72


def parse_id(raw: Optional[str]) -> Optional[int]:
    """Parse a positive integer id, returning None for anything else."""
    if raw is None or not (raw.isascii() and raw.isdigit()):
        return None
    value = int(raw)
    return value if value >= 1 else None


def parse_runtime(value: Any) -> Optional[int]:
    """Accept ``102`` or ``"102 mins"``; None when unparseable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        parts = value.strip().split(" ")
        if len(parts) == 2 and parts[1] == "mins":
            try:
                return int(parts[0])
            except ValueError:
                return None
    return None


def validate_movie(title: Any, year: Any, runtime: Any, genres: Any) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not isinstance(title, str) or not title:
        errors["title"] = "must be provided"
    elif len(title.encode("utf-8")) > MAX_TEXT_BYTES:
        errors["title"] = "must not be more than 500 bytes long"

    current_year = datetime.now(timezone.utc).year
    if not isinstance(year, int) or isinstance(year, bool) or year == 0:
        errors["year"] = "must be provided"
    elif year < FIRST_FILM_YEAR:
        errors["year"] = "must be greater than 1888"
    elif year > current_year:
        errors["year"] = "must not be in the future"

    if runtime is None or runtime == 0:
        errors["runtime"] = "must be provided"
    elif not isinstance(runtime, int) or runtime < 0:
        errors["runtime"] = "must be a positive integer"

    if not isinstance(genres, list):
        errors["genres"] = "must be provided"
    elif len(genres) < 1:
        errors["genres"] = "must contain at least 1 genre"
    elif len(genres) > MAX_GENRES:
        errors["genres"] = "must not contain more than 5 genres"
    elif not all(isinstance(g, str) and g for g in genres):
        errors["genres"] = "must contain only non-empty strings"
    elif len(set(genres)) != len(genres):
        errors["genres"] = "must not contain duplicate values"

    return errors


def validate_email(email: Any, errors: Dict[str, str]) -> None:
    if not isinstance(email, str) or not email:
        errors["email"] = "must be provided"
    elif not EMAIL_REGEX.fullmatch(email):
        errors["email"] = "must be a valid email address"


def validate_password(password: Any, errors: Dict[str, str]) -> None:
    if not isinstance(password, str) or not password:
        errors["password"] = "must be provided"
        return
    length = len(password.encode("utf-8"))
    if length < PASSWORD_MIN_BYTES:
        errors["password"] = "must be at least 8 bytes long"
    elif length > PASSWORD_MAX_BYTES:
        errors["password"] = "must not be more than 72 bytes long"


def validate_user(name: Any, email: Any, password: Any) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not isinstance(name, str) or not name:
        errors["name"] = "must be provided"
    elif len(name.encode("utf-8")) > MAX_TEXT_BYTES:
        errors["name"] = "must not be more than 500 bytes long"
    validate_email(email, errors)
    validate_password(password, errors)
    return errors


def split_csv(raw: Optional[str]) -> List[str]:
    """Split a comma separated query value, dropping blanks."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]
