"""HTTP route handlers for the movie catalog and user registration."""

from __future__ import annotations

import asyncio
import functools
import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from greenlight import __version__
from greenlight.data import (
    DuplicateEmailError,
    EditConflictError,
    Movie,
    MovieFilters,
    RecordNotFoundError,
    User,
)
from greenlight.helpers import (
    BadRequest,
    bad_request_response,
    edit_conflict_response,
    envelope,
    failed_validation_response,
    not_found_response,
    read_id_param,
    read_json,
)
from greenlight.validators import parse_runtime, split_csv, validate_movie, validate_user

logger = logging.getLogger(__name__)

router = APIRouter()

MOVIE_FIELDS = ("title", "year", "runtime", "genres")
USER_FIELDS = ("name", "email", "password")


@router.get("/v1/healthcheck")
async def healthcheck(request: Request) -> JSONResponse:
    config = request.app.state.config
    return envelope(
        200,
        {
            "status": "available",
            "system_info": {"environment": config.env, "version": __version__},
        },
    )


@router.get("/v1/movies")
async def list_movies(request: Request, title: str = "", genres: str = "") -> JSONResponse:
    filters = MovieFilters(title=title, genres=split_csv(genres))
    movies = request.app.state.models.movies.get_all(filters)
    return envelope(200, {"movies": [m.to_dict() for m in movies]})


@router.post("/v1/movies")
async def create_movie(request: Request) -> JSONResponse:
    try:
        data = await read_json(request, MOVIE_FIELDS)
    except BadRequest as exc:
        return bad_request_response(exc)

    runtime = parse_runtime(data.get("runtime")) if "runtime" in data else None
    if "runtime" in data and runtime is None:
        return bad_request_response(BadRequest("invalid runtime format"))
    errors = validate_movie(data.get("title"), data.get("year"), runtime, data.get("genres"))
    if errors:
        return failed_validation_response(errors)

    movie = request.app.state.models.movies.insert(
        Movie(title=data["title"], year=data["year"], runtime=runtime, genres=list(data["genres"]))
    )
    return envelope(201, {"movie": movie.to_dict()}, headers={"Location": f"/v1/movies/{movie.id}"})


@router.get("/v1/movies/{id}")
async def show_movie(request: Request) -> JSONResponse:
    movie_id = read_id_param(request)
    if movie_id is None:
        return not_found_response()
    try:
        movie = request.app.state.models.movies.get(movie_id)
    except RecordNotFoundError:
        return not_found_response()
    return envelope(200, {"movie": movie.to_dict()})


@router.patch("/v1/movies/{id}")
async def update_movie(request: Request) -> JSONResponse:
    movie_id = read_id_param(request)
    if movie_id is None:
        return not_found_response()
    movies = request.app.state.models.movies
    try:
        movie = movies.get(movie_id)
    except RecordNotFoundError:
        return not_found_response()

    expected = request.headers.get("X-Expected-Version")
    if expected and expected != str(movie.version):
        return edit_conflict_response()

    try:
        data = await read_json(request, MOVIE_FIELDS)
    except BadRequest as exc:
        return bad_request_response(exc)

    if data.get("title") is not None:
        movie.title = data["title"]
    if data.get("year") is not None:
        movie.year = data["year"]
    if data.get("runtime") is not None:
        runtime = parse_runtime(data["runtime"])
        if runtime is None:
            return bad_request_response(BadRequest("invalid runtime format"))
        movie.runtime = runtime
    if data.get("genres") is not None:
        movie.genres = data["genres"]

    errors = validate_movie(movie.title, movie.year, movie.runtime, movie.genres)
    if errors:
        return failed_validation_response(errors)

    try:
        movie = movies.update(movie)
    except EditConflictError:
        return edit_conflict_response()
    return envelope(200, {"movie": movie.to_dict()})


@router.delete("/v1/movies/{id}")
async def delete_movie(request: Request) -> JSONResponse:
    movie_id = read_id_param(request)
    if movie_id is None:
        return not_found_response()
    try:
        request.app.state.models.movies.delete(movie_id)
    except RecordNotFoundError:
        return not_found_response()
    return envelope(200, {"message": "movie successfully deleted"})


@router.post("/v1/users")
async def register_user(request: Request) -> JSONResponse:
    try:
        data = await read_json(request, USER_FIELDS)
    except BadRequest as exc:
        return bad_request_response(exc)

    errors = validate_user(data.get("name"), data.get("email"), data.get("password"))
    if errors:
        return failed_validation_response(errors)

    user = User(name=data["name"], email=data["email"])
    await asyncio.to_thread(user.set_password, data["password"])
    try:
        user = request.app.state.models.users.insert(user)
    except DuplicateEmailError:
        return failed_validation_response({"email": "a user with this email address already exists"})

    mailer = request.app.state.mailer
    request.app.state.tasks.run(
        functools.partial(mailer.send, user.email, "user_welcome", {"name": user.name, "id": user.id}),
        name=f"user_welcome_email:{user.id}",
    )
    return envelope(202, {"user": user.to_dict()})


@router.get("/debug/vars")
async def debug_vars(request: Request) -> JSONResponse:
    """Return in-process metrics snapshot."""
    state = request.app.state
    payload = state.metrics.snapshot()
    payload.update(
        {
            "version": __version__,
            "timestamp": int(time.time()),
            "asyncio_tasks": len(asyncio.all_tasks()),
            "rate_limiter_buckets": len(state.limiter),
            "background_tasks_outstanding": state.tasks.outstanding,
        }
    )
    return envelope(200, payload)
