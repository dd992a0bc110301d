"""FastAPI application exposing user CRUD endpoints behind bearer tokens."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, FastAPI, Response, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .config import Settings, load_settings
from .errors import VALIDATION_FAILED, ErrorPayload, error_response, register_exception_handlers
from .middleware import ExceptionHandlingMiddleware, RequestResponseLoggingMiddleware
from .models import User
from .security import (
    AuthorizationMiddleware,
    BearerTokenBackend,
    current_principal,
    require_authorization,
)
from .store import UserStore
from .tokens import Principal, TokenService
from .validation import validate_name

logger = logging.getLogger("userapi.users")
auth_logger = logging.getLogger("userapi.auth")

USER_NOT_FOUND = "User not found"


class UserInput(BaseModel):
    name: str = Field(..., description="Display name; at least three words")
    status: str = Field(..., description="Ignored on creation, applied on update")


class UserResponse(BaseModel):
    id: int
    name: str
    status: str


class Credentials(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str
    expires_at: datetime
    message: str


def user_to_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, name=user.name, status=user.status)


def _not_found(user_id: int) -> Response:
    return error_response(
        status.HTTP_404_NOT_FOUND,
        USER_NOT_FOUND,
        f"No user found with ID {user_id}",
    )


def _invalid(details: str) -> Response:
    return error_response(status.HTTP_400_BAD_REQUEST, VALIDATION_FAILED, details)


_UNAUTHORIZED = {401: {"model": ErrorPayload, "description": "Missing or invalid bearer token"}}
_NOT_FOUND = {404: {"model": ErrorPayload, "description": "No user with the given ID"}}
_BAD_REQUEST = {400: {"model": ErrorPayload, "description": "Validation failed"}}


def build_auth_router(tokens: TokenService) -> APIRouter:
    router = APIRouter(prefix="/api/auth", tags=["Authentication"])

    @router.post(
        "/login",
        response_model=LoginResponse,
        responses={401: {"model": ErrorPayload, "description": "Invalid credentials"}},
        operation_id="Login",
        summary="Authenticate user and generate JWT token",
        description=(
            "Authenticates a user with username and password and returns a JWT token "
            "for subsequent API requests."
        ),
    )
    async def login(credentials: Credentials):
        if not tokens.authenticate(credentials.username, credentials.password):
            auth_logger.warning("Failed login attempt for %s", credentials.username)
            return error_response(
                status.HTTP_401_UNAUTHORIZED,
                "Authentication failed",
                "Invalid username or password",
            )

        issued = tokens.issue(credentials.username)
        auth_logger.info("Issued token for %s expiring at %s", credentials.username, issued.expires_at)
        return LoginResponse(token=issued.token, expires_at=issued.expires_at, message="Login successful")

    return router


def build_users_router(store: UserStore) -> APIRouter:
    router = APIRouter(prefix="/api/users", tags=["Users"], responses=_UNAUTHORIZED)

    @router.get(
        "",
        response_model=List[UserResponse],
        operation_id="GetAllUsers",
        summary="Get all users",
        description="Retrieves a list of all users in the system. Requires authentication.",
    )
    @require_authorization()
    async def list_users(principal: Principal = Depends(current_principal)):
        return [user_to_response(user) for user in store.list()]

    @router.get(
        "/{user_id}",
        response_model=UserResponse,
        responses=_NOT_FOUND,
        operation_id="GetUserById",
        summary="Get user by ID",
        description="Retrieves a specific user by their ID. Requires authentication.",
    )
    @require_authorization()
    async def get_user(user_id: int, principal: Principal = Depends(current_principal)):
        user = store.get(user_id)
        if user is None:
            return _not_found(user_id)
        return user_to_response(user)

    @router.post(
        "",
        status_code=status.HTTP_201_CREATED,
        response_model=UserResponse,
        responses=_BAD_REQUEST,
        operation_id="CreateUser",
        summary="Create a new user",
        description=(
            "Creates a new user with the provided information. Name must contain at least "
            "3 words. New users are created with 'Inactive' status. Requires authentication."
        ),
    )
    @require_authorization()
    async def create_user(
        payload: UserInput,
        response: Response,
        principal: Principal = Depends(current_principal),
    ):
        problem = validate_name(payload.name)
        if problem is not None:
            return _invalid(problem)

        user = store.add(payload.name)
        logger.info("User %s created user %s", principal.username, user.id)
        response.headers["Location"] = f"/api/users/{user.id}"
        return user_to_response(user)

    @router.put(
        "/{user_id}",
        response_model=UserResponse,
        responses={**_BAD_REQUEST, **_NOT_FOUND},
        operation_id="UpdateUser",
        summary="Update an existing user",
        description=(
            "Updates an existing user's information. Name must contain at least 3 words. "
            "Requires authentication."
        ),
    )
    @require_authorization()
    async def update_user(
        user_id: int,
        payload: UserInput,
        principal: Principal = Depends(current_principal),
    ):
        if store.get(user_id) is None:
            return _not_found(user_id)

        problem = validate_name(payload.name)
        if problem is not None:
            return _invalid(problem)

        user = store.update(user_id, name=payload.name, status=payload.status)
        if user is None:
            return _not_found(user_id)
        logger.info("User %s updated user %s", principal.username, user.id)
        return user_to_response(user)

    @router.delete(
        "/{user_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        responses=_NOT_FOUND,
        operation_id="DeleteUser",
        summary="Delete a user",
        description="Deletes a user from the system. Requires authentication.",
    )
    @require_authorization()
    async def delete_user(user_id: int, principal: Principal = Depends(current_principal)):
        if not store.remove(user_id):
            return _not_found(user_id)
        logger.info("User %s deleted user %s", principal.username, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


def _install_middleware(app: FastAPI, settings: Settings, tokens: TokenService) -> None:
    # add_middleware wraps the current stack, so the last one added runs first:
    # errors -> proxy headers -> https redirect -> authentication -> authorization -> logging
    app.add_middleware(RequestResponseLoggingMiddleware)
    app.add_middleware(AuthorizationMiddleware)
    app.add_middleware(AuthenticationMiddleware, backend=BearerTokenBackend(tokens))
    if settings.https_redirect:
        app.add_middleware(HTTPSRedirectMiddleware)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=list(settings.trusted_proxies))
    app.add_middleware(ExceptionHandlingMiddleware)


def create_app(
    *,
    settings: Settings | None = None,
    store: UserStore | None = None,
    tokens: TokenService | None = None,
) -> FastAPI:
    """Compose the user management application."""

    settings = settings or load_settings()
    store = store if store is not None else UserStore()
    tokens = tokens or TokenService.from_settings(settings)

    if settings.uses_development_secret:
        auth_logger.warning(
            "Signing tokens with the built-in development secret. Set USERAPI_JWT_SECRET"
            " before exposing the service."
        )

    app = FastAPI(
        title="User Management API",
        version="v1",
        description="A RESTful API for managing user records with JWT authentication",
        docs_url="/",
        redoc_url=None,
        swagger_ui_parameters={"persistAuthorization": True},
    )
    app.state.settings = settings
    app.state.store = store
    app.state.tokens = tokens

    register_exception_handlers(app)
    app.include_router(build_auth_router(tokens))
    app.include_router(build_users_router(store))
    _install_middleware(app, settings, tokens)

    return app


__all__ = [
    "Credentials",
    "LoginResponse",
    "UserInput",
    "UserResponse",
    "build_auth_router",
    "build_users_router",
    "create_app",
]
