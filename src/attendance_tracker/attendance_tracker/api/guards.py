from __future__ import annotations

from functools import wraps
from typing import Iterable

from flask import current_app, g, request

from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from .serializers import snakeize

EXTENSION_KEY = "attendance_tracker"


def get_container():
    return current_app.extensions[EXTENSION_KEY]


def bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[7:].strip()
    return ""


def token_required(view):
    """Resolve the bearer token into ``g.current_user`` or answer 401."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        container = get_container()
        token = bearer_token()
        if not token:
            raise AuthenticationError("Access denied. No token provided.")
        user_id = container.token_service.resolve(token)
        g.current_user = container.auth_service.resolve_user(user_id)
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: Role):
    allowed: Iterable[Role] = tuple(roles)

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = g.get("current_user")
            if user is None:
                raise AuthenticationError("Authentication required.")
            if user.role not in allowed:
                raise AuthorizationError(f"Access denied. Required roles: {', '.join(r.value for r in allowed)}")
            return view(*args, **kwargs)

        return wrapper

    return decorator


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return snakeize(data)


def query_args() -> dict:
    return snakeize(request.args.to_dict())


def client_address() -> str:
    return request.headers.get("X-Forwarded-For", request.remote_addr or "").split(",")[0].strip()
