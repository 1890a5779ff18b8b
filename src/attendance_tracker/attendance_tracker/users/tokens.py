from __future__ import annotations

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..core.exceptions import AuthenticationError


class TokenService:
    """Issues and resolves stateless bearer tokens carrying a user id.

    Tokens are signed with the application secret and expire after ``ttl_seconds``.
    Logout is client-side: a token stays valid until it expires.
    """

    def __init__(self, secret_key: str, *, ttl_seconds: int, salt: str = "attendance-tracker.auth"):
        self._serializer = URLSafeTimedSerializer(secret_key, salt=salt)
        self._ttl_seconds = int(ttl_seconds)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, user_id: int) -> str:
        return self._serializer.dumps({"uid": int(user_id)})

    def resolve(self, token: str) -> int:
        if not token:
            raise AuthenticationError("Access denied. No token provided.")
        try:
            payload = self._serializer.loads(token, max_age=self._ttl_seconds)
        except SignatureExpired:
            raise AuthenticationError("Token has expired.")
        except BadSignature:
            raise AuthenticationError("Invalid token.")
        if not isinstance(payload, dict) or not isinstance(payload.get("uid"), int):
            raise AuthenticationError("Invalid token.")
        return payload["uid"]
