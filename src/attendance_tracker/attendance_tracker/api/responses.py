from __future__ import annotations

import math
from typing import Any, Optional

from flask import jsonify

from .serializers import camelize


def ok(data: Any = None, message: Optional[str] = None, status: int = 200, **extra):
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = camelize(data)
    body.update(camelize(extra))
    return jsonify(body), status


def fail(message: str, status: int, errors: Optional[list] = None):
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = list(errors)
    return jsonify(body), status


def pagination(total: int, page: int, limit: int) -> dict:
    return {
        "current": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "total": total,
        "limit": limit,
    }
