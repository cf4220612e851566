from __future__ import annotations

from typing import Any

from flask import jsonify


def ok(data: Any = None, status: int = 200, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def fail(message: str, status: int):
    return jsonify({"success": False, "error": message}), status
