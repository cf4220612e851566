from __future__ import annotations

from flask import Flask, request

from ..common.responses import fail, ok
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    cache = container.cache

    @app.route("/api/cache/stats", methods=["GET"], endpoint="api_cache_stats")
    def api_cache_stats():
        return ok(cache.get_stats())

    @app.route("/api/cache/health", methods=["GET"], endpoint="api_cache_health")
    def api_cache_health():
        health = cache.health()
        # Degraded still serves reports, so the endpoint answers 200 either way.
        return ok(health)

    @app.route("/api/cache/clear", methods=["POST"], endpoint="api_cache_clear")
    def api_cache_clear():
        return ok(cache.clear())

    @app.route("/api/cache/reset-stats", methods=["POST"], endpoint="api_cache_reset_stats")
    def api_cache_reset_stats():
        cache.reset_stats()
        return ok(cache.get_stats())

    @app.route("/api/cache/invalidate", methods=["POST"], endpoint="api_cache_invalidate")
    def api_cache_invalidate():
        data = request.get_json(silent=True) or {}
        try:
            if data.get("key"):
                return ok(cache.invalidate(str(data["key"])))
            if data.get("prefix"):
                return ok(cache.invalidate_prefix(str(data["prefix"])))
            if data.get("report_type"):
                return ok(container.report_service.invalidate(str(data["report_type"])))
            raise ValidationError("one of key, prefix or report_type is required")
        except ValidationError as e:
            return fail(str(e), 400)
