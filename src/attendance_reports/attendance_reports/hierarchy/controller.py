from __future__ import annotations

import logging

from flask import Flask, request

from ..common.responses import fail, ok
from ..common.validators import optional_code
from ..core.exceptions import RebuildFailure, RebuildInProgress, ValidationError
from ..container import Container
from .model import HierarchyFilter

logger = logging.getLogger(__name__)


def _triggered_by() -> str:
    data = request.get_json(silent=True) or {}
    return str(data.get("triggered_by") or "api")


def register(app: Flask, container: Container) -> None:
    builder = container.index_builder

    @app.route("/api/index/rebuild", methods=["POST"], endpoint="api_index_rebuild")
    def api_index_rebuild():
        try:
            return ok(builder.full_rebuild(triggered_by=_triggered_by()).as_dict())
        except RebuildInProgress as e:
            return fail(str(e), 409)
        except RebuildFailure as e:
            return fail(str(e), 500)

    @app.route("/api/index/sync", methods=["POST"], endpoint="api_index_sync")
    def api_index_sync():
        try:
            return ok(builder.incremental_sync(triggered_by=_triggered_by()).as_dict())
        except RebuildInProgress as e:
            return fail(str(e), 409)
        except RebuildFailure as e:
            return fail(str(e), 500)

    @app.route("/api/index/employees", methods=["GET"], endpoint="api_index_employees")
    def api_index_employees():
        try:
            flt = HierarchyFilter(
                division_code=optional_code(request.args.get("division_code"), "division_code"),
                section_code=optional_code(request.args.get("section_code"), "section_code"),
                subsection_code=optional_code(request.args.get("subsection_code"), "subsection_code"),
            )
        except ValidationError as e:
            return fail(str(e), 400)

        try:
            selection = container.level_selector.select(flt)
            refs = container.level_selector.resolve(flt)
        except Exception:
            logger.exception("Employee lookup failed")
            return fail("internal error while resolving employees", 500)
        return ok(
            [{"employee_id": r.employee_id, "employee_name": r.employee_name} for r in refs],
            source=selection.level.value if selection.level else "roster",
            count=len(refs),
        )
