from __future__ import annotations

import logging

from flask import Flask, request

from ..common.responses import fail, ok
from ..core.exceptions import AggregateSubQueryFailure, ValidationError
from ..container import Container
from .model import ReportFilter

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route("/api/reports/dashboard", methods=["GET"], endpoint="api_reports_dashboard")
    def api_reports_dashboard():
        try:
            flt = ReportFilter.from_args(request.args)
            return ok(container.dashboard_service.dashboard(flt))
        except ValidationError as e:
            return fail(str(e), 400)
        except AggregateSubQueryFailure as e:
            return fail(str(e), 502)
        except Exception:
            logger.exception("Dashboard failed")
            return fail("internal error while building dashboard", 500)

    @app.route("/api/reports/<report_type>", methods=["GET"], endpoint="api_reports_single")
    def api_reports_single(report_type: str):
        try:
            flt = ReportFilter.from_args(request.args)
            result = container.report_service.report(report_type, flt)
            return ok(result.data, served_from=result.tier.value, cache_key=result.key)
        except ValidationError as e:
            return fail(str(e), 400)
        except Exception:
            logger.exception("Report %s failed", report_type)
            return fail("internal error while building report", 500)
