"""Example: using the service layer without Flask.

Controllers are a thin layer; reports, caching and the index builder live in services.
"""

import importlib

from config import get_settings_module

from src.attendance_reports.attendance_reports.container import build_container
from src.attendance_reports.attendance_reports.reports.model import ReportFilter


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(
        db_config=settings.DB_CONFIG,
        redis_config=getattr(settings, "REDIS_CONFIG", None),
        cache_config=getattr(settings, "CACHE_CONFIG", None),
    )
    flt = ReportFilter.from_args({"start_date": "2025-01-01", "end_date": "2025-01-31", "division_code": "66"})
    first = container.report_service.report("division", flt)
    second = container.report_service.report("division", flt)
    print(first.tier.value, second.tier.value, container.cache.get_stats()["hit_rate_pct"])
    print(container.dashboard_service.dashboard(flt)["tiers"])
    container.close()


if __name__ == "__main__":
    main()
