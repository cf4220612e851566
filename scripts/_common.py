"""Shared bootstrapping for the operational scripts."""
from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.attendance_reports.attendance_reports.container import Container, build_container


def load_container() -> Container:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(
        level=logging.DEBUG if getattr(settings, "DEBUG", False) else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return build_container(
        db_config=dict(settings.DB_CONFIG),
        redis_config=getattr(settings, "REDIS_CONFIG", None),
        cache_config=getattr(settings, "CACHE_CONFIG", None),
        aggregation_policy=getattr(settings, "AGGREGATION_POLICY", None),
    )
