"""
autoexport_config -- single public entrypoint for ledger settings.

Responsibility:
    ``get_active_settings()`` is the ONLY way runtime code obtains
    settings.  It loads the packaged ``sets/default.yaml`` (or an explicit
    path) and applies the one sanctioned environment override,
    ``AUTOEXPORT_DATABASE_URL``.

Architecture position:
    Configuration -- sits beside the kernel and below autoexport_services.
    The kernel and the engines MUST NEVER import from this package.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` / ``KeyError`` -- structural validation failures.

Audit relevance:
    Every call emits an ``AUTOEXPORT_CONFIG_TRACE`` log record with the
    settings name, version and checksum.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from autoexport_config.loader import load_settings
from autoexport_config.schema import LedgerSettings
from autoexport_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"

DATABASE_URL_ENV = "AUTOEXPORT_DATABASE_URL"


def get_active_settings(config_path: Path | str | None = None) -> LedgerSettings:
    """
    The ONLY public settings entrypoint.

    Args:
        config_path: Settings file; defaults to the packaged default set.

    Returns:
        LedgerSettings with the database URL taken from
        ``AUTOEXPORT_DATABASE_URL`` when that variable is set.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_SETTINGS_PATH
    settings = load_settings(path)

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        settings = replace(settings, database=replace(settings.database, url=env_url))

    _logger.info(
        "AUTOEXPORT_CONFIG_TRACE",
        extra={
            "trace_type": "AUTOEXPORT_CONFIG_TRACE",
            "config_name": settings.name,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source": str(path),
            "database_url_overridden": bool(env_url),
        },
    )
    return settings


__all__ = ["LedgerSettings", "get_active_settings", "DEFAULT_SETTINGS_PATH"]
