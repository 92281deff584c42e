"""
billing_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Failure modes:
    - ``FileNotFoundError`` -- the file named by ``BILLING_CONFIG`` (or the
      explicit path) does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or malformed settings.

Audit relevance:
    Every successful call emits a ``billing_config_loaded`` log entry naming
    the source file and the (password-masked) database URL.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from sqlalchemy.engine import make_url

from billing_config.loader import apply_env_overrides, load_yaml_file, parse_config
from billing_config.schema import BillingConfig
from billing_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV_VAR = "BILLING_CONFIG"


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> BillingConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: explicit ``config_path``, then ``BILLING_CONFIG``,
    then the packaged ``defaults.yaml``; environment overrides are applied
    last.
    """
    env = os.environ if environ is None else environ
    path = config_path or Path(env.get(CONFIG_PATH_ENV_VAR) or DEFAULT_CONFIG_PATH)

    data = apply_env_overrides(load_yaml_file(path), env)
    config = parse_config(data)

    _logger.info(
        "billing_config_loaded",
        extra={
            "config_path": str(path),
            "database_url": make_url(config.database_url).render_as_string(hide_password=True),
            "invoice_due_days": config.invoice_due_days,
        },
    )
    return config


__all__ = ["BillingConfig", "get_active_config"]
