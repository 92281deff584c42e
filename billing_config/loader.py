"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads a YAML file, applies environment overrides, and parses the result
into a frozen ``BillingConfig``.  Services never call this directly; the
runtime entrypoint is ``billing_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required section keys  -> ``KeyError`` propagates.
* Non-numeric decimal settings  -> ``ValueError``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from billing_config.schema import BillingConfig

DATABASE_URL_ENV_VARS = ("BILLING_DATABASE_URL", "DATABASE_URL")
LOG_LEVEL_ENV_VAR = "BILLING_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def _decimal(value: Any, key: str) -> Decimal:
    if isinstance(value, float):
        # YAML floats lose exactness; reparse their text form
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{key} must be a decimal number, got {value!r}") from exc


def parse_config(data: Mapping[str, Any]) -> BillingConfig:
    """Build a BillingConfig from the parsed YAML mapping."""
    database = data["database"]
    numbering = data["numbering"]
    invoicing = data["invoicing"]
    quotes = data["quotes"]
    schedule = quotes["payment_schedule"]
    tasks = data.get("tasks", {})
    logging_section = data.get("logging", {})

    return BillingConfig(
        database_url=str(database["url"]),
        sql_echo=bool(database.get("echo", False)),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        invoice_number_prefix=str(numbering["invoice_prefix"]),
        quote_number_prefix=str(numbering["quote_prefix"]),
        invoice_due_days=int(invoicing["due_days"]),
        default_tax_rate=_decimal(quotes["default_tax_rate"], "quotes.default_tax_rate"),
        default_down_payment_percentage=_decimal(
            schedule["down_payment"], "quotes.payment_schedule.down_payment"
        ),
        default_milestone_payment_percentage=_decimal(
            schedule["milestone_payment"], "quotes.payment_schedule.milestone_payment"
        ),
        default_final_payment_percentage=_decimal(
            schedule["final_payment"], "quotes.payment_schedule.final_payment"
        ),
        task_conversion_billing_percentage=_decimal(
            tasks.get("conversion_billing_percentage", "10"),
            "tasks.conversion_billing_percentage",
        ),
    )


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in data.items()}
    for var in DATABASE_URL_ENV_VARS:
        if environ.get(var):
            merged.setdefault("database", {})["url"] = environ[var]
            break
    if environ.get(LOG_LEVEL_ENV_VAR):
        merged.setdefault("logging", {})["level"] = environ[LOG_LEVEL_ENV_VAR]
    return merged
