"""Startup-time helpers for safe config logging."""

from payroute.common.config import CommonSettings
from payroute.common.logging import logger

SECRET_MARKERS = ("key", "secret", "password", "token")


def redacted_value(field: str, value: object) -> object:
    """Hide values of secret-like settings; unset values show as `<unset>`."""

    if value is None or value == "":
        return "<unset>"
    if any(marker in field.lower() for marker in SECRET_MARKERS):
        return "<redacted>"
    return value


def log_startup_config(config: CommonSettings, fields: list[str]) -> None:
    """Log selected settings for quick troubleshooting."""

    snapshot = {"service": config.service_name}
    for field in fields:
        snapshot[field] = redacted_value(field, getattr(config, field, None))
    logger.info("startup_config=%s", snapshot)
