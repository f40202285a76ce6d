from typing import Optional

from pydantic import ValidationError

from lakequery.common.exceptions import configuration_error
from .connection import ConnectionSettings


# Singleton instance
_settings: Optional[ConnectionSettings] = None


def _load() -> ConnectionSettings:
    try:
        return ConnectionSettings()
    except ValidationError as exc:
        fields = ",".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
        raise configuration_error(
            f"Invalid lakequery configuration: {exc.error_count()} error(s)",
            config_key=fields or None,
            cause=exc,
        ) from exc


def get_settings(force_reload: bool = False) -> ConnectionSettings:
    """Return the process-wide settings loaded from the environment.

    Drivers created without explicit settings share this instance. Pass
    ``force_reload=True`` after changing ``LAKEQUERY_*`` variables.

    Raises:
        ConfigurationError: If required values are missing or invalid
    """
    global _settings

    if _settings is None or force_reload:
        _settings = _load()

    return _settings


def reload_settings() -> ConnectionSettings:
    """Load the settings again from the environment."""
    return get_settings(force_reload=True)
