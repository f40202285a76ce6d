"""Settings module providing configuration management for lakequery.

Built on Pydantic Settings. Values come from (highest precedence first):

    1. Keyword arguments passed to :class:`ConnectionSettings`
    2. Environment variables prefixed with ``LAKEQUERY_``
    3. A ``.env`` file in the working directory
    4. Default values in code

Quick Start:
    >>> from lakequery.settings import get_settings
    >>> settings = get_settings()
    >>> settings.page_size
    500
"""

from .base import LQBaseSettings
from .connection import ConnectionSettings
from .main import get_settings, reload_settings

__all__ = [
    "LQBaseSettings",
    "ConnectionSettings",
    "get_settings",
    "reload_settings",
]
