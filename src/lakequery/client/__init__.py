"""HTTP client for the remote engine's REST job API."""

from lakequery.client.auth import BearerTokenAuth, PasswordLoginAuth
from lakequery.client.http import JobClient

__all__ = [
    "BearerTokenAuth",
    "PasswordLoginAuth",
    "JobClient",
]
