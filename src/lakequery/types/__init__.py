"""Type definitions for lakequery.

Pydantic models describing remote jobs, result pages and column schemas.
"""

from lakequery.types.base import LQBaseModel
from lakequery.types.job import Column, ColumnSchema, Job, Page, RawPage, Row

__all__ = [
    "LQBaseModel",
    "Column",
    "ColumnSchema",
    "Job",
    "Page",
    "RawPage",
    "Row",
]
