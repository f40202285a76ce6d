"""Models for remote jobs and their result pages."""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import Field, field_validator

from lakequery.constants import CanonicalType, JobState
from lakequery.types.base import LQBaseModel

Row = Tuple[Any, ...]


class Job(LQBaseModel):
    """Snapshot of a remote job as reported by the status endpoint.

    Attributes:
        id: Opaque job identifier returned by submit
        state: Normalized lifecycle state
        row_count: Total number of result rows, when the remote reports it
        error_message: Remote error text for failed jobs, kept verbatim
    """
    id: str = Field(..., min_length=1)
    state: JobState = JobState.PENDING
    row_count: Optional[int] = Field(default=None, ge=0)
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


class Column(LQBaseModel):
    """A single result column."""
    name: str
    remote_type: str
    canonical_type: CanonicalType


class ColumnSchema(LQBaseModel):
    """Ordered column list of a result set.

    Column names are unique within a result and case-sensitive as returned
    by the remote engine.
    """
    columns: Tuple[Column, ...] = ()

    @field_validator("columns")
    @classmethod
    def validate_unique_names(cls, v: Tuple[Column, ...]) -> Tuple[Column, ...]:
        seen = set()
        for column in v:
            if column.name in seen:
                raise ValueError(f"Duplicate column name '{column.name}' in result schema")
            seen.add(column.name)
        return v

    @property
    def names(self) -> List[str]:
        return [column.name for column in self.columns]

    @property
    def canonical_types(self) -> List[CanonicalType]:
        return [column.canonical_type for column in self.columns]

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self):
        return iter(self.columns)

    def __getitem__(self, index: int) -> Column:
        return self.columns[index]


class Page(LQBaseModel):
    """One offset/limit slice of a completed job's rows.

    Attributes:
        offset: Position of the first row of this page in the full result
        rows: Decoded rows in remote order, aligned to ``columns``
        columns: Column schema as reported with this page
        total_row_count: Total row count echoed by the results endpoint
    """
    offset: int = Field(..., ge=0)
    rows: Tuple[Row, ...] = ()
    columns: ColumnSchema = Field(default_factory=ColumnSchema)
    total_row_count: Optional[int] = Field(default=None, ge=0)

    @property
    def row_count_in_page(self) -> int:
        return len(self.rows)

    @property
    def next_offset(self) -> int:
        return self.offset + self.row_count_in_page


class RawPage(LQBaseModel):
    """Results page exactly as returned by the results endpoint.

    Rows and schema entries are still undecoded JSON values; the paginator
    turns them into a :class:`Page`.
    """
    offset: int = Field(..., ge=0)
    schema_fields: Tuple[Dict[str, Any], ...] = ()
    raw_rows: Tuple[Any, ...] = ()
    total_row_count: Optional[int] = Field(default=None, ge=0)

    @property
    def row_count_in_page(self) -> int:
        return len(self.raw_rows)
