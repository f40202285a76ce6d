"""Base model class for all lakequery models with serialization support."""

from typing import Any, Dict
from pydantic import BaseModel, ConfigDict


class LQBaseModel(BaseModel):
    """Base model for all lakequery models with built-in serialization.

    Models are frozen: a job snapshot or a page is a value received from the
    remote API and is never mutated in place. A fresh status poll produces a
    fresh :class:`~lakequery.types.job.Job`.
    """
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to a JSON friendly dictionary."""
        return self.model_dump(mode="json", exclude_none=True)
