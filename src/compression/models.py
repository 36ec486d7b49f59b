# src/compression/models.py - v1
"""Wire models of the shrink API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ShrinkOutput(BaseModel):
    """The ``output`` object of a successful shrink response."""

    model_config = ConfigDict(extra="ignore")

    url: str = Field(min_length=1)
    size: int = Field(ge=0)
    ratio: float = Field(gt=0)
    type: str | None = None
