# src/cache/models.py - v2
"""On-disk shape of the fingerprint store."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FingerprintDocument(BaseModel):
    """The ``image.json`` document: ``{"fingerprintMap": {path: hash}}``."""

    model_config = ConfigDict(populate_by_name=True)

    fingerprint_map: dict[str, str] = Field(default_factory=dict, alias="fingerprintMap")
