"""Shared Pydantic schema base with camelCase aliases."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """All API schemas inherit from this to auto-generate camelCase aliases."""

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
        "from_attributes": True,
    }


class ArtifactIn(CamelModel):
    """Reference to bytes already stored by the upload collaborator."""

    storage_ref: str
    file_name: str | None = None
    file_size_bytes: int | None = None
    file_type: str | None = None


class HealthResponse(BaseModel):
    """Returned by /health; ``status`` is "degraded" when the datastore is unreachable."""

    status: str = "ok"
    app: str
    env: str
    database: str = "ok"
