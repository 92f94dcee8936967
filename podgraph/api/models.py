"""Pydantic response schemas for the Podgraph API."""

from __future__ import annotations

from pydantic import BaseModel

from podgraph.pipeline_config import IngestionMode


class ProcessResponse(BaseModel):
    """Response body for the /api/episodes/{id}/process endpoint."""

    episode_id: str
    mode: IngestionMode
    status: str
    speakers: int = 0
    chapters: int = 0
    segments: int = 0
    ingested: int = 0
    ingestion_ids: list[str] = []


class HealthResponse(BaseModel):
    status: str
