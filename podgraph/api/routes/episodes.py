"""Episode endpoints: trigger transcript processing for one episode."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

import httpx
from fastapi import APIRouter, Form, HTTPException

from podgraph.api.models import ProcessResponse
from podgraph.ingestion.narrows import NarrowsAPIError
from podgraph.ingestion.pipeline import EpisodeResult, IngestionCoordinator
from podgraph.ingestion.storage import TranscriptNotFoundError
from podgraph.pipeline_config import IngestionMode, PipelineConfig

logger = logging.getLogger(__name__)

router = APIRouter()


def build_coordinator(mode: IngestionMode) -> IngestionCoordinator:
    return IngestionCoordinator.from_settings(config=PipelineConfig(mode=mode))


@router.post("/api/episodes/{episode_id}/process", response_model=ProcessResponse)
async def process_episode(
    episode_id: str,
    mode: Annotated[IngestionMode, Form()] = IngestionMode.SEGMENTS,
) -> ProcessResponse:
    """Run the transcript pipeline for *episode_id* and report what was stored.

    The pipeline is synchronous and slow (one LLM call per chapter and per
    segment), so it runs in a worker thread.
    """
    try:
        coordinator = build_coordinator(mode)
    except ValueError as exc:
        raise HTTPException(status_code=503, detail=f"Pipeline not configured: {exc}") from exc

    try:
        result: EpisodeResult = await asyncio.to_thread(coordinator.process_episode, episode_id)
    except TranscriptNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (NarrowsAPIError, httpx.HTTPError) as exc:
        raise HTTPException(status_code=502, detail=f"Upstream API error: {exc}") from exc

    if result.status == "skipped":
        if result.reason in ("episode not found", "series not found"):
            raise HTTPException(status_code=404, detail=result.reason.capitalize())
        raise HTTPException(status_code=422, detail=f"Episode not processable: {result.reason}")

    return ProcessResponse(
        episode_id=result.episode_id,
        mode=mode,
        status=result.status,
        speakers=result.speakers,
        chapters=result.chapters,
        segments=result.segments,
        ingested=len(result.ingestion_ids),
        ingestion_ids=result.ingestion_ids,
    )
