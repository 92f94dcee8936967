"""Client for the Narrows metadata API (episodes, series, chapters, segments)."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

import httpx

from podgraph.config import Settings, settings
from podgraph.transcript.models import (
    Chapter,
    EpisodeData,
    ProcessingStatus,
    Segment,
    SeriesData,
    SpeakerMap,
)
from podgraph.transcript.parsers import parse_episode, parse_series

logger = logging.getLogger(__name__)


class NarrowsAPIError(RuntimeError):
    """The Narrows API rejected a write."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def chapter_payload(chapter: Chapter) -> dict[str, Any]:
    return {
        "episodeId": chapter.episode_id,
        "type": str(chapter.type),
        "title": chapter.title,
        "summary": chapter.summary,
        "episodeStartSec": chapter.start_sec,
        "episodeEndSec": chapter.end_sec,
    }


def segment_payload(segment: Segment) -> dict[str, Any]:
    excerpt = segment.transcript_excerpt
    excerpt_payload: dict[str, Any] | None = None
    if excerpt is not None:
        excerpt_payload = {"content": excerpt.content}
        if excerpt.context:
            excerpt_payload["context"] = excerpt.context
    return {
        "episodeId": segment.episode_id,
        "chapterId": segment.chapter_id,
        "type": str(segment.type),
        "episodeStartSec": segment.start_sec,
        "episodeEndSec": segment.end_sec,
        **asdict(segment.metrics),
        "transcriptExcerpt": excerpt_payload,
    }


def speakers_payload(speakers: SpeakerMap) -> dict[str, Any]:
    return {
        "speakerData": {
            label: {"name": info.name, "role": str(info.role)} for label, info in speakers.items()
        }
    }


class NarrowsClient:
    """Thin synchronous wrapper over ``/api/v1`` of the Narrows API.

    Reads return ``None`` for any non-2xx response so the pipeline can skip
    missing episodes; chapter and segment writes raise :class:`NarrowsAPIError`.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = headers

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/v1/{path}"

    def _get(self, path: str) -> dict[str, Any] | None:
        response = self._client.get(self._url(path), headers=self._headers)
        if not response.is_success:
            logger.warning("GET %s returned %d", path, response.status_code)
            return None
        data = response.json().get("data")
        return data if isinstance(data, dict) else None

    def _put(self, path: str, payload: dict[str, Any], strict: bool = True) -> None:
        response = self._client.put(self._url(path), json=payload, headers=self._headers)
        if response.is_success:
            return
        if strict:
            msg = f"PUT {path} failed: {response.status_code} - {response.text}"
            raise NarrowsAPIError(msg, status_code=response.status_code)
        logger.warning("PUT %s returned %d: %s", path, response.status_code, response.text)

    def get_episode(self, episode_id: str) -> EpisodeData | None:
        data = self._get(f"episodes/{episode_id}")
        return parse_episode(data) if data else None

    def get_series(self, series_id: str) -> SeriesData | None:
        data = self._get(f"series/{series_id}")
        return parse_series(data) if data else None

    def put_episode_speakers(self, episode_id: str, speakers: SpeakerMap) -> None:
        self._put(f"episodes/{episode_id}", speakers_payload(speakers), strict=False)

    def put_chapter(self, chapter: Chapter) -> None:
        self._put(f"chapters/{chapter.id}", chapter_payload(chapter))

    def put_segment(self, segment: Segment) -> None:
        self._put(f"segments/{segment.id}", segment_payload(segment))

    def put_episode_status(
        self,
        episode_id: str,
        status: ProcessingStatus,
        error: str | None = None,
        ingestion_ids: list[str] | None = None,
    ) -> None:
        """Record the final processing status (and graph ids) on the episode."""
        payload: dict[str, Any] = {"processingStatus": str(status)}
        if error is not None:
            payload["processingError"] = error
        if ingestion_ids is not None:
            payload["graphitiEpisodeIds"] = ingestion_ids
        self._put(f"episodes/{episode_id}", payload, strict=False)


def get_narrows_client(cfg: Settings | None = None) -> NarrowsClient:
    """Create a Narrows client from settings."""
    cfg = cfg or settings
    if not cfg.narrows_api_url:
        raise ValueError("NARROWS_API_URL must be set")
    return NarrowsClient(cfg.narrows_api_url, cfg.narrows_api_key, timeout=cfg.http_timeout)
