"""Transcript object storage: fetch processed ASR output for an audio media id."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import httpx

from podgraph.config import Settings, settings
from podgraph.transcript.models import TranscriptSegment
from podgraph.transcript.parsers import parse_transcript_result


class TranscriptNotFoundError(RuntimeError):
    """No transcript exists for the requested audio media id."""


def transcript_key(audio_media_id: str) -> str:
    """Object key of the processed transcript for *audio_media_id*."""
    return f"processed/{audio_media_id}/transcript.json"


class TranscriptStore(Protocol):
    def get_transcript(self, audio_media_id: str) -> list[TranscriptSegment]: ...


class HttpTranscriptStore:
    """Read transcripts from an HTTP(S) media origin (bucket website, CDN, ...)."""

    def __init__(
        self,
        base_url: str,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def get_transcript(self, audio_media_id: str) -> list[TranscriptSegment]:
        url = f"{self.base_url}/{transcript_key(audio_media_id)}"
        response = self._client.get(url)
        if response.status_code == 404:
            raise TranscriptNotFoundError(f"No transcript at {url}")
        response.raise_for_status()
        if not response.content:
            raise ValueError("Empty transcript file")
        return parse_transcript_result(response.content)


class LocalTranscriptStore:
    """Read transcripts from a local directory laid out like the media bucket."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def get_transcript(self, audio_media_id: str) -> list[TranscriptSegment]:
        path = self.root / transcript_key(audio_media_id)
        if not path.exists():
            raise TranscriptNotFoundError(f"No transcript at {path}")
        content = path.read_text(encoding="utf-8")
        if not content.strip():
            raise ValueError("Empty transcript file")
        return parse_transcript_result(content)


def get_transcript_store(cfg: Settings | None = None) -> TranscriptStore:
    """HTTP store when ``media_base_url`` is configured, local directory otherwise."""
    cfg = cfg or settings
    if cfg.media_base_url:
        return HttpTranscriptStore(cfg.media_base_url, timeout=cfg.http_timeout)
    return LocalTranscriptStore(cfg.transcript_dir)
