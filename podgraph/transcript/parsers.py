"""Parsers for ASR transcript JSON and Narrows API payloads."""

from __future__ import annotations

import json
from typing import Any

from podgraph.transcript.models import EpisodeData, SeriesData, TranscriptSegment


def _to_float(value: Any) -> float:
    """ASR output carries times as strings (``"12.34"``); tolerate numbers too."""
    if value is None or value == "":
        return 0.0
    return float(value)


def parse_segment(raw: dict[str, Any]) -> TranscriptSegment:
    """Parse one ``audio_segments`` entry into a :class:`TranscriptSegment`."""
    return TranscriptSegment(
        id=str(raw.get("id", "")),
        start_sec=_to_float(raw.get("start_time")),
        end_sec=_to_float(raw.get("end_time")),
        transcript=str(raw.get("transcript", "")),
        speaker_label=str(raw.get("speaker_label") or "spk_0"),
        items=raw.get("items"),
    )


def parse_transcript_result(content: str | bytes | dict[str, Any]) -> list[TranscriptSegment]:
    """Parse a transcript result document into segments ordered by start time.

    Expected shape::

        {"results": {"audio_segments": [
            {"id": "0", "start_time": "0.5", "end_time": "4.2",
             "transcript": "...", "speaker_label": "spk_0", "items": [0, 1]}
        ]}}

    Raises:
        ValueError: If the document has no ``results.audio_segments`` list.
    """
    data = json.loads(content) if isinstance(content, (str, bytes)) else content

    results = data.get("results") if isinstance(data, dict) else None
    raw_segments = results.get("audio_segments") if isinstance(results, dict) else None
    if not isinstance(raw_segments, list):
        keys = list(data.keys()) if isinstance(data, dict) else type(data).__name__
        msg = f"Unrecognized transcript format. Keys: {keys}"
        raise ValueError(msg)

    segments = [parse_segment(s) for s in raw_segments]
    return sorted(segments, key=lambda s: s.start_sec)


def clean_segment(segment: TranscriptSegment) -> dict[str, Any]:
    """Serialize a segment for graph metadata, dropping the word-level ``items``."""
    return {
        "id": segment.id,
        "start_time": str(segment.start_sec),
        "end_time": str(segment.end_sec),
        "transcript": segment.transcript,
        "speaker_label": segment.speaker_label,
    }


def parse_episode(data: dict[str, Any]) -> EpisodeData:
    """Parse an episode record from the Narrows API (camelCase keys)."""
    duration = data.get("duration")
    return EpisodeData(
        id=str(data["id"]),
        series_id=str(data.get("seriesId", "")),
        title=data.get("title") or "",
        description=data.get("description") or "",
        audio_media_id=data.get("audioMediaId") or None,
        published_at=data.get("publishedAt"),
        duration=float(duration) if duration is not None else None,
    )


def parse_series(data: dict[str, Any]) -> SeriesData:
    """Parse a series record from the Narrows API."""
    return SeriesData(
        id=str(data["id"]),
        title=data.get("title") or "",
        description=data.get("description") or "",
    )
