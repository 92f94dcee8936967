"""Segment identification within chapters, with content metrics."""

from __future__ import annotations

import logging
import time
from typing import Any

from podgraph.generation.client import GenerationClient
from podgraph.transcript.models import (
    Chapter,
    EpisodeData,
    Segment,
    SegmentMetrics,
    SegmentType,
    SeriesData,
    SpeakerMap,
    TranscriptExcerpt,
    TranscriptSegment,
)
from podgraph.transcript.normalizer import (
    episode_duration,
    labeled_text,
    segments_in_range,
    segments_starting_in,
    timestamped_text,
)

logger = logging.getLogger(__name__)

MIN_SEGMENTS = 20
MAX_SEGMENTS = 60
SEGMENTS_PER_HOUR = 40
MAX_CHAPTER_TRANSCRIPT_CHARS = 6000

# (low, high) bounds for each metric
METRIC_RANGES: dict[str, tuple[float, float]] = {
    "lucidity": (0, 5),
    "polarity": (-5, 5),
    "arousal": (0, 5),
    "subjectivity": (0, 5),
    "humor": (0, 5),
}

SYSTEM_PROMPT = """\
You are an expert at analyzing podcast content. Your task is to identify {target} \
segments within this chapter.

Segment requirements:
1. Each segment should be 30 seconds to 5 minutes long
2. Segments can slightly overlap (up to 10 seconds)
3. Focus on substantive content (skip pure filler or dead air)

Segment types:
- "show-intro": Standard show introduction
- "episode-intro": Introduction specific to this episode's topic
- "guest-intro": Introduction of a guest
- "credits": Acknowledgments, thank-yous
- "promotion": Advertisements, sponsor reads
- "summary": Summary of facts or events
- "analysis": Opinion, insight, commentary, point-of-view
- "conclusion": Wrapping up, key takeaways
- "sound-only": Music, sound effects with minimal speech
- "other": Doesn't fit other categories

Metrics (evaluate the dialogue in each segment):
- lucidity (0-5): How clearly expressed are the ideas? 0=meandering, 5=coherent/succinct
- polarity (-5 to +5): Sentiment. -5=negative, +5=positive
- arousal (0-5): Energy/intensity. 0=subdued, 5=raucous
- subjectivity (0-5): Fact vs opinion. 0=objective, 5=subjective
- humor (0-5): Humorous intent. 0=serious, 5=comedic

Output JSON:
{{
  "segments": [
    {{
      "type": "analysis",
      "start_sec": 120.5,
      "end_sec": 245.3,
      "lucidity": 4,
      "polarity": 2,
      "arousal": 3,
      "subjectivity": 4,
      "humor": 1
    }}
  ]
}}

IMPORTANT: start_sec and end_sec should be FLOAT values (with decimal precision) \
matching the transcript timestamps.

Note: start_sec and end_sec are relative to the EPISODE (not the chapter).
This chapter starts at {start:.1f} and ends at {end:.1f}."""

USER_PROMPT = """\
Series: "{series_title}"
Episode: "{episode_title}"
Chapter: "{chapter_title}" ({chapter_type})
Chapter Time Range: {start}s - {end}s

Chapter Transcript:
{transcript}

Identify {target} segments in this chapter."""


def target_segment_count(duration_sec: float) -> int:
    """Forty segments per hour, clamped to 20..60."""
    hours = duration_sec / 3600
    return max(MIN_SEGMENTS, min(MAX_SEGMENTS, round(hours * SEGMENTS_PER_HOUR)))


def allocate_segments(
    chapters: list[Chapter], duration_sec: float, total_target: int
) -> list[int]:
    """Split *total_target* across chapters in proportion to their duration.

    Each share is rounded independently and floored at one, so the shares
    need not add up to *total_target*.
    """
    if duration_sec <= 0:
        return [1 for _ in chapters]
    return [
        max(1, round(chapter.duration / duration_sec * total_target)) for chapter in chapters
    ]


def assign_chapter(start_sec: float, end_sec: float, chapters: list[Chapter]) -> str | None:
    """Return the id of the chapter containing the segment midpoint, if any."""
    midpoint = (start_sec + end_sec) / 2
    for chapter in chapters:
        if chapter.start_sec <= midpoint < chapter.end_sec:
            return chapter.id
    return None


def excerpt_for_range(
    segments: list[TranscriptSegment],
    start_sec: float,
    end_sec: float,
    speakers: SpeakerMap,
) -> TranscriptExcerpt | None:
    """Speaker-labelled text of the raw segments fully inside the range."""
    content = labeled_text(segments_in_range(segments, start_sec, end_sec), speakers, " ")
    if not content:
        return None
    return TranscriptExcerpt(content=content)


def chapter_transcript(
    segments: list[TranscriptSegment], speakers: SpeakerMap, chapter: Chapter
) -> str:
    """Timestamped transcript of the segments starting inside *chapter*."""
    return timestamped_text(
        segments_starting_in(segments, chapter.start_sec, chapter.end_sec), speakers
    )


def _parse_segment_type(value: Any) -> SegmentType:
    try:
        return SegmentType(str(value).lower())
    except ValueError:
        return SegmentType.OTHER


def _parse_metric(entry: dict[str, Any], name: str) -> float | None:
    value = entry.get(name)
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    low, high = METRIC_RANGES[name]
    return max(low, min(high, number))


def parse_segments(data: dict[str, Any], chapter: Chapter) -> list[Segment]:
    """Convert the model's ``segments`` list into :class:`Segment` objects.

    Proposed bounds are clamped into the chapter. ``chapter_id`` is left
    unset; the caller binds it.

    Raises:
        ValueError: If ``segments`` is missing or not a list.
    """
    entries = data.get("segments")
    if not isinstance(entries, list):
        raise ValueError("response has no 'segments' list")

    parsed: list[Segment] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        try:
            start = float(entry["start_sec"])
            end = float(entry["end_sec"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping segment without valid bounds: %r", entry)
            continue
        parsed.append(
            Segment(
                episode_id=chapter.episode_id,
                chapter_id=None,
                type=_parse_segment_type(entry.get("type")),
                start_sec=max(chapter.start_sec, start),
                end_sec=min(chapter.end_sec, end),
                metrics=SegmentMetrics(
                    **{name: _parse_metric(entry, name) for name in METRIC_RANGES}
                ),
            )
        )
    return parsed


def identify_segments_in_chapter(
    client: GenerationClient,
    series: SeriesData,
    episode: EpisodeData,
    chapter: Chapter,
    transcript: str,
    target: int,
) -> list[Segment]:
    """Ask the generation service for *target* segments inside one chapter.

    Returns an empty list on any failure; there is no fallback synthesis.
    """
    system = SYSTEM_PROMPT.format(target=target, start=chapter.start_sec, end=chapter.end_sec)
    user = USER_PROMPT.format(
        series_title=series.title,
        episode_title=episode.title,
        chapter_title=chapter.title,
        chapter_type=chapter.type,
        start=chapter.start_sec,
        end=chapter.end_sec,
        transcript=transcript[:MAX_CHAPTER_TRANSCRIPT_CHARS],
        target=target,
    )

    result = client.complete(system, user, json_response=True, max_tokens=1500, fast=True)
    if not result.ok:
        logger.error(
            "Segment identification failed for chapter %r: %s", chapter.title, result.error
        )
        return []

    try:
        return parse_segments(result.data, chapter)
    except ValueError as exc:
        logger.error(
            "Segment identification for chapter %r returned bad data: %s", chapter.title, exc
        )
        return []


def identify_segments(
    client: GenerationClient,
    series: SeriesData,
    episode: EpisodeData,
    segments: list[TranscriptSegment],
    speakers: SpeakerMap,
    chapters: list[Chapter],
    chapter_delay: float = 0.2,
) -> list[Segment]:
    """Identify segments chapter by chapter and bind them to chapters and excerpts.

    Chapters are processed strictly in order. A chapter whose request fails
    contributes no segments.

    Args:
        client: Generation service.
        series: Series metadata.
        episode: Episode metadata.
        segments: Raw transcript segments.
        speakers: Resolved speaker map.
        chapters: Repaired chapters.
        chapter_delay: Pause in seconds between chapters (rate-limit courtesy).

    Returns:
        All accepted segments in chapter order.
    """
    if not segments or not chapters:
        return []

    duration = episode_duration(segments)
    total_target = target_segment_count(duration)
    targets = allocate_segments(chapters, duration, total_target)
    logger.info(
        "Targeting %d segments across %d chapters (%s)",
        total_target,
        len(chapters),
        targets,
    )

    identified: list[Segment] = []
    for i, (chapter, target) in enumerate(zip(chapters, targets, strict=True)):
        proposed = identify_segments_in_chapter(
            client,
            series,
            episode,
            chapter,
            chapter_transcript(segments, speakers, chapter),
            target,
        )
        for seg in proposed:
            seg.chapter_id = assign_chapter(seg.start_sec, seg.end_sec, chapters) or chapter.id
            seg.transcript_excerpt = excerpt_for_range(
                segments, seg.start_sec, seg.end_sec, speakers
            )
            identified.append(seg)

        if chapter_delay and i < len(chapters) - 1:
            time.sleep(chapter_delay)

    return identified
