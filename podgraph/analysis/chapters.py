"""Chapter identification and timeline repair.

The model proposes chapters; :func:`repair_chapters` then forces them into a
sorted, contiguous timeline covering ``[0, duration]`` and drops anything
shorter than :data:`MIN_CHAPTER_SEC`.
"""

from __future__ import annotations

import logging
from typing import Any

from podgraph.generation.client import GenerationClient
from podgraph.transcript.models import (
    Chapter,
    ChapterType,
    EpisodeData,
    SeriesData,
    SpeakerMap,
    TranscriptSegment,
)
from podgraph.transcript.normalizer import episode_duration, format_timestamp, speaker_name

logger = logging.getLogger(__name__)

MIN_CHAPTERS = 5
MAX_CHAPTERS = 15
MIN_CHAPTER_SEC = 10.0
TIMELINE_WINDOW_SEC = 30
TIMELINE_WINDOW_CHARS = 300

SYSTEM_PROMPT = """\
You are an expert at dividing podcast episodes into meaningful chapters. Your task \
is to identify {target} chapters (±3) for this episode.

Chapter requirements:
1. Each chapter must be at least 30 seconds long
2. Chapters must NOT overlap
3. Chapters must cover the ENTIRE episode duration (0 to {duration_rounded} seconds)
4. Each chapter should be consumable on its own with minimal prior context

Chapter types:
- "introduction": Opening segment, welcome, topic preview
- "credits": Thanking staff, guests, sponsors at the end
- "promotion": Advertisements or sponsor segments
- "section": Main content sections (most common)
- "other": Anything that doesn't fit the above

Output JSON in this format:
{{
  "chapters": [
    {{
      "type": "introduction",
      "title": "Short 2-4 word title",
      "summary": "1-4 sentence summary of this chapter",
      "start_sec": 0.0,
      "end_sec": 182.5
    }}
  ]
}}

IMPORTANT: start_sec and end_sec should be FLOAT values (with decimal precision) \
matching the transcript timestamps.

Guidelines:
- First chapter MUST start at 0.0
- Last chapter MUST end at approximately {duration:.1f}
- Each chapter's end_sec should equal the next chapter's start_sec
- Titles should be short and descriptive (2-4 words)
- Summaries should help someone decide if they want to listen to this section"""

USER_PROMPT = """\
Series: "{series_title}"
Episode: "{episode_title}"
Episode Description: {episode_description}
Duration: {minutes} minutes

Identified Speakers:
{speakers}

Transcript Timeline:
{timeline}

Please identify the chapters."""


def target_chapter_count(duration_sec: float) -> int:
    """Roughly one chapter per four minutes, clamped to 5..15."""
    return max(MIN_CHAPTERS, min(MAX_CHAPTERS, round(duration_sec / 60 / 4)))


def build_timeline(segments: list[TranscriptSegment], speakers: SpeakerMap) -> str:
    """Condense the transcript into 30-second windows of at most 300 characters."""
    windows: dict[int, list[str]] = {}
    for seg in segments:
        index = int(seg.start_sec // TIMELINE_WINDOW_SEC)
        windows.setdefault(index, []).append(
            f"[{speaker_name(seg.speaker_label, speakers)}] {seg.transcript}"
        )

    lines: list[str] = []
    for index in sorted(windows):
        text = " ".join(windows[index])
        if len(text) > TIMELINE_WINDOW_CHARS:
            text = text[:TIMELINE_WINDOW_CHARS] + "..."
        lines.append(f"[{format_timestamp(index * TIMELINE_WINDOW_SEC)}] {text}")
    return "\n".join(lines)


def default_chapters(episode_id: str, duration: float) -> list[Chapter]:
    """Three fallback chapters: introduction, main content and closing."""
    intro_end = min(60.0, duration * 0.1)
    outro_start = max(duration - 60.0, duration * 0.9)
    return [
        Chapter(
            episode_id=episode_id,
            type=ChapterType.INTRODUCTION,
            title="Introduction",
            summary="Episode introduction",
            start_sec=0.0,
            end_sec=intro_end,
        ),
        Chapter(
            episode_id=episode_id,
            type=ChapterType.SECTION,
            title="Main Content",
            summary="Main episode content",
            start_sec=intro_end,
            end_sec=outro_start,
        ),
        Chapter(
            episode_id=episode_id,
            type=ChapterType.CREDITS,
            title="Closing",
            summary="Episode conclusion and credits",
            start_sec=outro_start,
            end_sec=duration,
        ),
    ]


def repair_chapters(
    chapters: list[Chapter], duration: float, episode_id: str
) -> list[Chapter]:
    """Force proposed chapters into a contiguous, full-coverage timeline.

    Steps: sort by start, pin the first start to 0 and the last end to
    *duration*, start every later chapter where the previous one ends (an
    end before that forced start is raised to it), then drop chapters
    shorter than ten seconds and stitch the survivors back together so the
    result still covers ``[0, duration]`` without gaps. If every chapter is
    too short, the first one is stretched over the whole episode. An empty
    proposal yields the default three chapters.
    """
    if not chapters:
        return default_chapters(episode_id, duration)

    chapters = sorted(chapters, key=lambda c: c.start_sec)
    chapters[0].start_sec = 0.0
    chapters[0].end_sec = min(max(chapters[0].end_sec, 0.0), duration)
    chapters[-1].end_sec = duration

    for prev, chapter in zip(chapters, chapters[1:]):
        chapter.start_sec = prev.end_sec
        chapter.end_sec = min(max(chapter.end_sec, chapter.start_sec), duration)

    kept = [c for c in chapters if c.end_sec - c.start_sec >= MIN_CHAPTER_SEC] or chapters[:1]
    _stitch(kept, duration)
    return kept


def _stitch(chapters: list[Chapter], duration: float) -> None:
    chapters[0].start_sec = 0.0
    for prev, chapter in zip(chapters, chapters[1:]):
        chapter.start_sec = prev.end_sec
    chapters[-1].end_sec = duration


def _parse_chapter_type(value: Any) -> ChapterType:
    try:
        return ChapterType(str(value).lower())
    except ValueError:
        return ChapterType.OTHER


def parse_chapters(data: dict[str, Any], episode_id: str) -> list[Chapter]:
    """Convert the model's ``chapters`` list into :class:`Chapter` objects.

    Entries without numeric bounds are skipped.

    Raises:
        ValueError: If ``chapters`` is missing or not a list.
    """
    entries = data.get("chapters")
    if not isinstance(entries, list):
        raise ValueError("response has no 'chapters' list")

    chapters: list[Chapter] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        try:
            start = float(entry["start_sec"])
            end = float(entry["end_sec"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping chapter without valid bounds: %r", entry)
            continue
        chapters.append(
            Chapter(
                episode_id=episode_id,
                type=_parse_chapter_type(entry.get("type")),
                title=str(entry.get("title") or "Untitled"),
                summary=entry.get("summary"),
                start_sec=start,
                end_sec=end,
            )
        )
    return chapters


def identify_chapters(
    client: GenerationClient,
    series: SeriesData,
    episode: EpisodeData,
    segments: list[TranscriptSegment],
    speakers: SpeakerMap,
) -> list[Chapter]:
    """Propose chapters with the generation service and repair the result.

    Never raises. Any failure falls back to :func:`default_chapters`; an empty
    transcript yields no chapters at all.
    """
    if not segments:
        return []

    duration = episode_duration(segments)
    target = target_chapter_count(duration)

    system = SYSTEM_PROMPT.format(
        target=target, duration_rounded=round(duration), duration=duration
    )
    user = USER_PROMPT.format(
        series_title=series.title,
        episode_title=episode.title,
        episode_description=episode.description or "No description",
        minutes=round(duration / 60),
        speakers="\n".join(
            f"- {label}: {info.name} ({info.role})" for label, info in speakers.items()
        ),
        timeline=build_timeline(segments, speakers),
    )

    result = client.complete(system, user, json_response=True, max_tokens=2000)
    if not result.ok:
        logger.error("Chapter identification failed: %s", result.error)
        return default_chapters(episode.id, duration)

    try:
        proposed = parse_chapters(result.data, episode.id)
    except ValueError as exc:
        logger.error("Chapter identification returned bad data: %s", exc)
        return default_chapters(episode.id, duration)

    logger.info("Model proposed %d chapters (target %d)", len(proposed), target)
    return repair_chapters(proposed, duration, episode.id)
