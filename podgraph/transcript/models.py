"""Data models for transcripts, speakers, chapters and segments."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class TranscriptSegment:
    """A single timestamped ASR segment. Read-only input to the pipeline."""

    id: str
    start_sec: float
    end_sec: float
    transcript: str
    speaker_label: str
    items: list[Any] | None = None  # word-level indices, never sent to the graph


@dataclass
class TranscriptBlock:
    """Consecutive segments from one speaker, kept under a character budget."""

    speaker_label: str
    start_sec: float
    end_sec: float
    text: str
    segments: list[TranscriptSegment] = field(default_factory=list)


class SpeakerRole(StrEnum):
    HOST = "host"
    GUEST = "guest"
    UNKNOWN = "unknown"


@dataclass
class SpeakerInfo:
    """Resolved identity for one speaker label."""

    name: str
    role: SpeakerRole = SpeakerRole.UNKNOWN


SpeakerMap = dict[str, SpeakerInfo]


class ChapterType(StrEnum):
    INTRODUCTION = "introduction"
    CREDITS = "credits"
    PROMOTION = "promotion"
    SECTION = "section"
    OTHER = "other"


@dataclass
class Chapter:
    """Top-level, gap-free partition of an episode."""

    episode_id: str
    type: ChapterType
    title: str
    summary: str | None
    start_sec: float
    end_sec: float
    id: str = field(default_factory=new_id)

    @property
    def duration(self) -> float:
        return self.end_sec - self.start_sec


class SegmentType(StrEnum):
    SHOW_INTRO = "show-intro"
    EPISODE_INTRO = "episode-intro"
    GUEST_INTRO = "guest-intro"
    CREDITS = "credits"
    PROMOTION = "promotion"
    SUMMARY = "summary"
    ANALYSIS = "analysis"
    CONCLUSION = "conclusion"
    SOUND_ONLY = "sound-only"
    OTHER = "other"


@dataclass
class SegmentMetrics:
    """Content scores for a segment.

    lucidity, arousal, subjectivity and humor range 0..5; polarity -5..5.
    ``None`` means the generation service did not score that metric.
    """

    lucidity: float | None = None
    polarity: float | None = None
    arousal: float | None = None
    subjectivity: float | None = None
    humor: float | None = None


@dataclass
class TranscriptExcerpt:
    content: str
    context: str | None = None


@dataclass
class Segment:
    """A finer-grained unit of content inside a chapter.

    Segments may overlap each other by a few seconds and need not cover their
    chapter completely.
    """

    episode_id: str
    chapter_id: str | None
    type: SegmentType
    start_sec: float
    end_sec: float
    metrics: SegmentMetrics = field(default_factory=SegmentMetrics)
    transcript_excerpt: TranscriptExcerpt | None = None
    id: str = field(default_factory=new_id)


@dataclass
class Chunk:
    """A size-bounded piece of a segment document, ready for submission."""

    text: str
    index: int = 0
    total: int = 1


@dataclass
class SeriesData:
    id: str
    title: str
    description: str = ""


@dataclass
class EpisodeData:
    id: str
    series_id: str
    title: str
    description: str = ""
    audio_media_id: str | None = None
    published_at: str | None = None
    duration: float | None = None


class ProcessingStatus(StrEnum):
    COMPLETE = "complete"
    FAILED = "failed"
