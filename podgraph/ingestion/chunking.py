"""Contextual chunking of segments for knowledge-graph ingestion.

Each segment becomes a small document pairing a generated context sentence
with its speaker-annotated transcript (the "contextual retrieval" format),
split into size-bounded chunks at sentence or word boundaries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from podgraph.generation.client import GenerationClient
from podgraph.transcript.models import (
    Chunk,
    EpisodeData,
    Segment,
    SegmentType,
    SeriesData,
    SpeakerMap,
    TranscriptSegment,
)
from podgraph.transcript.normalizer import (
    format_timestamp,
    labeled_text,
    plain_text,
    segments_overlapping,
)

logger = logging.getLogger(__name__)

MAX_CONTEXT_TRANSCRIPT_CHARS = 2000
MAX_BLOCK_CONTEXT_CHARS = 1500

CONTEXT_SYSTEM_PROMPT = """\
You are creating contextual descriptions for podcast transcript segments to improve \
retrieval in a knowledge graph.

Your task: Write a brief context that situates this chunk within the larger episode.

Follow Anthropic's contextual retrieval format:
- Keep it concise (1-3 sentences)
- Include relevant context from the episode/series that helps understand this chunk
- Reference the speaker(s), topic, and how this fits in the broader discussion

Example format:
"This segment from [series] discusses [topic]. [Speaker] explains [key point]. \
This is part of [broader context]."
"""

CONTEXT_USER_PROMPT = """\
Series: "{series_title}" - {series_description}
Episode: "{episode_title}" - {episode_description}
Segment Type: {segment_type}
Time: {start} - {end}
Speakers: {speakers}

Transcript:
{transcript}

Write a brief contextual description for this segment."""

BLOCK_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates succinct context descriptions for "
    "podcast transcript chunks. Keep your response to 1-2 sentences."
)

BLOCK_USER_PROMPT = (
    'This is a transcript chunk from the podcast "{series_title}", episode '
    '"{episode_title}". The speaker is {speaker}. Please provide a brief context '
    "summary (1-2 sentences) describing what this chunk is about:\n\n{text}"
)


def split_text(text: str, max_chars: int = 5000, break_ratio: float = 0.7) -> list[str]:
    """Split *text* into pieces of at most *max_chars* characters.

    Break preference: after the last ``". "`` within the window, then at the
    last space, then a hard cut at *max_chars*. A sentence or word break only
    counts when it lies beyond ``break_ratio * max_chars``. Pieces are
    stripped at both ends and empty pieces are never emitted.

    Args:
        text: Text to split.
        max_chars: Maximum characters per piece.
        break_ratio: Fraction of *max_chars* a soft break must exceed.

    Returns:
        Ordered list of pieces.
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    if len(text) <= max_chars:
        return [text] if text.strip() else []

    threshold = max_chars * break_ratio
    pieces: list[str] = []
    remaining = text

    while remaining:
        if len(remaining) <= max_chars:
            pieces.append(remaining)
            break

        # ". " must end inside the window so the kept period stays within budget
        period_index = remaining.rfind(". ", 0, max_chars + 1)
        space_index = remaining.rfind(" ", 0, max_chars + 1)

        if period_index > threshold:
            break_point = period_index + 1
        elif space_index > threshold:
            break_point = space_index
        else:
            break_point = max_chars

        piece = remaining[:break_point].strip()
        if piece:
            pieces.append(piece)
        remaining = remaining[break_point:].strip()

    return pieces


def build_chunks(text: str, max_chars: int = 5000, break_ratio: float = 0.7) -> list[Chunk]:
    """Split *text* into indexed :class:`Chunk` objects."""
    pieces = split_text(text, max_chars, break_ratio)
    return [Chunk(text=p, index=i, total=len(pieces)) for i, p in enumerate(pieces)]


def build_document(context: str, transcript: str) -> str:
    """Wrap context and transcript in the contextual retrieval document format."""
    return (
        "<document>\n"
        f"<context>{context}</context>\n"
        "<transcript>\n"
        f"{transcript}\n"
        "</transcript>\n"
        "</document>"
    )


def should_ingest(segment: Segment, skip_types: frozenset[SegmentType]) -> bool:
    """Promotion, credits and sound-only segments stay out of the graph."""
    return segment.type not in skip_types


def fallback_context(series: SeriesData, episode: EpisodeData, segment: Segment) -> str:
    """Templated context used when the generation service is unavailable."""
    return (
        f'Segment from "{series.title}" episode "{episode.title}". '
        f"{segment.type} at {format_timestamp(segment.start_sec)}."
    )


def generate_context(
    client: GenerationClient,
    segment: Segment,
    series: SeriesData,
    episode: EpisodeData,
    speakers: SpeakerMap,
    transcript: str,
) -> str:
    """Generate a 1-3 sentence context for *segment* (never raises)."""
    user = CONTEXT_USER_PROMPT.format(
        series_title=series.title,
        series_description=series.description or "No description",
        episode_title=episode.title,
        episode_description=episode.description or "No description",
        segment_type=segment.type,
        start=format_timestamp(segment.start_sec),
        end=format_timestamp(segment.end_sec),
        speakers=", ".join(
            f"{label}: {info.name} ({info.role})" for label, info in speakers.items()
        ),
        transcript=transcript[:MAX_CONTEXT_TRANSCRIPT_CHARS],
    )
    result = client.complete(CONTEXT_SYSTEM_PROMPT, user, max_tokens=200, fast=True)
    if not result.ok:
        logger.warning("Context generation failed for segment %s: %s", segment.id, result.error)
        return fallback_context(series, episode, segment)
    return result.text


def generate_block_context(
    client: GenerationClient,
    series: SeriesData,
    episode: EpisodeData,
    speaker: str,
    text: str,
) -> str:
    """Generate a 1-2 sentence context for a speaker block (never raises)."""
    user = BLOCK_USER_PROMPT.format(
        series_title=series.title,
        episode_title=episode.title,
        speaker=speaker,
        text=text[:MAX_BLOCK_CONTEXT_CHARS],
    )
    result = client.complete(BLOCK_SYSTEM_PROMPT, user, max_tokens=150)
    if not result.ok:
        logger.warning("Block context generation failed: %s", result.error)
        return f"Transcript chunk from {series.title} - {episode.title}, spoken by {speaker}"
    return result.text


@dataclass
class PreparedSegment:
    """A segment's raw transcript, context and chunks, ready to submit."""

    segment: Segment
    raw_segments: list[TranscriptSegment]
    context: str
    chunks: list[Chunk] = field(default_factory=list)

    @property
    def actual_start_sec(self) -> float:
        """Start of the first overlapping raw segment (0.0 when there are none)."""
        return self.raw_segments[0].start_sec if self.raw_segments else 0.0

    @property
    def actual_end_sec(self) -> float:
        return self.raw_segments[-1].end_sec if self.raw_segments else 0.0


def prepare_segment(
    client: GenerationClient,
    segment: Segment,
    series: SeriesData,
    episode: EpisodeData,
    speakers: SpeakerMap,
    transcript: list[TranscriptSegment],
    max_chars: int = 5000,
    break_ratio: float = 0.7,
) -> PreparedSegment:
    """Build the contextual document for *segment* and split it into chunks.

    The plain transcript view (no names) goes to the generation service; the
    speaker-annotated view goes into the document.
    """
    raw = segments_overlapping(transcript, segment.start_sec, segment.end_sec)
    context = generate_context(client, segment, series, episode, speakers, plain_text(raw))
    document = build_document(context, labeled_text(raw, speakers))
    return PreparedSegment(
        segment=segment,
        raw_segments=raw,
        context=context,
        chunks=build_chunks(document, max_chars, break_ratio),
    )
