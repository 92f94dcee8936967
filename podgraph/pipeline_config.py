"""Pipeline configuration: ingestion mode enum and PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from podgraph.transcript.models import SegmentType


class IngestionMode(str, Enum):
    """How an episode's transcript is sent to the knowledge graph."""

    SEGMENTS = "segments"
    SPEAKER_BLOCKS = "speaker_blocks"


# Segment types that are persisted to Narrows but never sent to Graphiti
DEFAULT_SKIP_TYPES: frozenset[SegmentType] = frozenset(
    {SegmentType.PROMOTION, SegmentType.CREDITS, SegmentType.SOUND_ONLY}
)


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for the transcript processing pipeline.

    Size limits and the break threshold are shared by the normalizer and the
    chunker; delays are rate-limit courtesy only and may be set to zero.
    """

    mode: IngestionMode = IngestionMode.SEGMENTS
    max_block_chars: int = 4000
    max_chunk_chars: int = 5000
    break_ratio: float = 0.7
    chapter_delay: float = 0.2  # seconds between chapters during segment planning
    segment_delay: float = 0.1  # seconds between segments during ingestion
    chunk_delay: float = 0.05  # seconds between chunks of one segment
    skip_types: frozenset[SegmentType] = DEFAULT_SKIP_TYPES
