"""End-to-end episode pipeline.

speakers -> chapters -> segments -> contextual chunks -> Graphiti, persisting
each stage to Narrows before the next one starts.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from podgraph.analysis.chapters import identify_chapters
from podgraph.analysis.segments import identify_segments
from podgraph.analysis.speakers import identify_speakers
from podgraph.config import Settings, settings
from podgraph.generation.client import GenerationClient, get_generation_client
from podgraph.ingestion.chunking import (
    PreparedSegment,
    generate_block_context,
    prepare_segment,
    should_ingest,
)
from podgraph.ingestion.graphiti import GraphitiClient, ellipsize, get_graphiti_client
from podgraph.ingestion.narrows import NarrowsClient, get_narrows_client
from podgraph.ingestion.storage import TranscriptStore, get_transcript_store
from podgraph.pipeline_config import IngestionMode, PipelineConfig
from podgraph.transcript.models import (
    EpisodeData,
    ProcessingStatus,
    Segment,
    SeriesData,
    SpeakerMap,
    TranscriptBlock,
    TranscriptSegment,
)
from podgraph.transcript.normalizer import format_timestamp, group_by_speaker
from podgraph.transcript.parsers import clean_segment

logger = logging.getLogger(__name__)


@dataclass
class EpisodeResult:
    """Summary of one ``process_episode`` run."""

    episode_id: str
    status: str  # "complete" or "skipped"
    reason: str | None = None
    speakers: int = 0
    chapters: int = 0
    segments: int = 0
    ingestion_ids: list[str] = field(default_factory=list)


class IngestionCoordinator:
    """Run the transcript pipeline for single episodes.

    All external capabilities are injected, so one coordinator owns its
    clients and shares no mutable state with other instances.
    """

    def __init__(
        self,
        narrows: NarrowsClient,
        graphiti: GraphitiClient,
        generator: GenerationClient,
        transcripts: TranscriptStore,
        config: PipelineConfig | None = None,
    ) -> None:
        self.narrows = narrows
        self.graphiti = graphiti
        self.generator = generator
        self.transcripts = transcripts
        self.config = config or PipelineConfig()

    @classmethod
    def from_settings(
        cls, cfg: Settings | None = None, config: PipelineConfig | None = None
    ) -> IngestionCoordinator:
        cfg = cfg or settings
        return cls(
            narrows=get_narrows_client(cfg),
            graphiti=get_graphiti_client(cfg),
            generator=get_generation_client(cfg),
            transcripts=get_transcript_store(cfg),
            config=config,
        )

    def process_episode(self, episode_id: str) -> EpisodeResult:
        """Process one episode end to end.

        Missing episode or series records are logged and skipped without
        touching Narrows. Any other error marks the episode failed and is
        re-raised so the caller's queue can retry.
        """
        logger.info("Processing transcript for episode %s (%s)", episode_id, self.config.mode)

        try:
            episode = self.narrows.get_episode(episode_id)
            if episode is None:
                logger.error("Episode not found: %s", episode_id)
                return EpisodeResult(episode_id, "skipped", reason="episode not found")

            series = self.narrows.get_series(episode.series_id)
            if series is None:
                logger.error("Series not found: %s", episode.series_id)
                return EpisodeResult(episode_id, "skipped", reason="series not found")

            if not episode.audio_media_id:
                logger.error("Episode %s has no audio media ID", episode_id)
                self.narrows.put_episode_status(
                    episode_id, ProcessingStatus.FAILED, error="No audio media ID"
                )
                return EpisodeResult(episode_id, "skipped", reason="no audio media id")

            transcript = self.transcripts.get_transcript(episode.audio_media_id)
            logger.info("Found %d transcript segments", len(transcript))

            if self.config.mode is IngestionMode.SPEAKER_BLOCKS:
                result = self._run_speaker_blocks(series, episode, transcript)
            else:
                result = self._run_segments(series, episode, transcript)

            self.narrows.put_episode_status(
                episode_id, ProcessingStatus.COMPLETE, ingestion_ids=result.ingestion_ids
            )
        except Exception as exc:
            logger.exception("Error processing transcript for episode %s", episode_id)
            self._mark_failed(episode_id, f"Transcript processing error: {exc}")
            raise

        logger.info(
            "Summary: %d speakers, %d chapters, %d segments, %d Graphiti items",
            result.speakers,
            result.chapters,
            result.segments,
            len(result.ingestion_ids),
        )
        return result

    def _mark_failed(self, episode_id: str, error: str) -> None:
        """Record a failed status without masking the error being handled."""
        try:
            self.narrows.put_episode_status(episode_id, ProcessingStatus.FAILED, error=error)
        except httpx.HTTPError:
            logger.exception("Could not record failed status for episode %s", episode_id)

    def _run_segments(
        self,
        series: SeriesData,
        episode: EpisodeData,
        transcript: list[TranscriptSegment],
    ) -> EpisodeResult:
        speakers = identify_speakers(self.generator, series, episode, transcript)
        logger.info("Identified %d speakers", len(speakers))
        self.narrows.put_episode_speakers(episode.id, speakers)

        chapters = identify_chapters(self.generator, series, episode, transcript, speakers)
        logger.info("Identified %d chapters", len(chapters))
        for chapter in chapters:
            self.narrows.put_chapter(chapter)
            logger.info("Saved chapter: %s (%s)", chapter.title, chapter.type)

        segments = identify_segments(
            self.generator,
            series,
            episode,
            transcript,
            speakers,
            chapters,
            chapter_delay=self.config.chapter_delay,
        )
        for segment in segments:
            self.narrows.put_segment(segment)
        logger.info("Saved %d segments", len(segments))

        ingestion_ids = self.ingest_segments(series, episode, segments, speakers, transcript)
        return EpisodeResult(
            episode.id,
            "complete",
            speakers=len(speakers),
            chapters=len(chapters),
            segments=len(segments),
            ingestion_ids=ingestion_ids,
        )

    def _run_speaker_blocks(
        self,
        series: SeriesData,
        episode: EpisodeData,
        transcript: list[TranscriptSegment],
    ) -> EpisodeResult:
        blocks = group_by_speaker(transcript, self.config.max_block_chars)
        logger.info("Created %d speaker blocks", len(blocks))
        ingestion_ids = self.ingest_speaker_blocks(series, episode, blocks)
        return EpisodeResult(episode.id, "complete", ingestion_ids=ingestion_ids)

    def ingest_segments(
        self,
        series: SeriesData,
        episode: EpisodeData,
        segments: list[Segment],
        speakers: SpeakerMap,
        transcript: list[TranscriptSegment],
    ) -> list[str]:
        """Chunk and submit every ingestible segment, returning all ingestion ids.

        A segment whose submission fails is logged and skipped; ids already
        collected for its earlier chunks are kept.
        """
        to_ingest = [s for s in segments if should_ingest(s, self.config.skip_types)]
        skipped = len(segments) - len(to_ingest)
        if skipped:
            logger.info(
                "Skipping %d segments (promotion/credits/sound-only) for Graphiti ingestion",
                skipped,
            )

        ingestion_ids: list[str] = []
        for i, segment in enumerate(to_ingest):
            logger.info("Ingesting segment %d/%d (%s)", i + 1, len(to_ingest), segment.type)
            try:
                prepared = prepare_segment(
                    self.generator,
                    segment,
                    series,
                    episode,
                    speakers,
                    transcript,
                    max_chars=self.config.max_chunk_chars,
                    break_ratio=self.config.break_ratio,
                )
                for j, chunk in enumerate(prepared.chunks):
                    ingestion_ids.append(self._submit_chunk(series, episode, prepared, j))
                    if self.config.chunk_delay and j < len(prepared.chunks) - 1:
                        time.sleep(self.config.chunk_delay)
            except Exception:
                logger.exception("Error ingesting segment %s", segment.id)

            if self.config.segment_delay and i < len(to_ingest) - 1:
                time.sleep(self.config.segment_delay)

        logger.info("Ingested %d items to Graphiti", len(ingestion_ids))
        return ingestion_ids

    def _submit_chunk(
        self,
        series: SeriesData,
        episode: EpisodeData,
        prepared: PreparedSegment,
        index: int,
    ) -> str:
        segment = prepared.segment
        chunk = prepared.chunks[index]
        chunk_id = segment.id if chunk.total == 1 else f"{segment.id}-chunk-{index}"
        start = format_timestamp(prepared.actual_start_sec)
        end = format_timestamp(prepared.actual_end_sec)

        metadata: dict[str, Any] = {
            "series_id": series.id,
            "series_title": series.title,
            "episode_id": episode.id,
            "episode_title": episode.title,
            "segment_id": chunk_id,
            "segment_type": str(segment.type),
            "chapter_id": segment.chapter_id,
            "episode_start_sec": prepared.actual_start_sec,
            "episode_end_sec": prepared.actual_end_sec,
            "lucidity": segment.metrics.lucidity,
            "polarity": segment.metrics.polarity,
            "arousal": segment.metrics.arousal,
            "subjectivity": segment.metrics.subjectivity,
            "humor": segment.metrics.humor,
            # Raw segments ride along on the first chunk only
            "audio_segments": (
                [clean_segment(s) for s in prepared.raw_segments] if index == 0 else []
            ),
            "chunk_index": chunk.index,
            "total_chunks": chunk.total,
        }
        return self.graphiti.submit(
            chunk.text,
            name=f"{ellipsize(series.title, 12)} - {ellipsize(episode.title, 15)} - {start}-{end}",
            metadata=metadata,
            source_description=(
                f"{series.title}, {episode.title}, segment {chunk_id}, {start} - {end}"
            ),
            created_at=episode.published_at,
            fallback_id=f"segment-{chunk_id}",
        )

    def ingest_speaker_blocks(
        self,
        series: SeriesData,
        episode: EpisodeData,
        blocks: list[TranscriptBlock],
    ) -> list[str]:
        """Submit speaker blocks as Graphiti messages with a generated context each."""
        ingestion_ids: list[str] = []
        total = len(blocks)
        for i, block in enumerate(blocks):
            logger.info(
                "Processing block %d/%d (%s, %d lines)",
                i + 1,
                total,
                block.speaker_label,
                len(block.segments),
            )
            try:
                context = generate_block_context(
                    self.generator, series, episode, block.speaker_label, block.text
                )
                start = format_timestamp(block.start_sec)
                end = format_timestamp(block.end_sec)
                ingestion_ids.append(
                    self.graphiti.submit_message(
                        block.text,
                        role=block.speaker_label,
                        group_id=series.id,
                        source_description=(
                            f'Podcast transcript chunk {i + 1}/{total} from "{episode.title}" '
                            f"({series.title}). Time: {start} - {end}. Context: {context}"
                        ),
                        metadata={
                            "series_id": series.id,
                            "series_title": series.title,
                            "episode_id": episode.id,
                            "episode_title": episode.title,
                            "speaker_label": block.speaker_label,
                            "start_time": block.start_sec,
                            "end_time": block.end_sec,
                            "chunk_index": i,
                            "total_chunks": total,
                            "context_summary": context,
                        },
                        fallback_id=f"chunk-{i}",
                    )
                )
            except Exception:
                logger.exception("Error ingesting speaker block %d", i)

            if self.config.segment_delay and i < total - 1:
                time.sleep(self.config.segment_delay)

        return ingestion_ids
