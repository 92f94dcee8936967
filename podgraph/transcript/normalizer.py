"""Speaker-turn grouping and text views over raw transcript segments."""

from __future__ import annotations

from podgraph.transcript.models import SpeakerMap, TranscriptBlock, TranscriptSegment


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``m:ss`` (minutes are not wrapped into hours)."""
    total = max(0, int(seconds))
    return f"{total // 60}:{total % 60:02d}"


def speaker_name(label: str, speakers: SpeakerMap | None = None) -> str:
    """Resolve a speaker label to a display name, falling back to the label."""
    if speakers and label in speakers:
        return speakers[label].name
    return label


def group_by_speaker(
    segments: list[TranscriptSegment],
    max_chars: int = 4000,
    speakers: SpeakerMap | None = None,
) -> list[TranscriptBlock]:
    """Group consecutive segments by the same speaker under a character budget.

    A new block starts when the speaker label changes or when appending the
    next ``"{speaker}: {text}"`` line would push the block past *max_chars*.
    Segments are never split; one that is over budget on its own gets a block
    to itself.

    Args:
        segments: Raw transcript segments ordered by start time.
        max_chars: Character budget per block.
        speakers: Optional speaker map used to render names instead of labels.

    Returns:
        Ordered list of :class:`TranscriptBlock`.
    """
    blocks: list[TranscriptBlock] = []
    current: TranscriptBlock | None = None

    for seg in segments:
        line = f"{speaker_name(seg.speaker_label, speakers)}: {seg.transcript}"

        if (
            current is None
            or current.speaker_label != seg.speaker_label
            or len(current.text) + len(line) > max_chars
        ):
            current = TranscriptBlock(
                speaker_label=seg.speaker_label,
                start_sec=seg.start_sec,
                end_sec=seg.end_sec,
                text=line,
                segments=[seg],
            )
            blocks.append(current)
        else:
            current.segments.append(seg)
            current.end_sec = seg.end_sec
            current.text += "\n" + line

    return blocks


def segments_in_range(
    segments: list[TranscriptSegment], start_sec: float, end_sec: float
) -> list[TranscriptSegment]:
    """Segments lying entirely inside ``[start_sec, end_sec]``."""
    return [s for s in segments if s.start_sec >= start_sec and s.end_sec <= end_sec]


def segments_starting_in(
    segments: list[TranscriptSegment], start_sec: float, end_sec: float
) -> list[TranscriptSegment]:
    """Segments whose start falls in the half-open range ``[start_sec, end_sec)``."""
    return [s for s in segments if start_sec <= s.start_sec < end_sec]


def segments_overlapping(
    segments: list[TranscriptSegment], start_sec: float, end_sec: float
) -> list[TranscriptSegment]:
    """Segments that overlap ``(start_sec, end_sec)`` at all."""
    return [s for s in segments if s.start_sec < end_sec and s.end_sec > start_sec]


def plain_text(segments: list[TranscriptSegment]) -> str:
    """Space-joined transcript text without speaker names."""
    return " ".join(s.transcript for s in segments)


def labeled_text(
    segments: list[TranscriptSegment],
    speakers: SpeakerMap | None = None,
    separator: str = "\n",
) -> str:
    """``[Name] text`` lines for each segment."""
    return separator.join(
        f"[{speaker_name(s.speaker_label, speakers)}] {s.transcript}" for s in segments
    )


def timestamped_text(
    segments: list[TranscriptSegment], speakers: SpeakerMap | None = None
) -> str:
    """``[m:ss] [Name] text`` lines for each segment."""
    return "\n".join(
        f"[{format_timestamp(s.start_sec)}] [{speaker_name(s.speaker_label, speakers)}] "
        f"{s.transcript}"
        for s in segments
    )


def episode_duration(segments: list[TranscriptSegment]) -> float:
    """Episode length taken from the latest segment end (0.0 when empty)."""
    return max((s.end_sec for s in segments), default=0.0)
