"""Speaker identification: map opaque ASR speaker labels to names and roles."""

from __future__ import annotations

import logging
from typing import Any

from podgraph.generation.client import GenerationClient
from podgraph.transcript.models import (
    EpisodeData,
    SeriesData,
    SpeakerInfo,
    SpeakerMap,
    SpeakerRole,
    TranscriptSegment,
)

logger = logging.getLogger(__name__)

MAX_SAMPLES_PER_SPEAKER = 5
MAX_SAMPLE_CHARS = 200

SYSTEM_PROMPT = """\
You are an expert at identifying podcast speakers. Given metadata about a podcast \
series and episode, along with transcript samples, identify who each speaker is.

Your task:
1. Analyze the series description, episode description, and transcript samples
2. For each speaker label (e.g., spk_0, spk_1), determine:
   - Their likely name (or a descriptive placeholder if unknown)
   - Their role: "host", "guest", or "unknown"

Output JSON in this format:
{
  "speakers": [
    {
      "id": "spk_0",
      "name": "John Smith",
      "role": "host",
      "reasoning": "Brief explanation of how you identified this speaker"
    }
  ]
}

Guidelines:
- Hosts typically introduce the show, guide conversation, and appear in most episodes
- Guests are usually introduced by the host and may be topic experts
- If you can't determine a name, use a descriptive placeholder like "Host 1" or "Guest"
- Be conservative - only assign a name if you're reasonably confident"""

USER_PROMPT = """\
Series: "{series_title}"
Series Description: {series_description}

Episode: "{episode_title}"
Episode Description: {episode_description}

Speaker Labels Found: {labels}

Transcript Samples by Speaker:
{samples}

Please identify each speaker."""


def _label_suffix(label: str) -> str:
    return label.replace("spk_", "")


def speaker_labels(segments: list[TranscriptSegment]) -> list[str]:
    """Distinct speaker labels in order of first appearance."""
    return list(dict.fromkeys(s.speaker_label for s in segments))


def build_speaker_samples(segments: list[TranscriptSegment]) -> dict[str, list[str]]:
    """Collect up to five truncated transcript samples per speaker label."""
    samples: dict[str, list[str]] = {}
    for seg in segments:
        bucket = samples.setdefault(seg.speaker_label, [])
        if len(bucket) < MAX_SAMPLES_PER_SPEAKER:
            text = seg.transcript
            if len(text) > MAX_SAMPLE_CHARS:
                text = text[:MAX_SAMPLE_CHARS] + "..."
            bucket.append(text)
    return samples


def _format_samples(samples: dict[str, list[str]]) -> str:
    return "\n\n".join(
        label + ":\n" + "\n".join(f'  {i + 1}. "{s}"' for i, s in enumerate(texts))
        for label, texts in samples.items()
    )


def default_speakers(labels: list[str]) -> SpeakerMap:
    """Deterministic speaker map used whenever identification fails.

    ``spk_0`` is assumed to be the host; every other label becomes
    ``Speaker N`` with an unknown role.
    """
    speakers: SpeakerMap = {}
    for label in labels:
        num = _label_suffix(label)
        if num == "0":
            speakers[label] = SpeakerInfo(name="Host", role=SpeakerRole.HOST)
        else:
            speakers[label] = SpeakerInfo(name=f"Speaker {num}", role=SpeakerRole.UNKNOWN)
    return speakers


def _parse_role(value: Any) -> SpeakerRole:
    try:
        return SpeakerRole(str(value).lower())
    except ValueError:
        return SpeakerRole.UNKNOWN


def parse_speakers(data: dict[str, Any], labels: list[str]) -> SpeakerMap:
    """Convert the model's ``speakers`` list into a complete speaker map.

    Labels the model omitted are back-filled as ``Speaker N`` / unknown.
    Entries for labels that never appeared in the transcript are ignored.

    Raises:
        ValueError: If ``speakers`` is missing, empty or not a list.
    """
    entries = data.get("speakers")
    if not isinstance(entries, list) or not entries:
        raise ValueError("response has no speakers")

    speakers: SpeakerMap = {}
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        label = str(entry.get("id", ""))
        name = str(entry.get("name") or "").strip()
        if label not in labels or not name:
            continue
        speakers[label] = SpeakerInfo(name=name, role=_parse_role(entry.get("role")))

    for label in labels:
        if label not in speakers:
            speakers[label] = SpeakerInfo(
                name=f"Speaker {_label_suffix(label)}", role=SpeakerRole.UNKNOWN
            )

    # Keep first-appearance order
    return {label: speakers[label] for label in labels}


def identify_speakers(
    client: GenerationClient,
    series: SeriesData,
    episode: EpisodeData,
    segments: list[TranscriptSegment],
) -> SpeakerMap:
    """Identify every speaker label in *segments*.

    Never raises: a failed call, an unparsable response or an empty speaker
    list all resolve to :func:`default_speakers`.
    """
    labels = speaker_labels(segments)
    if not labels:
        return {}

    user = USER_PROMPT.format(
        series_title=series.title,
        series_description=series.description or "No description available",
        episode_title=episode.title,
        episode_description=episode.description or "No description available",
        labels=", ".join(labels),
        samples=_format_samples(build_speaker_samples(segments)),
    )

    result = client.complete(SYSTEM_PROMPT, user, json_response=True, max_tokens=1000)
    if not result.ok:
        logger.error("Speaker identification failed: %s", result.error)
        return default_speakers(labels)

    try:
        return parse_speakers(result.data, labels)
    except ValueError as exc:
        logger.error("Speaker identification returned bad data: %s", exc)
        return default_speakers(labels)
