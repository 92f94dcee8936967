"""Tests for chapter identification and timeline repair."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from podgraph.analysis.chapters import (
    build_timeline,
    default_chapters,
    identify_chapters,
    parse_chapters,
    repair_chapters,
    target_chapter_count,
)
from podgraph.generation.client import GenerationResult
from podgraph.transcript.models import (
    Chapter,
    ChapterType,
    EpisodeData,
    SeriesData,
    SpeakerInfo,
    SpeakerRole,
    TranscriptSegment,
)

SERIES = SeriesData(id="s1", title="Deep Dive")
EPISODE = EpisodeData(id="ep1", series_id="s1", title="Episode One")
SPEAKERS = {"spk_0": SpeakerInfo("Jane", SpeakerRole.HOST)}


def _chapter(start: float, end: float, title: str = "c") -> Chapter:
    return Chapter("ep1", ChapterType.SECTION, title, None, start, end)


def _transcript(duration: float, step: float = 10.0) -> list[TranscriptSegment]:
    segments = []
    t = 0.0
    while t < duration:
        segments.append(TranscriptSegment(str(int(t)), t, min(duration, t + step), "talk", "spk_0"))
        t += step
    return segments


def _assert_partition(chapters: list[Chapter], duration: float) -> None:
    assert chapters[0].start_sec == 0
    assert chapters[-1].end_sec == duration
    for prev, chapter in zip(chapters, chapters[1:]):
        assert chapter.start_sec == prev.end_sec


class TestTargetChapterCount:
    @pytest.mark.parametrize(
        ("duration", "expected"), [(60, 5), (1800, 8), (3600, 15), (7200, 15)]
    )
    def test_clamped(self, duration: float, expected: int) -> None:
        assert target_chapter_count(duration) == expected


class TestRepairChapters:
    def test_overlap_and_gap_are_closed(self) -> None:
        chapters = [_chapter(40, 100), _chapter(0, 50), _chapter(150, 200)]
        repaired = repair_chapters(chapters, 200, "ep1")
        assert [(c.start_sec, c.end_sec) for c in repaired] == [(0, 50), (50, 100), (100, 200)]

    def test_first_and_last_pinned(self) -> None:
        repaired = repair_chapters([_chapter(5, 100), _chapter(100, 180)], 240, "ep1")
        _assert_partition(repaired, 240)

    def test_short_middle_chapter_gap_is_closed(self) -> None:
        repaired = repair_chapters(
            [_chapter(0, 100), _chapter(100, 105), _chapter(105, 300)], 300, "ep1"
        )
        assert [(c.start_sec, c.end_sec) for c in repaired] == [(0, 100), (100, 300)]
        _assert_partition(repaired, 300)

    def test_end_before_forced_start_does_not_overlap(self) -> None:
        repaired = repair_chapters(
            [_chapter(0, 100), _chapter(50, 60), _chapter(70, 200)], 200, "ep1"
        )
        assert [(c.start_sec, c.end_sec) for c in repaired] == [(0, 100), (100, 200)]
        _assert_partition(repaired, 200)

    def test_dropped_last_chapter_keeps_coverage(self) -> None:
        repaired = repair_chapters([_chapter(0, 195), _chapter(195, 199)], 200, "ep1")
        assert [(c.start_sec, c.end_sec) for c in repaired] == [(0, 200)]

    def test_all_short_keeps_one_chapter(self) -> None:
        repaired = repair_chapters([_chapter(0, 3, "a"), _chapter(3, 6, "b")], 6, "ep1")
        assert [(c.title, c.start_sec, c.end_sec) for c in repaired] == [("a", 0, 6)]

    def test_every_remaining_chapter_long_enough(self) -> None:
        repaired = repair_chapters(
            [_chapter(0, 40), _chapter(38, 45), _chapter(45, 47), _chapter(47, 400)], 400, "ep1"
        )
        _assert_partition(repaired, 400)
        assert all(c.end_sec - c.start_sec >= 10 for c in repaired)

    def test_empty_yields_defaults(self) -> None:
        repaired = repair_chapters([], 1800, "ep1")
        assert len(repaired) == 3


class TestDefaultChapters:
    def test_long_episode(self) -> None:
        chapters = default_chapters("ep1", 1800)
        assert [c.type for c in chapters] == [
            ChapterType.INTRODUCTION,
            ChapterType.SECTION,
            ChapterType.CREDITS,
        ]
        assert [(c.start_sec, c.end_sec) for c in chapters] == [
            (0, 60),
            (60, 1740),
            (1740, 1800),
        ]

    def test_short_episode_uses_ten_percent(self) -> None:
        chapters = default_chapters("ep1", 300)
        assert chapters[0].end_sec == 30
        assert chapters[2].start_sec == 270
        _assert_partition(chapters, 300)


class TestParseChapters:
    def test_unknown_type_and_bad_bounds(self) -> None:
        data = {
            "chapters": [
                {"type": "interlude", "title": "A", "start_sec": 0, "end_sec": 50.5},
                {"type": "section", "title": "B", "start_sec": "x", "end_sec": 80},
                {"type": "credits", "title": "C", "start_sec": "50.5", "end_sec": 90},
            ]
        }
        chapters = parse_chapters(data, "ep1")
        assert [c.title for c in chapters] == ["A", "C"]
        assert chapters[0].type == ChapterType.OTHER
        assert chapters[1].start_sec == 50.5

    def test_missing_list_raises(self) -> None:
        with pytest.raises(ValueError):
            parse_chapters({"foo": []}, "ep1")


class TestBuildTimeline:
    def test_thirty_second_windows(self) -> None:
        segments = [
            TranscriptSegment("0", 0, 5, "hello", "spk_0"),
            TranscriptSegment("1", 12, 20, "world", "spk_0"),
            TranscriptSegment("2", 65, 70, "later", "spk_1"),
        ]
        timeline = build_timeline(segments, SPEAKERS)
        assert timeline == "[0:00] [Jane] hello [Jane] world\n[1:00] [spk_1] later"

    def test_window_truncated(self) -> None:
        segments = [TranscriptSegment("0", 0, 5, "z" * 400, "spk_0")]
        line = build_timeline(segments, SPEAKERS)
        assert line.endswith("...")
        assert len(line) == len("[0:00] ") + 300 + 3


class TestIdentifyChapters:
    def test_repairs_model_output(self) -> None:
        client = MagicMock()
        client.complete.return_value = GenerationResult(
            ok=True,
            data={
                "chapters": [
                    {"type": "introduction", "title": "Intro", "start_sec": 2, "end_sec": 60},
                    {"type": "section", "title": "Body", "start_sec": 55, "end_sec": 250},
                    {"type": "credits", "title": "End", "start_sec": 260, "end_sec": 290},
                ]
            },
        )
        chapters = identify_chapters(client, SERIES, EPISODE, _transcript(300), SPEAKERS)
        assert [c.title for c in chapters] == ["Intro", "Body", "End"]
        _assert_partition(chapters, 300)
        assert all(c.episode_id == "ep1" for c in chapters)

    def test_failure_returns_three_defaults(self) -> None:
        client = MagicMock()
        client.complete.return_value = GenerationResult.failure("boom")
        chapters = identify_chapters(client, SERIES, EPISODE, _transcript(1800), SPEAKERS)
        assert len(chapters) == 3
        _assert_partition(chapters, 1800)

    def test_bad_data_returns_defaults(self) -> None:
        client = MagicMock()
        client.complete.return_value = GenerationResult(ok=True, data={"nope": 1})
        chapters = identify_chapters(client, SERIES, EPISODE, _transcript(600), SPEAKERS)
        assert [c.title for c in chapters] == ["Introduction", "Main Content", "Closing"]

    def test_no_segments(self) -> None:
        client = MagicMock()
        assert identify_chapters(client, SERIES, EPISODE, [], SPEAKERS) == []
        client.complete.assert_not_called()
