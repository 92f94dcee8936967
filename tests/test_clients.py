"""Tests for the Narrows, Graphiti and transcript-store HTTP clients."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from podgraph.config import Settings
from podgraph.ingestion.graphiti import GraphitiClient, GraphitiError, ellipsize
from podgraph.ingestion.narrows import NarrowsAPIError, NarrowsClient, get_narrows_client
from podgraph.ingestion.storage import (
    HttpTranscriptStore,
    LocalTranscriptStore,
    TranscriptNotFoundError,
    get_transcript_store,
    transcript_key,
)
from podgraph.transcript.models import (
    Chapter,
    ChapterType,
    ProcessingStatus,
    Segment,
    SegmentMetrics,
    SegmentType,
    SpeakerInfo,
    SpeakerRole,
    TranscriptExcerpt,
)

TRANSCRIPT_JSON = {
    "results": {
        "audio_segments": [
            {
                "id": "0",
                "start_time": "0.0",
                "end_time": "3.0",
                "transcript": "Hi.",
                "speaker_label": "spk_0",
            }
        ]
    }
}


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responses.pop(0)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))

    def body(self, i: int = -1) -> dict:
        return json.loads(self.requests[i].content)


class TestNarrowsClient:
    def test_get_episode(self) -> None:
        rec = Recorder(
            httpx.Response(
                200,
                json={"data": {"id": "ep1", "seriesId": "s1", "title": "T", "audioMediaId": "m1"}},
            )
        )
        narrows = NarrowsClient("https://narrows.test/", "secret", client=rec.client())
        episode = narrows.get_episode("ep1")
        assert episode is not None
        assert episode.audio_media_id == "m1"
        request = rec.requests[0]
        assert str(request.url) == "https://narrows.test/api/v1/episodes/ep1"
        assert request.headers["Authorization"] == "Bearer secret"

    def test_missing_records_are_none(self) -> None:
        rec = Recorder(httpx.Response(404, text="nope"), httpx.Response(200, json={"data": None}))
        narrows = NarrowsClient("https://narrows.test", client=rec.client())
        assert narrows.get_episode("ep1") is None
        assert narrows.get_series("s1") is None

    def test_put_chapter_payload(self) -> None:
        rec = Recorder(httpx.Response(200, json={}))
        narrows = NarrowsClient("https://narrows.test", client=rec.client())
        chapter = Chapter("ep1", ChapterType.INTRODUCTION, "Intro", "Hello", 0.0, 42.5, id="c1")
        narrows.put_chapter(chapter)
        assert rec.requests[0].method == "PUT"
        assert rec.requests[0].url.path == "/api/v1/chapters/c1"
        assert rec.body() == {
            "episodeId": "ep1",
            "type": "introduction",
            "title": "Intro",
            "summary": "Hello",
            "episodeStartSec": 0.0,
            "episodeEndSec": 42.5,
        }

    def test_put_segment_payload(self) -> None:
        rec = Recorder(httpx.Response(204))
        narrows = NarrowsClient("https://narrows.test", client=rec.client())
        segment = Segment(
            "ep1",
            "c1",
            SegmentType.SOUND_ONLY,
            1.0,
            2.0,
            SegmentMetrics(lucidity=3, polarity=-1),
            TranscriptExcerpt("[Jane] hi"),
            id="sg1",
        )
        narrows.put_segment(segment)
        body = rec.body()
        assert body["type"] == "sound-only"
        assert body["chapterId"] == "c1"
        assert body["lucidity"] == 3
        assert body["humor"] is None
        assert body["transcriptExcerpt"] == {"content": "[Jane] hi"}

    def test_strict_write_failure_raises(self) -> None:
        rec = Recorder(httpx.Response(500, text="db down"))
        narrows = NarrowsClient("https://narrows.test", client=rec.client())
        with pytest.raises(NarrowsAPIError) as exc_info:
            narrows.put_chapter(Chapter("ep1", ChapterType.SECTION, "x", None, 0, 1))
        assert exc_info.value.status_code == 500

    def test_status_write_failure_only_logged(self) -> None:
        rec = Recorder(httpx.Response(500, text="db down"))
        narrows = NarrowsClient("https://narrows.test", client=rec.client())
        narrows.put_episode_status("ep1", ProcessingStatus.FAILED, error="boom")
        assert rec.body() == {"processingStatus": "failed", "processingError": "boom"}

    def test_status_with_ids_and_speakers(self) -> None:
        rec = Recorder(httpx.Response(200, json={}), httpx.Response(200, json={}))
        narrows = NarrowsClient("https://narrows.test", client=rec.client())
        narrows.put_episode_status("ep1", ProcessingStatus.COMPLETE, ingestion_ids=["j1"])
        narrows.put_episode_speakers("ep1", {"spk_0": SpeakerInfo("Jane", SpeakerRole.HOST)})
        assert rec.body(0) == {"processingStatus": "complete", "graphitiEpisodeIds": ["j1"]}
        assert rec.body(1) == {"speakerData": {"spk_0": {"name": "Jane", "role": "host"}}}

    def test_factory_requires_url(self) -> None:
        with pytest.raises(ValueError):
            get_narrows_client(
                Settings(_env_file=None, narrows_api_url="")  # type: ignore[call-arg]
            )


class TestGraphitiClient:
    def test_requires_configuration(self) -> None:
        with pytest.raises(ValueError):
            GraphitiClient("", "graph")
        with pytest.raises(ValueError):
            GraphitiClient("https://graphiti.test", "")

    def test_submit(self) -> None:
        rec = Recorder(httpx.Response(202, json={"job_id": "job-1"}))
        graphiti = GraphitiClient("https://graphiti.test", "g1", "key", client=rec.client())
        job_id = graphiti.submit(
            "<document>...</document>",
            name="Show - Ep - 0:00-1:00",
            metadata={"segment_id": "sg1"},
            source_description="desc",
            created_at="2024-01-01T00:00:00Z",
        )
        assert job_id == "job-1"
        assert rec.requests[0].url.path == "/data"
        body = rec.body()
        assert body["type"] == "json"
        assert body["group_id"] == "g1"
        assert body["created_at"] == "2024-01-01T00:00:00Z"
        assert body["metadata"] == {"segment_id": "sg1"}

    def test_submit_fallback_id(self) -> None:
        rec = Recorder(httpx.Response(200, json={}))
        graphiti = GraphitiClient("https://graphiti.test", "g1", client=rec.client())
        job_id = graphiti.submit(
            "d", name="n", metadata={}, source_description="s", fallback_id="segment-x"
        )
        assert job_id == "segment-x"
        assert rec.body()["created_at"]

    def test_submit_error(self) -> None:
        rec = Recorder(httpx.Response(503, text="busy"))
        graphiti = GraphitiClient("https://graphiti.test", "g1", client=rec.client())
        with pytest.raises(GraphitiError, match="503"):
            graphiti.submit("d", name="n", metadata={}, source_description="s")

    def test_submit_message(self) -> None:
        rec = Recorder(httpx.Response(200, json={"episode_id": "e-9"}))
        graphiti = GraphitiClient("https://graphiti.test", "g1", client=rec.client())
        result = graphiti.submit_message(
            "spk_0: hello",
            role="spk_0",
            source_description="chunk 1/1",
            metadata={"chunk_index": 0},
            group_id="series-1",
        )
        assert result == "e-9"
        assert rec.requests[0].url.path == "/messages"
        body = rec.body()
        assert body["group_id"] == "series-1"
        assert body["messages"][0]["role"] == "spk_0"
        assert body["messages"][0]["content"] == "spk_0: hello"

    def test_ellipsize(self) -> None:
        assert ellipsize("Short", 12) == "Short"
        assert ellipsize("A Very Long Series Title", 12) == "A Very Long…"
        assert len(ellipsize("A Very Long Series Title", 12)) == 12


class TestTranscriptStores:
    def test_key(self) -> None:
        assert transcript_key("m1") == "processed/m1/transcript.json"

    def test_http_store(self) -> None:
        rec = Recorder(httpx.Response(200, json=TRANSCRIPT_JSON))
        store = HttpTranscriptStore("https://media.test/", client=rec.client())
        segments = store.get_transcript("m1")
        assert segments[0].transcript == "Hi."
        assert str(rec.requests[0].url) == "https://media.test/processed/m1/transcript.json"

    def test_http_store_not_found(self) -> None:
        rec = Recorder(httpx.Response(404))
        store = HttpTranscriptStore("https://media.test", client=rec.client())
        with pytest.raises(TranscriptNotFoundError):
            store.get_transcript("m1")

    def test_http_store_server_error(self) -> None:
        rec = Recorder(httpx.Response(500))
        store = HttpTranscriptStore("https://media.test", client=rec.client())
        with pytest.raises(httpx.HTTPStatusError):
            store.get_transcript("m1")

    def test_local_store(self, tmp_path: Path) -> None:
        path = tmp_path / transcript_key("m1")
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps(TRANSCRIPT_JSON), encoding="utf-8")
        assert len(LocalTranscriptStore(tmp_path).get_transcript("m1")) == 1
        with pytest.raises(TranscriptNotFoundError):
            LocalTranscriptStore(tmp_path).get_transcript("m2")

    def test_local_store_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / transcript_key("m1")
        path.parent.mkdir(parents=True)
        path.write_text("  ", encoding="utf-8")
        with pytest.raises(ValueError, match="Empty"):
            LocalTranscriptStore(tmp_path).get_transcript("m1")

    def test_factory(self, tmp_path: Path) -> None:
        local = get_transcript_store(
            Settings(  # type: ignore[call-arg]
                _env_file=None, media_base_url="", transcript_dir=str(tmp_path)
            )
        )
        assert isinstance(local, LocalTranscriptStore)
        remote = get_transcript_store(
            Settings(_env_file=None, media_base_url="https://media.test")  # type: ignore[call-arg]
        )
        assert isinstance(remote, HttpTranscriptStore)
