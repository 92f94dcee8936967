"""Client for the Graphiti knowledge-graph ingestion endpoint."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from podgraph.config import Settings, settings


class GraphitiError(RuntimeError):
    """Graphiti rejected a submission."""


def ellipsize(text: str, max_len: int) -> str:
    """Shorten *text* to *max_len* characters, marking the cut with an ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class GraphitiClient:
    """Submit transcript data to Graphiti.

    ``submit`` posts structured segment chunks to ``/data``; ``submit_message``
    posts speaker blocks to ``/messages``. Both return the ingestion id
    Graphiti assigns.
    """

    def __init__(
        self,
        base_url: str,
        graph_id: str,
        api_key: str = "",
        client: httpx.Client | None = None,
        timeout: float = 60.0,
    ) -> None:
        if not base_url:
            raise ValueError("GRAPHITI_API_URL must be set")
        if not graph_id:
            raise ValueError("GRAPHITI_GRAPH_ID must be set")
        self.base_url = base_url.rstrip("/")
        self.graph_id = graph_id
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.Client(timeout=timeout)

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        response = self._client.post(f"{self.base_url}{path}", json=body, headers=self._headers)
        if not response.is_success:
            msg = f"Graphiti ingestion failed: {response.status_code} - {response.text}"
            raise GraphitiError(msg)
        result = response.json()
        return result if isinstance(result, dict) else {}

    def submit(
        self,
        data: str,
        *,
        name: str,
        metadata: dict[str, Any],
        source_description: str,
        created_at: str | None = None,
        fallback_id: str = "",
    ) -> str:
        """Submit one chunk of segment data and return its ingestion id."""
        result = self._post(
            "/data",
            {
                "type": "json",
                "data": data,
                "name": name,
                "group_id": self.graph_id,
                "created_at": created_at or utc_now_iso(),
                "source_description": source_description,
                "metadata": metadata,
            },
        )
        return str(result.get("job_id") or result.get("id") or fallback_id)

    def submit_message(
        self,
        content: str,
        *,
        role: str,
        source_description: str,
        metadata: dict[str, Any],
        group_id: str | None = None,
        fallback_id: str = "",
    ) -> str:
        """Submit one speaker block as a message and return its ingestion id."""
        result = self._post(
            "/messages",
            {
                "group_id": group_id or self.graph_id,
                "messages": [
                    {
                        "content": content,
                        "role_type": "user",
                        "role": role,
                        "timestamp": utc_now_iso(),
                        "source_description": source_description,
                        "metadata": metadata,
                    }
                ],
            },
        )
        return str(result.get("episode_id") or result.get("id") or fallback_id)


def get_graphiti_client(cfg: Settings | None = None) -> GraphitiClient:
    """Create a Graphiti client from settings."""
    cfg = cfg or settings
    return GraphitiClient(
        cfg.graphiti_api_url,
        cfg.graphiti_graph_id,
        cfg.graphiti_api_key,
        timeout=cfg.http_timeout,
    )
