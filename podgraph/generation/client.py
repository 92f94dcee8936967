"""Text-generation clients (Claude by default, OpenAI optional).

Every call returns a :class:`GenerationResult` instead of raising: transport
errors, timeouts, empty completions and unparsable JSON all come back as
``ok=False`` so callers can resolve to their documented fallback.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from anthropic import Anthropic
from openai import OpenAI

from podgraph.config import Settings, settings

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Outcome of a generation call: parsed value on success, reason on failure."""

    ok: bool
    text: str = ""
    data: Any = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str, text: str = "") -> GenerationResult:
        return cls(ok=False, text=text, error=error)


class GenerationClient(Protocol):
    def complete(
        self,
        system: str,
        user: str,
        *,
        json_response: bool = False,
        max_tokens: int = 1000,
        temperature: float = 0.3,
        fast: bool = False,
    ) -> GenerationResult: ...


def parse_json_response(raw: str) -> Any:
    """Parse a model response as JSON, handling markdown fences and preamble."""
    text = raw.strip()
    # Strip markdown code fences if present
    if text.startswith("```"):
        lines = [ln for ln in text.split("\n") if not ln.strip().startswith("```")]
        text = "\n".join(lines).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # Fall back to the outermost JSON object if the model added prose around it
        start = text.find("{")
        end = text.rfind("}") + 1
        if start == -1 or end <= start:
            raise
        return json.loads(text[start:end])


def _finish(text: str, json_response: bool) -> GenerationResult:
    if not text.strip():
        return GenerationResult.failure("empty response")
    if not json_response:
        return GenerationResult(ok=True, text=text.strip())
    try:
        data = parse_json_response(text)
    except json.JSONDecodeError as exc:
        return GenerationResult.failure(f"unparsable JSON: {exc}", text=text)
    if not isinstance(data, dict):
        return GenerationResult.failure(
            f"expected JSON object, got {type(data).__name__}", text=text
        )
    return GenerationResult(ok=True, text=text, data=data)


class AnthropicGenerationClient:
    """Generation via the Claude Messages API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        fast_model: str | None = None,
        client: Anthropic | None = None,
    ) -> None:
        self.model = model or settings.llm_model
        self.fast_model = fast_model or settings.fast_llm_model
        self._client = client or Anthropic(api_key=api_key or settings.anthropic_api_key)

    def complete(
        self,
        system: str,
        user: str,
        *,
        json_response: bool = False,
        max_tokens: int = 1000,
        temperature: float = 0.3,
        fast: bool = False,
    ) -> GenerationResult:
        if json_response:
            # Claude has no JSON mode; ask for it explicitly
            system = f"{system}\n\nRespond with ONLY the JSON object, no other text."
        try:
            response = self._client.messages.create(
                model=self.fast_model if fast else self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except Exception as exc:
            logger.warning("Claude request failed: %s", exc)
            return GenerationResult.failure(f"request failed: {exc}")

        text = "".join(
            getattr(block, "text", "") for block in response.content if block.type == "text"
        )
        return _finish(text, json_response)


class OpenAIGenerationClient:
    """Generation via OpenAI chat completions (JSON mode when requested)."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        fast_model: str | None = None,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model or settings.openai_model
        self.fast_model = fast_model or settings.openai_fast_model
        self._client = client or OpenAI(api_key=api_key or settings.openai_api_key)

    def complete(
        self,
        system: str,
        user: str,
        *,
        json_response: bool = False,
        max_tokens: int = 1000,
        temperature: float = 0.3,
        fast: bool = False,
    ) -> GenerationResult:
        kwargs: dict[str, Any] = {}
        if json_response:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = self._client.chat.completions.create(
                model=self.fast_model if fast else self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                **kwargs,
            )
        except Exception as exc:
            logger.warning("OpenAI request failed: %s", exc)
            return GenerationResult.failure(f"request failed: {exc}")

        if not response.choices:
            return GenerationResult.failure("no choices returned")
        return _finish(response.choices[0].message.content or "", json_response)


def get_generation_client(cfg: Settings | None = None) -> GenerationClient:
    """Build the generation client selected by ``llm_provider``."""
    cfg = cfg or settings
    if cfg.llm_provider == "openai":
        return OpenAIGenerationClient(
            api_key=cfg.openai_api_key,
            model=cfg.openai_model,
            fast_model=cfg.openai_fast_model,
        )
    return AnthropicGenerationClient(
        api_key=cfg.anthropic_api_key,
        model=cfg.llm_model,
        fast_model=cfg.fast_llm_model,
    )
