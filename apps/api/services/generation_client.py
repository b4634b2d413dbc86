"""
Gemini text generation client.

A thin request/response wrapper: prompt in, text out. Every failure mode
(missing key, transport error, timeout, non-2xx status, response without
candidate text) is raised as GenerationError so callers have one thing to
catch.
"""
import logging
import time
from typing import Optional

import requests

from core.config import settings
from core.exceptions import GenerationError

logger = logging.getLogger(__name__)


class GeminiClient:
    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        timeout_s: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout_s = timeout_s
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "GeminiClient":
        return cls(
            api_url=settings.GEMINI_API_URL,
            api_key=settings.GEMINI_API_KEY,
            timeout_s=settings.GENERATION_TIMEOUT_S,
        )

    def generate(self, prompt: str) -> str:
        """Send the prompt and return the first candidate's text."""
        if not self.api_key:
            raise GenerationError("GEMINI_API_KEY not configured")

        body = {"contents": [{"parts": [{"text": prompt}]}]}
        start = time.monotonic()
        try:
            r = self._session.post(
                self.api_url,
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout_s,
            )
        except requests.exceptions.Timeout as e:
            raise GenerationError(f"Generation timed out after {self.timeout_s}s") from e
        except requests.exceptions.RequestException as e:
            raise GenerationError(f"Generation request failed: {e}") from e

        latency_ms = int((time.monotonic() - start) * 1000)
        if not 200 <= r.status_code < 300:
            raise GenerationError(f"Generation returned HTTP {r.status_code}: {r.text[:200]}")

        try:
            payload = r.json()
        except ValueError as e:
            raise GenerationError("Generation response is not JSON") from e

        text = _first_candidate_text(payload)
        if not text:
            raise GenerationError("Generation response has no candidate text")

        logger.debug("Generation call finished in %d ms (%d chars)", latency_ms, len(text))
        return text


def _first_candidate_text(payload) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    texts = [p.get("text", "") for p in parts if isinstance(p, dict)]
    return "".join(t for t in texts if isinstance(t, str))
