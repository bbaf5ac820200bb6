from __future__ import annotations

import os
import time
from typing import Any, Final

import requests

DEFAULT_BASE_URL: Final[str] = "https://api.openai.com/v1"
DEFAULT_MODEL: Final[str] = "gpt-4o"
REQUEST_TIMEOUT = (5, 120)
MAX_RETRIES = 3
TEMPERATURE = 0.3
MAX_COMPLETION_TOKENS = 8000


class LLMError(RuntimeError):
    pass


class LLMAuthenticationError(LLMError):
    pass


class LLMRateLimitError(LLMError):
    pass


class LLMResponseError(LLMError):
    pass


def _retry_after(response: requests.Response) -> int:
    try:
        return max(int(response.headers.get("Retry-After", "1")), 1)
    except ValueError:
        return 1


class ChatCompletionClient:
    """Prompt-in, text-out client for an OpenAI-compatible chat endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str | None = None,
        base_url: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise LLMAuthenticationError("Missing OpenAI API key")
        self.model = model or os.environ.get("OPENAI_MODEL", DEFAULT_MODEL)
        self.base_url = (base_url or os.environ.get("OPENAI_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.session = session or requests.Session()

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        for attempt in range(MAX_RETRIES):
            try:
                response = self.session.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
            except requests.RequestException as exc:
                if attempt == MAX_RETRIES - 1:
                    raise LLMError(f"Request to {url} failed: {exc}") from exc
                time.sleep(1 + attempt)
                continue
            if response.status_code == 200:
                return response.json()
            if response.status_code == 401:
                raise LLMAuthenticationError("Invalid OpenAI API key")
            if response.status_code == 429:
                if attempt == MAX_RETRIES - 1:
                    raise LLMRateLimitError("OpenAI rate limit reached. Try again later.")
                time.sleep(_retry_after(response))
                continue
            if 500 <= response.status_code < 600 and attempt < MAX_RETRIES - 1:
                time.sleep(1 + attempt)
                continue
            raise LLMError(f"OpenAI request failed with status {response.status_code}")
        raise LLMError(f"OpenAI request failed after {MAX_RETRIES} attempts")

    def complete(self, prompt: str) -> str:
        data = self._post(
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": TEMPERATURE,
                "max_completion_tokens": MAX_COMPLETION_TOKENS,
            }
        )
        choices = data.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            raise LLMResponseError("Empty reply from the language model")
        return content
