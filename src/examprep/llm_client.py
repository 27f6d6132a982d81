import logging
from typing import Optional

import requests

from .config import settings
from .exceptions import GenerationError

logger = logging.getLogger(__name__)


class LLMClient:
    """Thin client for an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_url: str = settings.LLM_API_URL,
        api_key: str = settings.LLM_API_KEY,
        model: str = settings.LLM_MODEL,
        temperature: float = settings.LLM_TEMPERATURE,
        timeout: int = settings.LLM_TIMEOUT_SECONDS,
        http: Optional[requests.Session] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.http = http or requests.Session()

    def complete(self, prompt: str, max_tokens: int = 4000) -> str:
        """Sends a single user prompt and returns the first choice's text."""
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            response = self.http.post(
                self.api_url, json=payload, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Model request failed: {e}")
            raise GenerationError(f"Model unreachable: {e}") from e

        if not response.ok:
            logger.error(f"Model API error {response.status_code}: {response.text}")
            raise GenerationError(f"Model returned HTTP {response.status_code}")

        try:
            choices = response.json().get("choices") or []
            content = choices[0]["message"]["content"] if choices else None
        except (ValueError, KeyError, TypeError) as e:
            raise GenerationError(f"Unexpected model response shape: {e}") from e

        if not content:
            raise GenerationError("No content generated")
        return content
