"""Client for the Groq chat-completions API (OpenAI-compatible)."""

import logging

import requests

from attendance_api.core.config import Settings
from attendance_api.core.exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)


class CompletionClient:
    """Sends a single-prompt chat completion and returns the reply text.

    The API key is fixed at construction; a client built without one fails
    every call with a configuration error instead of reaching the network.
    """

    def __init__(
        self,
        api_key: str | None,
        url: str,
        model: str,
        timeout: float = 30.0,
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionClient":
        return cls(
            api_key=settings.GROQ_API_KEY,
            url=settings.GROQ_API_URL,
            model=settings.GROQ_MODEL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def complete(self, prompt: str) -> str:
        """Return the model's reply to ``prompt``.

        Raises UpstreamServiceError on any transport, HTTP or payload failure.
        """
        if not self.is_configured:
            raise UpstreamServiceError.not_configured()

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = requests.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamServiceError(reason=f"Request to text-generation service failed: {e}") from e

        if response.status_code in (401, 403):
            raise UpstreamServiceError.auth_failed(
                reason=f"HTTP {response.status_code}: {self._error_message(response)}"
            )
        if not 200 <= response.status_code < 300:
            raise UpstreamServiceError(
                reason=f"HTTP {response.status_code}: {self._error_message(response)}"
            )

        try:
            data = response.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamServiceError(reason=f"Unexpected completion payload: {e}") from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
            return body.get("error", {}).get("message") or response.text
        except (ValueError, AttributeError):
            return response.text
