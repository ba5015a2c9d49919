import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class TextGenerationError(Exception):
    """Raised when the text generation service fails."""
    pass


@dataclass
class Completion:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


class TextGenerationClient(ABC):
    """Free-form text generation: one system prompt, one user message"""

    @abstractmethod
    def complete(self, system: str, user_message: str) -> Completion:
        """
        Generate a reply.

        Raises:
            TextGenerationError: On timeout, transport or API errors
        """
        pass


class AnthropicTextClient(TextGenerationClient):
    """Client for the Anthropic Messages API"""

    API_VERSION = "2023-06-01"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-haiku-4-5",
        api_url: str = "https://api.anthropic.com/v1/messages",
        timeout: float = 30,
        max_tokens: int = 4096,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("An API key is required")

        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.session = session or requests.Session()

    def complete(self, system: str, user_message: str) -> Completion:
        try:
            response = self.session.post(
                self.api_url,
                headers={
                    "x-api-key": self.api_key,
                    "anthropic-version": self.API_VERSION,
                    "content-type": "application/json",
                },
                json={
                    "model": self.model,
                    "max_tokens": self.max_tokens,
                    "system": system,
                    "messages": [{"role": "user", "content": user_message}],
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TextGenerationError(f"Request failed: {e}") from e

        if not response.ok:
            raise TextGenerationError(f"API error: {response.status_code} {response.text[:200]}")

        data = response.json()
        text = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        usage = data.get("usage", {})

        return Completion(
            text=text,
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
        )
