"""Vision model adapters for AI-based product extraction.

Provides a base interface, an adapter for OpenAI-compatible chat completion
APIs with image input, and a deterministic mock for local runs and tests.
"""

from __future__ import annotations

import base64
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass

from openai import OpenAI

from app.domain.cost import CallKind, TokenUsage


@dataclass(frozen=True)
class VisionReply:
    """Raw model text plus the provider-reported token usage."""

    text: str
    usage: TokenUsage


class BaseVisionAdapter(ABC):
    """Abstract base for all vision model adapters."""

    @abstractmethod
    def complete(self, prompt: str, *, image_png: bytes | None = None) -> VisionReply:
        """Send a prompt, optionally with a screenshot, and return the reply.

        Args:
            prompt: The fully formatted prompt string.
            image_png: PNG screenshot bytes to attach, if any.

        Returns:
            The reply text and the metered usage of this one call.
        """


class OpenAIVisionAdapter(BaseVisionAdapter):
    """Adapter for OpenAI-compatible chat completion APIs.

    Screenshots are sent inline as base64 data URLs. Token usage is read from
    the response so the caller can bill the call.
    """

    def __init__(
        self,
        model: str = "gpt-4o",
        max_tokens: int = 4096,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        """Initialise the OpenAI adapter.

        Args:
            model: Model identifier.
            max_tokens: Maximum tokens in the completion.
            api_key: OpenAI API key. The client falls back to OPENAI_API_KEY.
            base_url: Optional base URL for OpenAI-compatible endpoints.
        """
        client_kwargs: dict = {}
        if api_key:
            client_kwargs["api_key"] = api_key
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model
        self._max_tokens = max_tokens

    def complete(self, prompt: str, *, image_png: bytes | None = None) -> VisionReply:
        content: list[dict] = [{"type": "text", "text": prompt}]
        if image_png is not None:
            encoded = base64.b64encode(image_png).decode("ascii")
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:image/png;base64,{encoded}", "detail": "high"},
                }
            )

        response = self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": content}],
            temperature=0,
            max_tokens=self._max_tokens,
            stream=False,
        )
        usage = response.usage
        return VisionReply(
            text=response.choices[0].message.content or "",
            usage=TokenUsage(
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
                has_image=image_png is not None,
                kind=CallKind.SCREENSHOT if image_png is not None else CallKind.TEXT,
            ),
        )


# ---------------------------------------------------------------------------
# Fixed mock reply used for local runs without a model API.
# ---------------------------------------------------------------------------
_MOCK_PRODUCTS = [
    {
        "name": "Mock Runner Trainer",
        "brand": "Nike",
        "originalPrice": 120.00,
        "salePrice": 84.00,
        "discount": 30,
        "currency": "EUR",
        "url": None,
    },
    {
        "name": "Mock Linen Shirt",
        "brand": "Zara",
        "originalPrice": 39.95,
        "salePrice": 25.99,
        "discount": 35,
        "currency": "EUR",
        "url": None,
    },
]


class MockVisionAdapter(BaseVisionAdapter):
    """Deterministic adapter returning a fixed product array.

    Token counts are fixed as well, so ledger and budget behaviour can be
    exercised without a model API.
    """

    def __init__(
        self,
        reply: str | None = None,
        input_tokens: int = 1500,
        output_tokens: int = 500,
    ) -> None:
        self._reply = reply if reply is not None else json.dumps(_MOCK_PRODUCTS, indent=2)
        self._input_tokens = input_tokens
        self._output_tokens = output_tokens
        self.calls: list[tuple[str, bool]] = []

    def complete(self, prompt: str, *, image_png: bytes | None = None) -> VisionReply:
        self.calls.append((prompt, image_png is not None))
        return VisionReply(
            text=self._reply,
            usage=TokenUsage(
                input_tokens=self._input_tokens,
                output_tokens=self._output_tokens,
                has_image=image_png is not None,
                kind=CallKind.SCREENSHOT if image_png is not None else CallKind.TEXT,
            ),
        )
