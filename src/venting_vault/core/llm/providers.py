"""
Generation backend implementations for Venting Vault.

The conversation and the moderation stage share one chat completion transport.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Union

import httpx

from ..config import GenerationConfig
from ..exceptions import ConfigurationError, TransportError
from .content import ChatMessage, parse_completion, validate_messages

logger = logging.getLogger(__name__)

MessageInput = Union[ChatMessage, Dict[str, Any]]


class GenerationBackend(ABC):
    """Abstract interface for chat completion backends."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the backend has the credentials it needs."""
        pass

    @abstractmethod
    async def complete(
        self,
        messages: Sequence[MessageInput],
        *,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> Optional[str]:
        """Return the first choice's text, or None when it is empty.

        Raises:
            TransportError: On network failure, non-success status or a
                malformed response body.
        """
        pass

    async def aclose(self) -> None:
        """Release any held connections."""
        pass

    def get_capabilities(self) -> Dict[str, Any]:
        """Get provider capabilities."""
        return {}


class OpenRouterProvider(GenerationBackend):
    """OpenRouter chat completions over httpx."""

    def __init__(
        self,
        config: GenerationConfig,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.model = config.model
        self.audio_transport = config.audio_transport
        self.client = client
        self._owns_client = client is None

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.config.referer,
            "X-Title": self.config.title,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get async HTTP client"""
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout_s),
            )
        return self.client

    def build_payload(
        self,
        messages: Sequence[MessageInput],
        *,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> Dict[str, Any]:
        """Build the request body, validating every message."""
        validated = validate_messages(list(messages))
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_wire(self.audio_transport) for m in validated],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def complete(
        self,
        messages: Sequence[MessageInput],
        *,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> Optional[str]:
        """Generate a completion using OpenRouter"""
        if not self.is_configured:
            raise ConfigurationError(
                "No API key configured for OpenRouter",
                error_code="MISSING_API_KEY",
                component="llm",
            )

        payload = self.build_payload(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode,
        )
        client = await self._get_client()

        try:
            response = await client.post(
                self.endpoint, json=payload, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request to generation backend failed: {e.__class__.__name__}",
                error_code="NETWORK_ERROR",
                component="llm",
            ) from e

        if not response.is_success:
            logger.warning(f"Generation backend returned HTTP {response.status_code}")
            raise TransportError(
                f"Generation backend returned HTTP {response.status_code}",
                error_code="HTTP_ERROR",
                details={"status_code": response.status_code},
                component="llm",
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                "Generation backend returned a non-JSON body",
                error_code="MALFORMED_RESPONSE",
                component="llm",
            ) from e

        return parse_completion(body)

    async def aclose(self) -> None:
        if self.client is not None and self._owns_client:
            await self.client.aclose()
            self.client = None

    def get_capabilities(self) -> Dict[str, Any]:
        """Get OpenRouter capabilities"""
        return {
            "provider": "openrouter",
            "model": self.model,
            "supports_audio": True,
            "audio_transport": self.audio_transport,
            "requires_internet": True,
        }


def create_backend(
    config: GenerationConfig, client: Optional[httpx.AsyncClient] = None
) -> GenerationBackend:
    """Create the configured generation backend."""
    return OpenRouterProvider(config, client=client)
