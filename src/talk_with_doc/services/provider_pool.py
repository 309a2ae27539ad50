"""
Provider Pool for pooled HTTP access to the model provider.

This module provides the ProviderPool class that manages one pooled HTTP
client for an OpenAI-compatible API, used for routing judgments, persona
generation and speech-to-text.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from talk_with_doc.services.constants import DEFAULTS
from talk_with_doc.services.error_handler import ProviderError


class ProviderPool:
    """
    Manages HTTP connections to the model provider with connection pooling.

    One instance is shared by every collaborator that talks to the provider,
    so connections are reused across STT, routing and persona calls.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Provider Pool with configuration."""
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        pool_config = self.config.get("connection_pool", {})
        self.max_connections = pool_config.get("max_connections", DEFAULTS["max_connections"])
        self.max_keepalive_connections = pool_config.get(
            "max_keepalive_connections", DEFAULTS["max_keepalive_connections"]
        )
        self.keepalive_expiry = pool_config.get("keepalive_expiry", DEFAULTS["keepalive_expiry"])

        timeout_config = pool_config.get("timeout", {})
        self.connect_timeout = timeout_config.get("connect", DEFAULTS["provider_connect_timeout"])
        self.read_timeout = timeout_config.get("read", DEFAULTS["provider_read_timeout"])
        self.write_timeout = timeout_config.get("write", DEFAULTS["provider_write_timeout"])
        self.pool_timeout = timeout_config.get("pool", DEFAULTS["provider_pool_timeout"])

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        self.metrics = {
            "requests_made": 0,
            "timeouts": 0,
            "errors": 0,
            "avg_latency": 0.0,
        }

    async def initialize(self) -> None:
        """Initialize the HTTP client with connection pooling."""
        if self._client is not None:
            return

        self.logger.info(f"Initializing Provider Pool for {self.base_url}")

        limits = httpx.Limits(
            max_connections=self.max_connections,
            max_keepalive_connections=self.max_keepalive_connections,
            keepalive_expiry=self.keepalive_expiry,
        )
        timeout = httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.write_timeout,
            pool=self.pool_timeout,
        )
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            limits=limits,
            timeout=timeout,
            headers=headers,
            transport=self._transport,
        )

    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Make a chat completion request.

        Args:
            payload: Request body (model, messages and options)

        Returns:
            Dict: Decoded response body

        Raises:
            ProviderError: If the request fails or times out
        """
        response = await self._post("/chat/completions", model=payload.get("model"), json=payload)
        return response.json()

    async def transcribe(self, wav_bytes: bytes, model: str, language: str = "en") -> str:
        """
        Transcribe a WAV file.

        Args:
            wav_bytes: Complete WAV container
            model: Transcription model name
            language: Spoken language hint

        Returns:
            str: Transcribed text

        Raises:
            ProviderError: If the request fails or times out
        """
        response = await self._post(
            "/audio/transcriptions",
            model=model,
            data={"model": model, "language": language, "response_format": "text"},
            files={"file": ("audio.wav", wav_bytes, "audio/wav")},
        )
        return response.text

    async def _post(self, path: str, model: Optional[str] = None, **kwargs) -> httpx.Response:
        if not self._client:
            await self.initialize()

        request_start_time = time.time()
        try:
            response = await self._client.post(path, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            self.metrics["timeouts"] += 1
            self.logger.error(f"Request timeout for model {model}: {e}")
            raise ProviderError(f"Provider timeout on {path}: {e}") from e
        except httpx.HTTPError as e:
            self.metrics["errors"] += 1
            self.logger.error(f"Request error for model {model}: {e}")
            raise ProviderError(f"Provider request to {path} failed: {e}") from e

        self.metrics["requests_made"] += 1
        self._update_avg_latency(time.time() - request_start_time)
        return response

    def _update_avg_latency(self, latency: float) -> None:
        count = self.metrics["requests_made"]
        current_avg = self.metrics["avg_latency"]
        self.metrics["avg_latency"] = current_avg + (latency - current_avg) / count

    def get_metrics(self) -> Dict[str, Any]:
        """Get a copy of the pool metrics."""
        return self.metrics.copy()

    async def shutdown(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self.logger.info("Shutting down Provider Pool")
            await self._client.aclose()
            self._client = None
