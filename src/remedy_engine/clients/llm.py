"""LLM analysis service client.

Sends analysis prompts to an OpenAI-compatible chat completions endpoint
and returns the free-text answer. Each completion first checks that the
configured model is listed as ready by ``GET {endpoint}/models``. Parsing
the answer is the job of ``remedy_engine.analysis.llm_parser``.

Example usage:
    async with LLMClient(LLMConfig(endpoint="http://127.0.0.1:1234/v1")) as client:
        text = await client.complete(prompt)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from remedy_engine.config.settings import LLMConfig
from remedy_engine.exceptions import AnalysisError

logger = logging.getLogger(__name__)


class LLMClient:
    """Client for the LLM analysis service.

    Attributes:
        config: Endpoint, model, timeout and system prompt
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Service settings (defaults when omitted)
            http_client: Pre-built client, mainly for tests
        """
        self.config = config or LLMConfig()
        self._http_client = http_client

    async def __aenter__(self) -> LLMClient:
        """Enter async context manager."""
        self._client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._http_client

    def _url(self, path: str) -> str:
        return f"{self.config.endpoint.rstrip('/')}/{path}"

    async def is_model_ready(self) -> bool:
        """Whether the configured model is loaded and ready.

        Queries ``GET {endpoint}/models`` and looks for an entry with the
        configured model id and status ``ready``. Any failure answers False.
        """
        try:
            response = await self._client().get(self._url("models"))
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.warning("LLM model status check failed: %s", str(e))
            return False
        except ValueError as e:
            logger.warning("LLM model status was not valid JSON: %s", str(e))
            return False

        models = data.get("data") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return False
        return any(
            isinstance(m, dict)
            and m.get("id") == self.config.model
            and m.get("status") == "ready"
            for m in models
        )

    def _build_request(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": self.config.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2,
        }

    async def complete(self, prompt: str) -> str:
        """Send a prompt and return the model's answer.

        Args:
            prompt: Analysis prompt

        Returns:
            Content of the first choice

        Raises:
            ValueError: If prompt is None
            AnalysisError: If the model is not ready, the call fails or the
                response has no content
        """
        if prompt is None:
            raise ValueError("prompt must not be None")
        if self.config.require_ready_model and not await self.is_model_ready():
            raise AnalysisError(f"LLM model '{self.config.model}' is not ready")

        url = self._url("chat/completions")
        logger.debug("Sending analysis prompt to %s (%d chars)", url, len(prompt))

        try:
            response = await self._client().post(
                url,
                json=self._build_request(prompt),
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            data: dict[str, Any] = response.json()
        except httpx.HTTPError as e:
            logger.error("LLM request failed: %s", str(e))
            raise AnalysisError(f"LLM request failed: {e}") from e
        except ValueError as e:
            raise AnalysisError(f"LLM returned invalid JSON: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AnalysisError("LLM response contained no message content") from e

        if not isinstance(content, str) or not content.strip():
            raise AnalysisError("LLM response contained no message content")

        logger.debug("Received LLM answer (%d chars)", len(content))
        return content
