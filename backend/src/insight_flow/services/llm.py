"""Chat completion client for OpenAI-compatible REST APIs."""

from typing import Any

import httpx

from insight_flow.errors import ProviderError
from insight_flow.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


class ChatCompletionClient:
    """Async chat completions via httpx (OpenAI, Ollama /v1, vLLM, ...)."""

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _load_client(self) -> httpx.AsyncClient:
        """Create the httpx client lazily."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self._transport,
            )
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_text: str,
        *,
        temperature: float,
        model: str | None = None,
        json_mode: bool = False,
    ) -> str | None:
        """
        Run one chat completion.

        Returns the first choice's message content, or None when the
        provider answered without usable content (no choices, null or
        blank content). Transport and HTTP failures raise ProviderError.
        """
        body: dict[str, Any] = {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_text},
            ],
            "temperature": temperature,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        client = self._load_client()
        try:
            response = await client.post("/chat/completions", json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Completion request failed with HTTP {e.response.status_code}",
                provider=self.provider,
                context={"status_code": e.response.status_code, "model": body["model"]},
                retry_hint=e.response.status_code >= 500 or e.response.status_code == 429,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(
                f"Completion request failed: {type(e).__name__}",
                provider=self.provider,
                context={"model": body["model"]},
            ) from e

        if not isinstance(data, dict):
            raise ProviderError(
                "Completion response is not a JSON object",
                provider=self.provider,
                context={"model": body["model"]},
            )
        choices = data.get("choices") or []
        if not choices:
            logger.warning("completion_empty_choices", model=body["model"])
            return None
        content = (choices[0].get("message") or {}).get("content")
        if not isinstance(content, str) or not content.strip():
            logger.warning("completion_empty_content", model=body["model"])
            return None
        return content

    async def health_check(self) -> bool:
        """Check if the provider is reachable with the configured key."""
        try:
            resp = await self._load_client().get("/models")
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
