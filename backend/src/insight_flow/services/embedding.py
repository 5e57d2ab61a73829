"""Embedding providers: OpenAI-compatible REST and Voyage AI."""

from typing import Any, Protocol

import httpx

from insight_flow.errors import ProviderError
from insight_flow.logging_config import get_logger

logger = get_logger(__name__)


class EmbeddingProvider(Protocol):
    """embed(text) -> fixed-dimension vector; raises ProviderError on failure."""

    dimension: int

    async def embed(self, text: str) -> list[float]:
        ...


def _check_vector(vector: Any, dimension: int, provider: str) -> list[float]:
    if not isinstance(vector, list) or not vector:
        raise ProviderError("Provider returned an empty embedding", provider=provider)
    if len(vector) != dimension:
        raise ProviderError(
            f"Embedding dimension {len(vector)} != expected {dimension}",
            provider=provider,
            context={"dimension": len(vector), "expected": dimension},
            retry_hint=False,
        )
    return [float(v) for v in vector]


class OpenAIEmbeddingService:
    """Embeddings via an OpenAI-compatible /embeddings endpoint."""

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "text-embedding-ada-002",
        dimension: int = 1536,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dimension = dimension
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _load_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self._transport,
            )
        return self._client

    async def embed(self, text: str) -> list[float]:
        client = self._load_client()
        try:
            response = await client.post("/embeddings", json={"model": self.model, "input": text})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Embedding request failed with HTTP {e.response.status_code}",
                provider=self.provider,
                context={"status_code": e.response.status_code, "model": self.model},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(
                f"Embedding request failed: {type(e).__name__}",
                provider=self.provider,
                context={"model": self.model},
            ) from e

        items = data.get("data") if isinstance(data, dict) else None
        if not items:
            raise ProviderError("Embedding response has no data", provider=self.provider)
        return _check_vector(items[0].get("embedding"), self.dimension, self.provider)

    async def health_check(self) -> bool:
        try:
            await self.embed("ping")
            return True
        except ProviderError:
            return False

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class VoyageEmbeddingService:
    """Embeddings via the Voyage AI SDK (async client, loaded lazily)."""

    provider = "voyage"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "voyage-3-large",
        dimension: int = 1024,
        input_type: str = "query",
    ):
        self.api_key = api_key
        self.model = model
        self.dimension = dimension
        self.input_type = input_type
        self._voyage_client: Any | None = None  # Intentional Any: SDK client type

    def _load_voyage_client(self) -> Any:
        """Load Voyage AI client lazily."""
        if self._voyage_client is None:
            import voyageai

            if self.api_key:
                self._voyage_client = voyageai.AsyncClient(api_key=self.api_key)
            else:
                self._voyage_client = voyageai.AsyncClient()
        return self._voyage_client

    async def embed(self, text: str) -> list[float]:
        try:
            client = self._load_voyage_client()
            result = await client.embed([text], model=self.model, input_type=self.input_type)
        except Exception as e:
            # SDK raises its own hierarchy; normalize at the boundary
            raise ProviderError(
                f"Voyage embed failed: {type(e).__name__}",
                provider=self.provider,
                context={"model": self.model},
            ) from e
        if not result.embeddings:
            raise ProviderError("Voyage returned no embeddings", provider=self.provider)
        return _check_vector(list(result.embeddings[0]), self.dimension, self.provider)

    async def health_check(self) -> bool:
        try:
            await self.embed("ping")
            return True
        except ProviderError:
            return False
