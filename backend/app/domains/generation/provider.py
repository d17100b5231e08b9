import asyncio
import json
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import httpx
from pydantic import BaseModel

from backend.app.logging_config import get_logger

logger = get_logger("app.domains.generation.provider")

PROVIDER_CAUSES = (
    "rate_limit",
    "quota",
    "invalid_request",
    "malformed_response",
    "timeout",
    "unavailable",
    "configuration",
)


class ProviderResponse(BaseModel):
    content: str
    tokens_used: int = 0
    model_echo: Optional[str] = None


class ProviderError(Exception):
    def __init__(self, cause: str, message: str):
        super().__init__(message)
        self.cause = cause
        self.message = message


class BaseTextProvider(ABC):
    @abstractmethod
    async def generate(
        self, prompt: str, model_id: str, max_tokens: int, temperature: float
    ) -> ProviderResponse:
        pass

    async def close(self) -> None:
        pass


class OpenRouterConfig:
    def __init__(
        self,
        api_key: Optional[str],
        api_base_url: str = "https://openrouter.ai/api/v1",
        timeout_seconds: float = 60.0,
        app_title: str = "Recommendation Letter Generator",
    ):
        self.api_key = api_key
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.app_title = app_title


class OpenRouterProvider(BaseTextProvider):
    """Chat-completions client for OpenRouter (or any compatible endpoint)."""

    SYSTEM_PROMPT = (
        "You are an expert academic writing assistant specializing in recommendation "
        "letters. Write professional, personalized letters that highlight the applicant's "
        "strengths with specific examples."
    )

    def __init__(self, config: OpenRouterConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def generate(
        self, prompt: str, model_id: str, max_tokens: int, temperature: float
    ) -> ProviderResponse:
        if not self.config.api_key:
            raise ProviderError("configuration", "OPENROUTER_API_KEY is not configured")

        try:
            response = await self._get_client().post(
                f"{self.config.api_base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                    "X-Title": self.config.app_title,
                },
                json={
                    "model": model_id,
                    "messages": [
                        {"role": "system", "content": self.SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                    "top_p": 1,
                    "frequency_penalty": 0.1,
                    "presence_penalty": 0.1,
                },
            )
        except httpx.TimeoutException as e:
            raise ProviderError("timeout", f"provider did not answer in time: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderError("unavailable", f"provider transport error: {e}") from e

        if response.status_code >= 400:
            raise self._error_for_status(response)

        return self._parse_response(response)

    def _error_for_status(self, response: httpx.Response) -> ProviderError:
        status = response.status_code
        detail = self._error_detail(response)
        if status == 429:
            return ProviderError("rate_limit", f"rate limit exceeded: {detail}")
        if status == 402:
            return ProviderError("quota", f"insufficient credits: {detail}")
        if status in (401, 403):
            return ProviderError("configuration", f"provider rejected credentials: {detail}")
        if status in (408, 504):
            return ProviderError("timeout", f"provider timed out: {detail}")
        if status >= 500:
            return ProviderError("unavailable", f"provider error {status}: {detail}")
        return ProviderError("invalid_request", f"provider rejected request ({status}): {detail}")

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text[:200]
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return str(body)[:200]

    @staticmethod
    def _parse_response(response: httpx.Response) -> ProviderResponse:
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (json.JSONDecodeError, ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError("malformed_response", f"unexpected provider payload: {e}") from e

        if not isinstance(content, str) or not content.strip():
            raise ProviderError("malformed_response", "provider returned no content")

        usage = data.get("usage") or {}
        return ProviderResponse(
            content=content.strip(),
            tokens_used=int(usage.get("total_tokens") or 0),
            model_echo=data.get("model"),
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


class ProviderInvocation(BaseModel):
    prompt: str
    model_id: str
    max_tokens: int
    temperature: float


class MockTextProvider(BaseTextProvider):
    """
    Scripted provider for local runs and tests.

    Each call consumes the next entry of `failures` (a ProviderError to raise,
    or None) and of `responses` (the last response repeats). `delay_seconds`
    holds the call open, and `release`, when given, blocks until it is set.
    """

    def __init__(
        self,
        responses: Optional[Sequence[str]] = None,
        failures: Optional[Sequence[Optional[ProviderError]]] = None,
        delay_seconds: float = 0.0,
        tokens_used: int = 42,
        release: Optional[asyncio.Event] = None,
    ):
        self._responses = list(responses or ["Dear Admissions Committee, ..."])
        self._failures = list(failures or [])
        self._delay_seconds = delay_seconds
        self._tokens_used = tokens_used
        self._release = release
        self._invocations: list[ProviderInvocation] = []
        self.started = asyncio.Event()

    async def generate(
        self, prompt: str, model_id: str, max_tokens: int, temperature: float
    ) -> ProviderResponse:
        call_index = len(self._invocations)
        self._invocations.append(
            ProviderInvocation(
                prompt=prompt, model_id=model_id, max_tokens=max_tokens, temperature=temperature
            )
        )
        self.started.set()

        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)
        if self._release is not None:
            await self._release.wait()

        if call_index < len(self._failures) and self._failures[call_index] is not None:
            raise self._failures[call_index]

        content = self._responses[min(call_index, len(self._responses) - 1)]
        return ProviderResponse(
            content=content, tokens_used=self._tokens_used, model_echo=model_id
        )

    @property
    def invocation_count(self) -> int:
        return len(self._invocations)

    @property
    def invocations(self) -> list[ProviderInvocation]:
        return self._invocations.copy()

    def reset(self) -> None:
        self._invocations = []
        self.started = asyncio.Event()
