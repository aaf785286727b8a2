"""Narrative generator HTTP client (OpenAI-compatible chat completions)"""

import time
import httpx

from audit_gateway.config import settings
from audit_gateway.domain.exceptions import (
    NarrativeQuotaError,
    NarrativeRateLimitError,
    UpstreamNarrativeError,
)
from audit_gateway.infrastructure.observability.metrics import (
    narrative_failure_counter,
    narrative_latency_histogram,
)


class NarrativeClient:
    """Client for the external text-generation endpoint"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.narrative_api_base
        self.api_key = api_key if api_key is not None else settings.narrative_api_key
        self.model = model or settings.narrative_model
        self.timeout = timeout or settings.narrative_timeout_seconds
        self.transport = transport

    async def generate(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        """
        Run one chat completion and return the message content.

        No retries: callers re-trigger manually.

        Raises:
            NarrativeRateLimitError: upstream answered 429
            NarrativeQuotaError: upstream answered 402 (credits exhausted)
            UpstreamNarrativeError: missing key, timeout, other HTTP errors, or no content
        """
        if not self.api_key:
            narrative_failure_counter.labels(kind="config").inc()
            raise UpstreamNarrativeError("Narrative API key is not configured")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            start_time = time.time()
            try:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "model": self.model,
                        "messages": [
                            {"role": "system", "content": system_prompt},
                            {"role": "user", "content": user_prompt},
                        ],
                        "temperature": temperature,
                    },
                )

                if response.status_code == 429:
                    narrative_failure_counter.labels(kind="rate_limit").inc()
                    raise NarrativeRateLimitError("Narrative service rate limit exceeded")
                if response.status_code == 402:
                    narrative_failure_counter.labels(kind="quota").inc()
                    raise NarrativeQuotaError("Narrative service credits exhausted")

                response.raise_for_status()
                data = response.json()
                content = data["choices"][0]["message"]["content"]

            except httpx.TimeoutException as e:
                narrative_failure_counter.labels(kind="timeout").inc()
                raise UpstreamNarrativeError(f"Narrative API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                narrative_failure_counter.labels(kind="http_error").inc()
                raise UpstreamNarrativeError(f"Narrative API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                narrative_failure_counter.labels(kind="transport").inc()
                raise UpstreamNarrativeError(f"Narrative API unreachable: {e}") from e
            except (KeyError, IndexError, TypeError, ValueError) as e:
                narrative_failure_counter.labels(kind="malformed").inc()
                raise UpstreamNarrativeError(f"Invalid narrative API response: {e}") from e
            finally:
                narrative_latency_histogram.observe(time.time() - start_time)

        if not isinstance(content, str):
            narrative_failure_counter.labels(kind="malformed").inc()
            raise UpstreamNarrativeError(f"Narrative content is {type(content).__name__}, expected text")
        if not content:
            narrative_failure_counter.labels(kind="empty").inc()
            raise UpstreamNarrativeError("No content in narrative response")
        return content
