"""OpenAI Responses API client for photo judgments."""

import json
import logging
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from photo_findings.domain.errors import (
    ImageFormatError,
    ProviderAuthError,
    ProviderQuotaError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderResponseError,
    ProviderUnavailableError,
    VisionError,
)
from photo_findings.services.vision import VisionClient

_logger = logging.getLogger(__name__)

_PROVIDER = "openai"


@dataclass
class OpenAIVisionClient(VisionClient):
    """Vision client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(
        cls, api_key: str, timeout_seconds: float = 60.0, max_retries: int = 0
    ) -> "OpenAIVisionClient":
        """Create a client whose worst-case call stays within one claim lock."""
        return cls(
            client=AsyncOpenAI(
                api_key=api_key, timeout=timeout_seconds, max_retries=max_retries
            )
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()

    async def extract(
        self,
        *,
        model: str,
        instructions: str,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Call OpenAI Responses API with structured outputs."""
        request_payload: dict[str, object] = {
            "model": model,
            "instructions": instructions,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {"type": "input_image", "image_url": image_data_url},
                    ],
                }
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "photo_findings_v1",
                    "strict": True,
                    "schema": schema,
                }
            },
            "temperature": 0.2,
            "max_output_tokens": 2000,
            "store": False,
        }

        try:
            response = await self.client.responses.create(**request_payload)
        except openai.APIError as exc:
            raise _translate_api_error(exc) from exc

        output_text = response.output_text
        if not output_text:
            raise ProviderResponseError(
                "OpenAI returned an empty response", provider=_PROVIDER
            )
        try:
            return json.loads(output_text)
        except json.JSONDecodeError as exc:
            _logger.error("vision.llm.parse_error text=%s", output_text[:200])
            raise ProviderResponseError(
                "Failed to parse OpenAI response as JSON", provider=_PROVIDER
            ) from exc


def _translate_api_error(exc: openai.APIError) -> VisionError:
    """Map an OpenAI SDK error into the failure taxonomy."""
    message = str(exc)
    if isinstance(exc, openai.AuthenticationError | openai.PermissionDeniedError):
        return ProviderAuthError(message, provider=_PROVIDER)
    if isinstance(exc, openai.RateLimitError):
        if exc.code == "insufficient_quota":
            return ProviderQuotaError(message, provider=_PROVIDER)
        return ProviderRateLimitError(message, provider=_PROVIDER)
    if isinstance(exc, openai.APIConnectionError):
        return ProviderUnavailableError(message, provider=_PROVIDER)
    if isinstance(exc, openai.BadRequestError):
        if "image" in message.lower():
            return ImageFormatError(message, provider=_PROVIDER)
        return ProviderRequestError(message, provider=_PROVIDER)
    if isinstance(exc, openai.APIStatusError) and exc.status_code >= 500:
        return ProviderUnavailableError(message, provider=_PROVIDER)
    if isinstance(exc, openai.APIStatusError):
        return ProviderRequestError(message, provider=_PROVIDER)
    return ProviderResponseError(message, provider=_PROVIDER)
