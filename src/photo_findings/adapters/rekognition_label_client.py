"""AWS Rekognition DetectLabels client."""

import asyncio
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from photo_findings.domain.errors import (
    ImageFormatError,
    ProviderAuthError,
    ProviderQuotaError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderUnavailableError,
    VisionError,
)
from photo_findings.services.labels import LabelClient

_PROVIDER = "aws-rekognition"

_FORMAT_CODES = {"InvalidImageFormatException", "ImageTooLargeException"}
_AUTH_CODES = {
    "AccessDeniedException",
    "UnrecognizedClientException",
    "InvalidSignatureException",
    "ExpiredTokenException",
}
_QUOTA_CODES = {"LimitExceededException"}
_THROTTLE_CODES = {"ThrottlingException", "ProvisionedThroughputExceededException"}
_SERVER_CODES = {"InternalServerError", "ServiceUnavailableException"}


@dataclass
class RekognitionLabelClient(LabelClient):
    """Label client backed by Rekognition DetectLabels."""

    client: Any

    @classmethod
    def create(
        cls,
        region: str,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> "RekognitionLabelClient":
        """Create a Rekognition client for a region."""
        return cls(
            client=boto3.client(
                "rekognition",
                region_name=region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
            )
        )

    async def detect_labels(
        self, *, image_bytes: bytes, max_labels: int, min_confidence: float
    ) -> dict[str, object]:
        """Call DetectLabels with inline image bytes."""
        try:
            output = await asyncio.to_thread(
                self.client.detect_labels,
                Image={"Bytes": image_bytes},
                MaxLabels=max_labels,
                MinConfidence=min_confidence,
            )
        except ClientError as exc:
            raise _translate_client_error(exc) from exc
        except NoCredentialsError as exc:
            raise ProviderAuthError(str(exc), provider=_PROVIDER) from exc
        except BotoCoreError as exc:
            raise ProviderUnavailableError(str(exc), provider=_PROVIDER) from exc

        labels = [
            {"name": label.get("Name"), "confidence": label.get("Confidence")}
            for label in output.get("Labels", [])
        ]
        return {"provider": _PROVIDER, "model": "DetectLabels", "labels": labels}


def _translate_client_error(exc: ClientError) -> VisionError:
    """Map a Rekognition error code into the failure taxonomy."""
    code = exc.response.get("Error", {}).get("Code", "")
    message = f"{code}: {exc}"
    if code in _FORMAT_CODES:
        return ImageFormatError(message, provider=_PROVIDER)
    if code in _AUTH_CODES:
        return ProviderAuthError(message, provider=_PROVIDER)
    if code in _QUOTA_CODES:
        return ProviderQuotaError(message, provider=_PROVIDER)
    if code in _THROTTLE_CODES:
        return ProviderRateLimitError(message, provider=_PROVIDER)
    if code in _SERVER_CODES:
        return ProviderUnavailableError(message, provider=_PROVIDER)
    return ProviderRequestError(message, provider=_PROVIDER)
