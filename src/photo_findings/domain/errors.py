"""Failure taxonomy for photo analysis providers."""


class VisionError(Exception):
    """Base error raised by vision providers and the orchestrator."""

    code = "vision_error"
    retryable = True
    alert = False

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ImageFormatError(VisionError):
    """Image bytes are in an encoding the provider cannot read."""

    code = "image_format"
    retryable = False


class ImageFetchError(VisionError):
    """Raw image bytes could not be downloaded."""

    code = "image_fetch"

    def __init__(
        self, message: str, provider: str | None = None, *, retryable: bool = True
    ) -> None:
        super().__init__(message, provider)
        self.retryable = retryable


class ProviderAuthError(VisionError):
    """Credentials or provider configuration are invalid."""

    code = "provider_auth"
    retryable = False
    alert = True


class ProviderQuotaError(VisionError):
    """Account quota or billing limit reached."""

    code = "provider_quota"
    retryable = False
    alert = True


class ProviderRateLimitError(VisionError):
    """Provider throttled the request."""

    code = "rate_limited"


class ProviderUnavailableError(VisionError):
    """Timeout, connection failure or provider-side server error."""

    code = "provider_unavailable"


class ProviderRequestError(VisionError):
    """Provider rejected the request for a reason other than the image."""

    code = "provider_request"
    retryable = False


class ProviderResponseError(VisionError):
    """Provider answered with an empty, unparsable or invalid payload."""

    code = "bad_response"


class VisionFailedError(VisionError):
    """Both providers failed for the same photo."""

    code = "vision_failed"

    def __init__(self, detector_error: Exception, llm_error: Exception) -> None:
        super().__init__(
            f"detector={error_code(detector_error)}: {detector_error}; "
            f"llm={error_code(llm_error)}: {llm_error}"
        )
        self.detector_error = detector_error
        self.llm_error = llm_error


def error_code(exc: BaseException) -> str:
    """Return the taxonomy code for an exception."""
    if isinstance(exc, VisionError):
        return exc.code
    return "unexpected"


def should_alert(exc: BaseException) -> bool:
    """Whether operators must be paged rather than left to retries."""
    if isinstance(exc, VisionFailedError):
        return should_alert(exc.detector_error) or should_alert(exc.llm_error)
    return isinstance(exc, VisionError) and exc.alert
