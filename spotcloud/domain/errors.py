from typing import Optional


class RateLimited(Exception):
    """Operation was rate limited by provider. Includes suggested wait time in milliseconds."""

    def __init__(self, retry_after_ms: int, message: str = "Rate limited") -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class TemporaryFailure(Exception):
    """Transient provider or network failure. Retrying may succeed."""


class PermanentFailure(Exception):
    """Non-retriable failure due to invalid input or authorization issues."""


class NotFound(Exception):
    """Requested resource was not found."""


class AuthenticationFailed(PermanentFailure):
    """Credential was rejected by the provider."""

    def __init__(self, service: str) -> None:
        super().__init__(f"Authentication failed for {service}. Please reconnect your account.")
        self.service = service


class ServiceUnavailable(TemporaryFailure):
    """Provider is temporarily unavailable (HTTP 503)."""

    def __init__(self, service: str) -> None:
        super().__init__(f"{service} service is currently unavailable. Please try again later.")
        self.service = service


class ConversionError(Exception):
    """Fatal conversion failure: source fetch failed or the playlist is empty."""

    PREFIX = "Conversion failed: "

    def __init__(self, cause: str) -> None:
        super().__init__(f"{self.PREFIX}{cause}")
        self.cause_message = cause


def error_from_status(status: int,
                      service: str,
                      message: str = "",
                      retry_after: Optional[str] = None) -> Exception:
    """Map an HTTP status returned by a provider to a domain exception.

    Args:
        status: HTTP status code
        service: Provider name used in messages
        message: Provider supplied error message, if any
        retry_after: Raw Retry-After header value (seconds)

    Returns:
        Exception instance to raise
    """
    detail = message or f"HTTP {status}"
    if status == 401:
        return AuthenticationFailed(service)
    if status == 404:
        return NotFound(f"{service}: {detail}")
    if status == 429:
        try:
            retry_after_ms = int(float(retry_after)) * 1000 if retry_after else 1000
        except (TypeError, ValueError):
            retry_after_ms = 1000
        return RateLimited(retry_after_ms=retry_after_ms, message=f"Rate limit exceeded for {service}")
    if status == 503:
        return ServiceUnavailable(service)
    if status >= 500:
        return TemporaryFailure(f"{service} API error: {detail}")
    return PermanentFailure(f"{service} API error: {detail}")


def is_recoverable(error: BaseException) -> bool:
    """Whether retrying the operation that raised `error` may succeed."""
    if isinstance(error, ConversionError) and error.__cause__ is not None:
        return is_recoverable(error.__cause__)
    return not isinstance(error, (PermanentFailure, NotFound))
