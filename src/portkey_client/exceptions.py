"""Exception hierarchy for portkey-client."""

from __future__ import annotations


class PortkeyError(Exception):
    """Base exception for all portkey-client errors."""


class ConfigurationError(PortkeyError):
    """Raised when client settings cannot be resolved into a valid config."""


class MissingCredentialError(ConfigurationError):
    """Raised when a required credential is absent both explicitly and in the env."""

    def __init__(self, env_var: str, detail: str | None = None) -> None:
        self.env_var = env_var
        super().__init__(
            detail
            or f"No API key configured. Call with_api_key() or set {env_var}."
        )


class InvalidBaseUrlError(ConfigurationError):
    """Raised when the base URL is not a well-formed absolute http(s) URL."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid base URL '{url}': {reason}")


class InvalidTimeoutError(ConfigurationError):
    """Raised when the timeout is unparsable or outside the accepted range."""

    def __init__(self, value: object, minimum: float, maximum: float) -> None:
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"Invalid timeout {value!r}: must be between "
            f"{minimum:g} and {maximum:g} seconds."
        )


class TransportInitError(PortkeyError):
    """Raised when the default HTTP transport cannot be constructed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to initialize HTTP transport: {reason}")


class RequestError(PortkeyError):
    """Raised when the transport fails to complete a request."""

    def __init__(self, method: str, url: str, original: Exception) -> None:
        self.method = method
        self.url = url
        self.original = original
        super().__init__(f"{method} {url} failed: {original}")


class APIStatusError(PortkeyError):
    """Raised when the gateway answers with an HTTP error status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        body: object = None,
        request_id: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.body = body
        self.request_id = request_id
        super().__init__(f"Gateway returned HTTP {status_code}: {message}")

    @property
    def retryable(self) -> bool:
        """Whether the status is one worth retrying (429 or 5xx)."""
        return self.status_code == 429 or self.status_code >= 500


class ResponseValidationError(PortkeyError):
    """Raised when a response body cannot be validated against the model."""

    def __init__(self, model_name: str, reason: str) -> None:
        self.model_name = model_name
        super().__init__(
            f"Failed to validate response as {model_name}: {reason}"
        )
