"""Custom exception hierarchy for ReddiVox."""


class ReddiVoxError(Exception):
    """Base exception for all ReddiVox errors."""

    error_key = "errors.unknown"

    def __init__(self, message: str = "An error occurred in ReddiVox"):
        self.message = message
        super().__init__(self.message)


class ConfigError(ReddiVoxError):
    """Configuration is invalid or missing."""

    error_key = "errors.config"

    def __init__(self, message: str = "Configuration error"):
        super().__init__(message)


class InvalidArgumentError(ReddiVoxError, ValueError):
    """Caller passed an out-of-range or unknown argument value."""

    error_key = "errors.invalid_argument"

    def __init__(self, message: str = "Invalid argument"):
        super().__init__(message)


# --- Platform authentication ---

class AuthError(ReddiVoxError):
    """Token exchange with the platform failed."""

    error_key = "errors.auth"

    def __init__(self, message: str = "Reddit authentication failed"):
        super().__init__(message)


class IncompleteCredentialsError(AuthError, ConfigError):
    """Credentials are missing fields. Raised before any network call."""

    error_key = "errors.auth.incomplete_credentials"

    def __init__(self, message: str = "Reddit credentials are not fully configured"):
        super().__init__(message)


# --- Content fetching ---

class FetchError(ReddiVoxError):
    """Base exception for content fetch errors."""

    error_key = "errors.fetch"

    def __init__(self, message: str = "Failed to fetch data from Reddit"):
        super().__init__(message)


class FetchNetworkError(FetchError):
    """Transport failure, timeout or unexpected HTTP status."""

    error_key = "errors.fetch.network"

    def __init__(self, message: str = "Network error while contacting Reddit",
                 status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class FetchDecodeError(FetchError):
    """Response body could not be decoded into the expected shape."""

    error_key = "errors.fetch.decode"

    def __init__(self, message: str = "Could not decode Reddit response"):
        super().__init__(message)


class PostNotFoundError(FetchError):
    """HTTP 404 or empty result for the requested entity."""

    error_key = "errors.fetch.not_found"

    def __init__(self, message: str = "Post not found"):
        super().__init__(message)


# --- Narration synthesis ---

class SynthesisError(ReddiVoxError):
    """Base exception for narration synthesis errors."""

    error_key = "errors.synthesis"

    def __init__(self, message: str = "Speech synthesis failed"):
        super().__init__(message)


class UnsupportedProviderError(SynthesisError):
    """Voice selection addressed to a different provider."""

    error_key = "errors.synthesis.unsupported_provider"

    def __init__(self, message: str = "Voice provider not supported by this synthesizer"):
        super().__init__(message)


class MissingVoiceError(SynthesisError):
    """Provider requires a voice id and none was supplied."""

    error_key = "errors.synthesis.missing_voice"

    def __init__(self, message: str = "A voice id is required for this provider"):
        super().__init__(message)


class MissingCredentialError(SynthesisError, ConfigError):
    """Provider API key is not configured."""

    error_key = "errors.synthesis.missing_credential"

    def __init__(self, message: str = "Speech provider API key is not configured"):
        super().__init__(message)


class RemoteSynthesisError(SynthesisError):
    """Remote synthesis endpoint returned a non-success status."""

    error_key = "errors.synthesis.remote"

    def __init__(self, status_code: int, body: str = "",
                 message: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Speech API error ({status_code}): {body}")


class InternalSynthesisError(SynthesisError):
    """Unexpected failure inside a synthesizer."""

    error_key = "errors.synthesis.internal"

    def __init__(self, message: str = "Unexpected error during speech synthesis"):
        super().__init__(message)


def describe_error(error: Exception) -> str:
    """Structured, user-facing description of an error.

    ReddiVox errors render as "<error_key>: <message>". Anything else is
    reported under the generic key so raw exception text never leaks out.
    """
    if isinstance(error, ReddiVoxError):
        return f"{error.error_key}: {error.message}"
    return f"{ReddiVoxError.error_key}: {type(error).__name__}"
