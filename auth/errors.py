from __future__ import annotations


class SpotifyAuthError(RuntimeError):
    """Base class for every failure raised by the OAuth core."""


class ConfigurationMissing(SpotifyAuthError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Missing required configuration: {', '.join(missing)}")
        self.missing = list(missing)


class ConfigurationInvalid(ConfigurationMissing, ValueError):
    def __init__(self, key: str, reason: str) -> None:
        SpotifyAuthError.__init__(self, f"Invalid configuration for {key}: {reason}")
        self.missing = [key]
        self.reason = reason


class ListenerBindFailure(SpotifyAuthError):
    def __init__(self, host: str, port: int, reason: str) -> None:
        super().__init__(f"Could not bind callback listener on {host}:{port}: {reason}")
        self.host = host
        self.port = port


class ListenerError(SpotifyAuthError):
    pass


class MissingCode(SpotifyAuthError):
    def __init__(self, provider_error: str | None = None) -> None:
        message = "No authorization code in callback."
        if provider_error:
            message = f"No authorization code in callback (provider error: {provider_error})."
        super().__init__(message)
        self.provider_error = provider_error


class AuthorizationTimeout(SpotifyAuthError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout:g}s waiting for authorization.")
        self.timeout = timeout


class TokenExchangeFailed(SpotifyAuthError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Token request failed with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class MalformedResponse(SpotifyAuthError):
    pass


class TokenNotFound(SpotifyAuthError, LookupError):
    pass


class InvalidInput(SpotifyAuthError, ValueError):
    pass
