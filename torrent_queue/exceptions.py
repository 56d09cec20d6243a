"""
Custom exception hierarchy for torrent-queue.
Provides specific exception types for the download client reconciliation engine.
"""


class TorrentQueueError(Exception):
    """Base exception for all torrent-queue errors."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


# Configuration errors
class ConfigurationError(TorrentQueueError):
    """Raised when there's a configuration problem."""

    pass


# Download client errors
class DownloadClientError(TorrentQueueError):
    """Base exception for download client errors."""

    pass


class ClientUnavailableError(DownloadClientError):
    """Raised when a call to the download client fails (network, protocol, RPC result)."""

    pass


class ClientAuthenticationError(ClientUnavailableError):
    """Raised when the download client rejects our credentials."""

    pass


class IncompatibleClientVersionError(DownloadClientError):
    """Raised when the daemon's advertised version is below the supported minimum."""

    def __init__(self, version: str, minimum: str, message: str | None = None):
        super().__init__(
            message
            or f"Transmission version not supported: {version!r}, should be {minimum} or higher"
        )
        self.version = version
        self.minimum = minimum


# Validation errors
class ValidationError(TorrentQueueError):
    """Raised when input validation fails."""

    pass


class InvalidReleaseUrlError(ValidationError):
    """Raised when a submission has no extractable identifier."""

    def __init__(self, url: str, message: str | None = None):
        super().__init__(message or f"Invalid release url: {url}")
        self.url = url


# Resilience errors
class CircuitOpenError(TorrentQueueError):
    """Raised when the monitor's circuit breaker is open."""

    def __init__(self, message: str, name: str | None = None, reset_timeout: float | None = None):
        super().__init__(message)
        self.name = name
        self.reset_timeout = reset_timeout
