from __future__ import annotations


class WatcherError(Exception):
    pass


class ConfigurationError(WatcherError):
    """A required endpoint, secret or dependency is missing."""


class InvalidChainError(WatcherError):
    """Candidate belongs to a different chain than the watcher processing it."""

    def __init__(self, expected: str, got: str):
        super().__init__(f"invalid chain for watcher: expected {expected!r}, got {got!r}")
        self.expected = expected
        self.got = got


class CoreApiError(WatcherError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"core api request failed ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class CallbackRejectedError(WatcherError):
    def __init__(self, status_code: int):
        super().__init__(f"callback rejected with status {status_code}")
        self.status_code = status_code
