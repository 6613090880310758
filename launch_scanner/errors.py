"""Error taxonomy shared by the ingestion pipeline.

Callers branch on the class: NotFoundError is terminal for an item,
TransientFetchError (and its chain subclass) may be retried, DataShapeError
and ValidationError degrade the affected field only.
"""


class LaunchScannerError(Exception):
    """Base class for pipeline errors."""


class NotFoundError(LaunchScannerError):
    """The external item no longer exists (HTTP 404)."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(f"{resource} {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class TransientFetchError(LaunchScannerError):
    """Network, timeout, 429 or 5xx failure after bounded retries."""


class ChainQueryError(TransientFetchError):
    """A chain RPC call failed after bounded retries."""

    def __init__(self, method: str, detail: str) -> None:
        super().__init__(f"{method}: {detail}")
        self.method = method
        self.detail = detail


class DataShapeError(LaunchScannerError):
    """A third-party response did not have the expected shape."""

    def __init__(self, message: str, payload: object = None) -> None:
        snippet = repr(payload)[:300] if payload is not None else ""
        super().__init__(f"{message} (payload: {snippet})" if snippet else message)
        self.snippet = snippet


class ValidationError(LaunchScannerError):
    """Malformed input value, e.g. an unparseable amount string."""
