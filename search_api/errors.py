class BackendUnavailableError(Exception):
    """A search backend could not be reached (connection lost, timeout).

    Raised by backend clients for transient, connection-class failures.
    The search router treats it as a signal to fall back for the current
    request only.
    """

    def __init__(self, backend: str, message: str):
        super().__init__(f"{backend}: {message}")
        self.backend = backend


class SearchUnavailableError(Exception):
    """Neither search backend could serve the request."""
