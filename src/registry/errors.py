"""Errors raised by registry resolvers."""


class ResolutionError(Exception):
    """A package could not be resolved (network, HTTP status or parse failure).

    The engine turns it into an UNKNOWN placeholder record; it is never
    cached, so the next run looks the package up again.
    """

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code
