"""Errors raised by destination adapters."""


class DestinationConfigError(ValueError):
    """A destination is missing configuration it needs to reach its API."""


class UpstreamError(RuntimeError):
    """The vendor API answered, but with an error payload."""

    def __init__(self, destination: str, message: str):
        super().__init__(f"{destination}: {message}")
        self.destination = destination
