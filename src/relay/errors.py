# src/relay/errors.py

from typing import Optional


class RelayError(Exception):
    """Base class for failures while relaying a request to Graylog."""


class ConfigurationError(RelayError):
    """A required setting is missing or empty."""


class InputParseError(RelayError):
    """The inbound request body is not a JSON object."""


class EmbeddedParseError(RelayError):
    """The embedded ``Message`` field could not be decoded as JSON.

    Never fatal: the mapper records the raw text and the decoder error on
    the GELF record instead.
    """


class RemoteRejection(RelayError):
    """Graylog answered with a non-success status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Graylog error: {body}")
        self.status_code = status_code
        self.body = body


class TransportError(RelayError):
    """The outbound HTTP call to Graylog failed before a response arrived."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RecordEncodeError(RelayError):
    """The GELF record cannot be serialised as standard JSON."""
