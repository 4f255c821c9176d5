# src/relay/forwarder.py

import json
import logging
from typing import Any, Mapping, NamedTuple

import requests

from relay.errors import ConfigurationError, RecordEncodeError, TransportError

logger = logging.getLogger(__name__)


class RemoteResult(NamedTuple):
    """What Graylog answered, uninterpreted."""

    ok: bool
    status_code: int
    body: str


def set_logger(target_logger: logging.Logger) -> None:
    global logger
    logger = target_logger


def graylog_url(host: str, port: str) -> str:
    return f"http://{host}:{port}/gelf"


def send_to_graylog(record: Mapping[str, Any], host: str, port: str) -> RemoteResult:
    """POST a GELF record to a Graylog HTTP GELF input.

    One attempt, no retry, transport-default timeout.

    Raises:
        ConfigurationError: if host or port is empty.
        RecordEncodeError: if the record holds NaN, Infinity or is nested too deeply.
        TransportError: if the request could not be completed.
    """
    if not host:
        raise ConfigurationError("GRAYLOG_HOST environment variable is not set")
    if not port:
        raise ConfigurationError("GRAYLOG_PORT environment variable is not set")

    url = graylog_url(host, port)
    try:
        payload = json.dumps(dict(record), allow_nan=False)
    except (ValueError, RecursionError) as e:
        raise RecordEncodeError(f"GELF record is not valid JSON: {e}") from e
    logger.debug("Forwarding GELF record to %s: %s", url, payload)

    try:
        response = requests.post(
            url,
            data=payload,
            headers={"Content-Type": "application/json"},
        )
    except requests.RequestException as e:
        logger.error("Failed to reach Graylog at %s: %s", url, e)
        raise TransportError(str(e), cause=e) from e

    return RemoteResult(ok=response.ok, status_code=response.status_code, body=response.text)
