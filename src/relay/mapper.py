# src/relay/mapper.py

import json
import logging
import math
import time
from types import MappingProxyType
from typing import Any, Dict, Mapping

from relay.errors import ConfigurationError, EmbeddedParseError

logger = logging.getLogger(__name__)

GELF_VERSION = "1.1"
# Used when the payload does not name its own host
DEFAULT_HOST = "gelf-relay"
EMBEDDED_PREFIX = "_msg_"

# Input fields consumed by the fixed GELF fields; everything else is residual.
# "message" and "Message" are distinct on purpose.
HANDLED_FIELDS = frozenset(["host", "message", "timestamp", "level", "full_message", "Message"])


def set_logger(target_logger: logging.Logger) -> None:
    global logger
    logger = target_logger


def is_blank(value: Any) -> bool:
    """Return True for values treated as "not supplied".

    None, False, the empty string, numeric zero and NaN are blank. Empty
    lists and dicts are not.
    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)):
        return value == 0 or (isinstance(value, float) and math.isnan(value))
    return False


def flatten_into(target: Dict[str, Any], value: Mapping[str, Any], prefix: str) -> None:
    """Copy ``value`` into ``target`` one level deep, dot-joining nested keys.

    ``{"a": {"b": 1}}`` with prefix ``_msg_`` becomes ``{"_msg_a.b": 1}``.
    None values are dropped and lists are stored as-is.
    """
    for key, item in value.items():
        field_key = f"{prefix}{key}"
        if item is None:
            continue
        if isinstance(item, dict):
            flatten_into(target, item, f"{field_key}.")
        else:
            target[field_key] = item


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid JSON value")


def decode_json(raw: str) -> Any:
    """``json.loads`` limited to standard JSON.

    NaN and Infinity are rejected, and nesting too deep for the decoder is
    reported as a ValueError like any other malformed document.
    """
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except RecursionError as e:
        raise ValueError("JSON document is nested too deeply") from e


def _expand_embedded(raw: str) -> Dict[str, Any]:
    """Decode the embedded Message text and flatten it under ``_msg_``.

    Arrays and strings are keyed by index; numbers and booleans add nothing.
    Fields are built apart from the record so a failure leaves no partial keys.
    """
    try:
        parsed = decode_json(raw)
    except ValueError as e:
        raise EmbeddedParseError(str(e)) from e

    if parsed is None:
        raise EmbeddedParseError("embedded message decoded to null")
    if isinstance(parsed, (list, str)):
        parsed = {str(index): item for index, item in enumerate(parsed)}
    elif not isinstance(parsed, dict):
        return {}

    fields: Dict[str, Any] = {}
    try:
        flatten_into(fields, parsed, EMBEDDED_PREFIX)
    except RecursionError as e:
        raise EmbeddedParseError("embedded message is nested too deeply") from e
    return fields


def convert_to_gelf(data: Mapping[str, Any], default_short_message: str) -> Mapping[str, Any]:
    """Convert an arbitrary JSON object into a GELF 1.1 record.

    Field precedence follows insertion order: the fixed GELF fields, the
    flattened embedded ``Message``, ``level``/``full_message``, then every
    residual input field with an underscore prefix. Later writes win.

    Raises:
        ConfigurationError: if ``default_short_message`` is empty.
    """
    if is_blank(default_short_message):
        raise ConfigurationError("DEFAULT_SHORT_MESSAGE environment variable is not set")

    host = data.get("host")
    message = data.get("message")
    timestamp = data.get("timestamp")

    gelf: Dict[str, Any] = {
        "version": GELF_VERSION,
        "host": DEFAULT_HOST if is_blank(host) else host,
        "short_message": default_short_message if is_blank(message) else message,
        "timestamp": int(time.time()) if is_blank(timestamp) else timestamp,
    }

    embedded = data.get("Message")
    if isinstance(embedded, str) and embedded:
        try:
            embedded_fields = _expand_embedded(embedded)
        except EmbeddedParseError as e:
            logger.debug("Embedded Message is not valid JSON: %s", e)
            gelf["_raw_message"] = embedded
            gelf["_message_parse_error"] = str(e)
        else:
            gelf.update(embedded_fields)

    if "level" in data:
        gelf["level"] = data["level"]

    if not is_blank(data.get("full_message")):
        gelf["full_message"] = data["full_message"]

    for key, value in data.items():
        if key in HANDLED_FIELDS:
            continue
        field_key = key if key.startswith("_") else f"_{key}"
        gelf[field_key] = value

    return MappingProxyType(gelf)
