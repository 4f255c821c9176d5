# src/relay/handlers.py

import logging
import os
from typing import Any, Dict

from flask import Response, g, jsonify, request

from relay.errors import InputParseError, RelayError, RemoteRejection
from relay.forwarder import RemoteResult, send_to_graylog
from relay.mapper import convert_to_gelf, decode_json

logger = logging.getLogger(__name__)


def set_logger(target_logger: logging.Logger) -> None:
    global logger
    logger = target_logger


def _parse_request_body() -> Dict[str, Any]:
    """Decode the request body as a JSON object, regardless of Content-Type."""
    raw = request.get_data(as_text=True)
    try:
        data = decode_json(raw)
    except ValueError as e:
        raise InputParseError(f"Invalid JSON body: {e}") from e

    if not isinstance(data, dict):
        raise InputParseError("Request body must be a JSON object")
    return data


def relay_to_graylog() -> RemoteResult:
    """Map the current request body to GELF and forward it.

    Settings are read on every call so missing values surface per request.
    """
    data = _parse_request_body()
    record = convert_to_gelf(data, os.getenv("DEFAULT_SHORT_MESSAGE", ""))
    result = send_to_graylog(
        record, os.getenv("GRAYLOG_HOST", ""), os.getenv("GRAYLOG_PORT", "")
    )
    g.remote_status = result.status_code
    if not result.ok:
        raise RemoteRejection(result.status_code, result.body)
    return result


def _error_response(message: str, status: int) -> Response:
    response = jsonify({"success": False, "error": message})
    response.status_code = status
    return response


def handle_request() -> Response:
    """Relay a POSTed JSON payload to Graylog and report the outcome."""
    if request.method != "POST":
        return Response("Method Not Allowed", status=405, headers={"Allow": "POST"})

    request_id = getattr(g, "request_id", "")
    try:
        relay_to_graylog()
    except RemoteRejection as e:
        logger.error(f"[{request_id}] Graylog rejected record with status {e.status_code}")
        return _error_response(str(e), 502)
    except RelayError as e:
        logger.warning(f"[{request_id}] Relay failed: {e}")
        return _error_response(str(e), 400)

    logger.debug(f"[{request_id}] Record accepted by Graylog")
    return jsonify({"success": True})
