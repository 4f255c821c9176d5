"""
Flask entry point for the GELF relay.

Every POST, on any path, is converted to GELF and forwarded to Graylog by
``relay.handlers``. This module owns the surrounding service: log levels,
request IDs, the status route, oversized-body handling and shutdown.
"""

import logging
import os
import signal
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import uuid_utils
from flask import Flask, Response, g, jsonify, request
from flask.logging import create_logger
from werkzeug.exceptions import RequestEntityTooLarge

from relay import diagnostics, forwarder, handlers, mapper
from relay.diagnostics import SummaryShipper, create_gelf_handler

# A relayed payload is one log record
MAX_CONTENT_LENGTH = 1024 * 1024  # 1MB
STATUS_PATH = "/relay-status"
VERSION = "__VERSION__"  # <-- This will be replaced during the release process
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Server:
    """Builds the Flask app and the optional summary shipper from the environment."""

    def __init__(self):
        self.app = Flask(__name__)
        self.app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH
        self.logger = create_logger(self.app)
        self.shipper: Optional[SummaryShipper] = None
        self._stopped = False

        self._setup_logging()
        self._setup_summary_shipping()
        self._setup_signal_handlers()

        self.app.before_request(self.before_request)
        self.app.after_request(self.after_request)
        self.app.register_error_handler(RequestEntityTooLarge, self.payload_too_large)
        self.app.route(STATUS_PATH, methods=["GET"])(self.relay_status)
        self.app.route("/", defaults={"path": ""}, methods=self.relay_methods())(self.relay)
        self.app.route("/<path:path>", methods=self.relay_methods())(self.relay)

    def _setup_logging(self) -> None:
        """Apply DEBUG_LEVEL (unknown values mean DEBUG) and share the app logger."""
        level_name = os.getenv("DEBUG_LEVEL", "INFO").upper()
        if level_name not in LOG_LEVELS:
            level_name = "DEBUG"
        self.logger.setLevel(getattr(logging, level_name))

        for module in (handlers, mapper, forwarder, diagnostics):
            module.set_logger(self.logger)

    def _setup_summary_shipping(self) -> None:
        gelf_server = os.getenv("GELF_SERVER")
        if not gelf_server:
            self.logger.info("GELF_SERVER not set; relay summaries are only logged locally")
            return

        handler = create_gelf_handler(gelf_server)
        if handler is None:
            return
        self.shipper = SummaryShipper(handler)
        self.logger.info(f"Shipping relay summaries to {gelf_server}")

    def _setup_signal_handlers(self) -> None:
        if os.getenv("TESTING") or self.app.config.get("TESTING"):
            return
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

    def _handle_signal(self, signum, frame):
        self.logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        self.shutdown()
        sys.exit(0)

    def shutdown(self) -> None:
        """Flush queued summaries once; later calls do nothing."""
        if self._stopped:
            return
        self._stopped = True

        if self.shipper is None:
            return
        if self.shipper.close():
            self.logger.info(f"Summary shipper stopped ({self.shipper.drops} dropped)")
        else:
            self.logger.warning(
                f"Summary shipper did not stop cleanly; {self.shipper.queue.qsize()} lost"
            )

    def before_request(self) -> None:
        g.start_time = time.time()
        g.request_id = str(uuid_utils.uuid7())
        # Checked up front so the 413 does not depend on how the body is read
        if (request.content_length or 0) > MAX_CONTENT_LENGTH:
            raise RequestEntityTooLarge()

    def after_request(self, response: Response) -> Response:
        response.headers["X-Request-ID"] = g.request_id
        if request.path == STATUS_PATH:
            return response

        summary = self.relay_summary(response, time.time() - g.start_time)
        self.logger.info(f"{diagnostics.summary_message(summary)} [{summary['request_id']}]")
        if self.shipper is not None:
            self.shipper.submit(summary)
        return response

    def relay_summary(self, response: Response, duration: float) -> Dict[str, Any]:
        """Describe how one request was relayed; the payload itself is left out."""
        remote_status = getattr(g, "remote_status", None)
        return {
            "request_id": g.request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION if VERSION != "__VERSION__" else "dev",
            "remote_addr": request.remote_addr,
            "method": request.method,
            "path": request.path,
            "request_size": request.content_length or 0,
            "response_status": response.status_code,
            "remote_status": remote_status,
            "forwarded": remote_status is not None and response.status_code == 200,
            "duration_ms": int(duration * 1000),
        }

    def payload_too_large(self, error: RequestEntityTooLarge):
        request_id = getattr(g, "request_id", "-")
        self.logger.warning(f"[{request_id}] Rejected body over {MAX_CONTENT_LENGTH} bytes")
        return (
            jsonify(
                {
                    "success": False,
                    "error": f"Request body exceeds {MAX_CONTENT_LENGTH} bytes",
                }
            ),
            413,
        )

    def relay_status(self):
        return jsonify({"service": "ok", "version": VERSION if VERSION != "__VERSION__" else "dev"})

    def relay(self, path: str) -> Response:
        return handlers.handle_request()

    @staticmethod
    def relay_methods() -> List[str]:
        """Methods routed to the relay so that anything but POST gets its 405 body."""
        return ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "TRACE"]

    def run(self) -> None:
        port = int(os.getenv("PORT", 3000))
        self.app.run(host="0.0.0.0", port=port)


app = Server().app

if __name__ == "__main__":
    Server().run()
