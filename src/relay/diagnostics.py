# src/relay/diagnostics.py

import logging
import queue
import threading
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import graypy

logger = logging.getLogger(__name__)

SUMMARY_QUEUE_SIZE = 10000
DROP_REPORT_INTERVAL = 100


def set_logger(target_logger: logging.Logger) -> None:
    global logger
    logger = target_logger


def create_gelf_handler(gelf_server: str) -> Optional[logging.Handler]:
    """Build a graypy handler from a ``udp://host:port`` or ``tcp://host:port`` URL."""
    parsed_url = urlparse(gelf_server)
    if parsed_url.scheme == "udp":
        return graypy.GELFUDPHandler(parsed_url.hostname, parsed_url.port)
    if parsed_url.scheme == "tcp":
        return graypy.GELFTCPHandler(parsed_url.hostname, parsed_url.port)
    logger.error("Unsupported GELF scheme: %s", parsed_url.scheme)
    return None


def summary_message(summary: Dict[str, Any]) -> str:
    """One-line form of a relay summary, e.g. ``POST / 502 (graylog 500) 12ms``."""
    outcome = f"{summary['response_status']}"
    if summary.get("remote_status") is not None:
        outcome += f" (graylog {summary['remote_status']})"
    return f"{summary['method']} {summary['path']} {outcome} {summary['duration_ms']}ms"


class SummaryShipper:
    """Ships per-request relay summaries to a GELF server off the request thread.

    Summaries go onto a bounded queue; a daemon thread hands them to the
    ``gelf`` logger. A full queue drops the summary instead of blocking.
    """

    def __init__(self, handler: logging.Handler, maxsize: int = SUMMARY_QUEUE_SIZE):
        self.gelf_logger = logging.getLogger("gelf")
        self.gelf_logger.setLevel(logging.INFO)
        self.gelf_logger.addHandler(handler)
        self.handler = handler

        self.queue: "queue.Queue[Optional[Tuple[str, Dict[str, Any]]]]" = queue.Queue(
            maxsize=maxsize
        )
        self.drops = 0
        self.thread = threading.Thread(target=self._run, daemon=True, name="gelf-logger")
        self.thread.start()

    def submit(self, summary: Dict[str, Any]) -> bool:
        """Queue a summary; returns False when it was dropped."""
        try:
            self.queue.put_nowait((summary_message(summary), dict(summary)))
        except queue.Full:
            self.drops += 1
            if self.drops == 1:
                logger.warning("GELF summary queue full, dropping relay summaries")
            elif self.drops % DROP_REPORT_INTERVAL == 0:
                logger.error(
                    "GELF summary queue saturated: %d summaries dropped (queue %d/%d)",
                    self.drops,
                    self.queue.qsize(),
                    self.queue.maxsize,
                )
            return False
        return True

    def _run(self) -> None:
        while True:
            item = self.queue.get()
            try:
                if item is None:
                    return
                message, summary = item
                self.gelf_logger.info(message, extra=summary)
            except Exception as e:
                # One failed send must not stop later summaries
                logger.error("Failed to ship relay summary: %s", e)
            finally:
                self.queue.task_done()

    def close(self, timeout: float = 30) -> bool:
        """Drain pending summaries and stop the worker; True if it stopped in time."""
        if not self.thread.is_alive():
            return True
        pending = self.queue.qsize()
        if pending:
            logger.info("Flushing %d relay summaries...", pending)
        self.queue.put(None)
        self.thread.join(timeout=timeout)
        self.gelf_logger.removeHandler(self.handler)
        return not self.thread.is_alive()
