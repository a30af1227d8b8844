"""Background decoding — read, detect and tabularize in a separate process.

The child process and the caller share nothing: requests and replies are
plain dicts pickled through a pipe.

Request:  ``{"fileData": bytes}``
Replies:  ``{"success": True, "data": [record, ...]}``
          ``{"success": False, "error": "message"}``
          ``{"type": "log", "message": "..."}`` (diagnostics, any number)
"""

from __future__ import annotations

import logging
import multiprocessing
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from multiprocessing.connection import Connection
from typing import Any

from sheetscope.config import DetectorSettings
from sheetscope.io import read_matrix
from sheetscope.models import Record
from sheetscope.tabulate import build_dataset

logger = logging.getLogger(__name__)

Message = dict[str, Any]


class WorkerBusyError(RuntimeError):
    """Raised when a new request is submitted before the previous one finished."""


class WorkerClosedError(RuntimeError):
    """Raised when submitting to a worker that was terminated."""


def log_message(message: str) -> Message:
    return {"type": "log", "message": message}


def is_log_message(message: object) -> bool:
    return isinstance(message, dict) and message.get("type") == "log"


def handle_message(message: Message, post: Callable[[Message], None],
                   settings: DetectorSettings | None = None) -> None:
    """Process one request, posting log lines and exactly one final reply."""
    try:
        file_data = message.get("fileData") if isinstance(message, dict) else None
        if not isinstance(file_data, (bytes, bytearray, memoryview)):
            raise ValueError("Request has no 'fileData' byte buffer")
        matrix = read_matrix(bytes(file_data))
        post(log_message(f"Analyzing spreadsheet, rows: {len(matrix)}"))
        records, report = build_dataset(
            matrix, settings, on_log=lambda text: post(log_message(text))
        )
        for warning in report.warnings:
            post(log_message(f"Warning: {warning}"))
    except Exception as exc:
        post({"success": False, "error": str(exc) or type(exc).__name__})
        return
    post({"success": True, "data": records})


def _serve(conn: Connection, settings: DetectorSettings | None) -> None:
    """Child-process loop: one request in, messages out, until the pipe closes."""
    while True:
        try:
            message = conn.recv()
        except (EOFError, OSError):
            break
        try:
            handle_message(message, conn.send, settings)
        except (BrokenPipeError, OSError):
            break
    conn.close()


@dataclass
class DecodeReply:
    """Final reply of one decode request, parsed from the wire dict."""

    success: bool
    records: list[Record] = field(default_factory=list)
    error: str = ""

    @classmethod
    def from_message(cls, message: Message) -> DecodeReply:
        if not isinstance(message, dict) or "success" not in message:
            raise ValueError(f"Not a decode reply: {message!r}")
        if message["success"]:
            data = message.get("data") or []
            return cls(success=True, records=list(data))
        return cls(success=False, error=str(message.get("error") or "Unknown error"))

    def to_message(self) -> Message:
        if self.success:
            return {"success": True, "data": list(self.records)}
        return {"success": False, "error": self.error}


class DecodeWorker:
    """One background process that decodes spreadsheets on request.

    At most one request is in flight. :meth:`cancel` drops it and restarts
    the process on the next submit; :meth:`terminate` drops it for good.
    Either way the caller sees ``None`` instead of a reply.
    """

    def __init__(self, settings: DetectorSettings | None = None, *,
                 start_method: str = "spawn") -> None:
        self.settings = settings
        self._ctx = multiprocessing.get_context(start_method)
        self._process: Any = None
        self._conn: Connection | None = None
        self._pending = False
        self._closed = False

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self) -> Connection:
        """Make sure a live decoder process is running; return its channel."""
        if self._closed:
            raise WorkerClosedError("Worker has been terminated")
        if self._process is not None and self._conn is not None:
            if self._process.is_alive():
                return self._conn
            logger.debug("Decoder process exited (code %s); restarting", self._process.exitcode)
            self._stop_process()
        parent_conn, child_conn = self._ctx.Pipe(duplex=True)
        process = self._ctx.Process(
            target=_serve, args=(child_conn, self.settings),
            name="sheetscope-decoder", daemon=True,
        )
        process.start()
        child_conn.close()
        self._process = process
        self._conn = parent_conn
        logger.debug("Decoder process started (pid %s)", process.pid)
        return parent_conn

    def _stop_process(self) -> None:
        self._pending = False
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        if self._process is not None:
            if self._process.is_alive():
                self._process.terminate()
            self._process.join(timeout=5)
            logger.debug("Decoder process stopped")
            self._process = None

    def cancel(self) -> None:
        """Drop the in-flight request, if any; a late reply can never be read."""
        if self._pending:
            logger.debug("Cancelling outstanding decode request")
            self._stop_process()

    def terminate(self) -> None:
        """Tear the process down for good; any in-flight request is dropped."""
        self._closed = True
        self._stop_process()

    def __enter__(self) -> DecodeWorker:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.terminate()

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    # ── Requests ────────────────────────────────────────────────

    def submit(self, file_data: bytes) -> None:
        """Send one decode request; the reply is collected with poll/wait."""
        if self._pending:
            raise WorkerBusyError("A decode request is already in progress")
        conn = self.start()
        conn.send({"fileData": bytes(file_data)})
        self._pending = True

    def poll(self, timeout: float | None = 0.0) -> DecodeReply | None:
        """Drain messages for up to *timeout* seconds; return the final reply if it came.

        Log messages are forwarded to the module logger and never returned.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._pending and self._conn is not None:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            try:
                if not self._conn.poll(remaining):
                    return None
                message = self._conn.recv()
            except (EOFError, OSError):
                logger.warning("Decoder process died with a request outstanding")
                self._stop_process()
                return None
            if is_log_message(message):
                logger.debug("[decoder] %s", message.get("message", ""))
                continue
            self._pending = False
            return DecodeReply.from_message(message)
        return None

    def wait(self, timeout: float | None = None) -> DecodeReply | None:
        """Block until the reply arrives, the timeout passes or the worker dies."""
        return self.poll(timeout)
