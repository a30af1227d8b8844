"""Dataset session — the single owner of the engine, the decoder and the store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from sheetscope.engine import DatasetEngine
from sheetscope.models import Record
from sheetscope.store import RecordStore
from sheetscope.worker import DecodeReply

logger = logging.getLogger(__name__)

DECODE_FAILED_MESSAGE = "Error processing the file."


class Decoder(Protocol):
    def submit(self, file_data: bytes) -> None: ...

    def wait(self, timeout: float | None = None) -> DecodeReply | None: ...

    def cancel(self) -> None: ...

    def terminate(self) -> None: ...


def _log_notification(message: str) -> None:
    logger.error(message)


class DatasetSession:
    """Loads, keeps and forgets one dataset.

    The in-memory collection is the source of truth: store failures are
    logged and ignored, and a failed decode leaves the current dataset as it
    was.
    """

    def __init__(self, decoder: Decoder, store: RecordStore, *,
                 engine: DatasetEngine | None = None,
                 notify: Callable[[str], None] | None = None) -> None:
        self.decoder = decoder
        self.store = store
        self.engine = engine or DatasetEngine()
        self.notify = notify or _log_notification
        self.last_error: str = ""

    @property
    def has_data(self) -> bool:
        return bool(self.engine.records)

    def restore(self) -> bool:
        """Load the stored collection, if any. Returns True when records came back."""
        try:
            saved = self.store.load()
        except Exception:
            logger.exception("Error restoring data")
            return False
        if not saved:
            return False
        self.engine.replace(saved)
        logger.info("Restored %d records", len(saved))
        return True

    def upload(self, file_data: bytes, timeout: float | None = None) -> DecodeReply | None:
        """Decode *file_data* in the background and adopt the result.

        Returns the reply, or ``None`` when the decoder was torn down or the
        timeout passed before a reply arrived. In that case the request is
        cancelled, so the next upload starts clean.
        """
        self.last_error = ""
        self.decoder.submit(file_data)
        reply = self.decoder.wait(timeout)
        if reply is None:
            logger.warning("Decode request ended without a reply")
            self.decoder.cancel()
            return None
        if not reply.success:
            logger.error("Worker error: %s", reply.error)
            self.last_error = reply.error
            self.notify(f"{DECODE_FAILED_MESSAGE} {reply.error}".strip())
            return reply
        self._adopt(reply.records)
        return reply

    def _adopt(self, records: list[Record]) -> None:
        self.engine.replace(records)
        logger.info("Loaded %d records", len(records))
        try:
            self.store.save(records)
        except Exception:
            logger.exception("Error saving data")

    def reset(self) -> None:
        """Forget the dataset, in memory and in the store."""
        try:
            self.store.clear()
        except Exception:
            logger.exception("Error clearing stored data")
        self.engine.reset()

    def close(self) -> None:
        self.decoder.terminate()
