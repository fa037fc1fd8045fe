"""Sources telling the upload pipeline that processing of a document ended."""
import asyncio
import logging
from typing import Callable, Iterable
from ..config import PROCESSING_COMPLETION, PROCESSING_DELAY_SECONDS


logger = logging.getLogger(__name__)

CompletionCallback = Callable[[str, str], None]


class ProcessingCompletionSource:
    def watch(self, document_id: str, callback: CompletionCallback) -> None:
        """Call ``callback(document_id, status)`` once processing finishes."""
        raise NotImplementedError

    def forget(self, document_ids: Iterable[str]) -> None:
        """Stop watching documents whose outcome was settled elsewhere."""


class TimerCompletionSource(ProcessingCompletionSource):
    """Reports every document as done after a fixed delay.

    Nothing is actually observed; swap in ``CallbackCompletionSource`` once a
    processing backend reports real outcomes.
    """

    def __init__(self, delay: float = PROCESSING_DELAY_SECONDS, status: str = "ready"):
        self.delay = delay
        self.status = status

    def watch(self, document_id, callback):
        loop = asyncio.get_running_loop()
        loop.call_later(self.delay, callback, document_id, self.status)


class CallbackCompletionSource(ProcessingCompletionSource):
    """Completed from outside, e.g. by the processor calling the status endpoint."""

    def __init__(self):
        self._pending: dict[str, list[CompletionCallback]] = {}

    def watch(self, document_id, callback):
        self._pending.setdefault(document_id, []).append(callback)

    def forget(self, document_ids):
        for document_id in document_ids:
            self._pending.pop(document_id, None)

    def is_pending(self, document_id: str) -> bool:
        return document_id in self._pending

    def complete(self, document_id: str, status: str) -> bool:
        callbacks = self._pending.pop(document_id, [])
        for callback in callbacks:
            callback(document_id, status)
        return bool(callbacks)


def build_completion_source(kind: str = PROCESSING_COMPLETION) -> ProcessingCompletionSource:
    if kind == "callback":
        return CallbackCompletionSource()
    if kind != "timer":
        logger.warning(f"Unknown completion source {kind!r}, using the timer")
    return TimerCompletionSource()
