from __future__ import annotations
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence

from .ports import Sink

logger = logging.getLogger(__name__)


class CancelToken:
    """
    Cooperative stop flag shared between the caller and a running chat call.
    Thread-safe; once set it stays set.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def relay(fragments: Iterable[str], sink: Sink, cancel: Optional[CancelToken] = None) -> str:
    """
    Push each fragment to ``sink`` as it arrives and return the concatenation.

    Fragments are delivered in emission order, one sink call per fragment.
    When ``cancel`` is set, delivery stops before the next fragment and the
    provider stream is closed; the text delivered so far is returned.
    """
    parts: list[str] = []
    it = iter(fragments)
    try:
        for piece in it:
            if cancel is not None and cancel.cancelled:
                logger.info("Stream cancelled after %d chunk(s)", len(parts))
                break
            if not piece:
                continue
            parts.append(piece)
            sink(piece)
    finally:
        # Generators close their HTTP stream in their own finally block
        close = getattr(it, "close", None)
        if close is not None:
            close()
    return "".join(parts)


@dataclass
class _Failure:
    exc: Exception


_DONE = object()

ChatFn = Callable[..., Any]


def iter_chat(chat_fn: ChatFn, messages: Sequence[Any], *, cancel: Optional[CancelToken] = None) -> Iterator[str]:
    """
    Run ``chat_fn(messages, sink, cancel=...)`` on a worker thread and expose
    its fragments as a lazy, finite, non-restartable iterator.

    - the call starts on the first ``next()``
    - an exception raised by the call is re-raised here after the fragments
      it delivered before failing
    - closing the iterator early cancels the call
    """
    token = cancel or CancelToken()
    channel: "queue.Queue[Any]" = queue.Queue()

    def _work() -> None:
        try:
            chat_fn(messages, channel.put, cancel=token)
        except Exception as exc:
            channel.put(_Failure(exc))
        else:
            channel.put(_DONE)

    def gen() -> Iterator[str]:
        worker = threading.Thread(target=_work, name="cordex-chat", daemon=True)
        worker.start()
        try:
            while True:
                item = channel.get()
                if item is _DONE:
                    return
                if isinstance(item, _Failure):
                    raise item.exc
                yield item
        finally:
            token.cancel()

    return gen()
