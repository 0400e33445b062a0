from __future__ import annotations
import logging
from typing import Iterator, List, Optional, Sequence

from .errors import ChatError
from .ports import ChatService, Sink
from .streaming import CancelToken, iter_chat

logger = logging.getLogger(__name__)


class ChatSession:
    """
    Binds a chat service to a transcript.
    The user's turn is recorded before the provider is called, so it stays
    in the transcript whatever happens to the reply.
    """

    def __init__(self, adapter: ChatService, transcript):
        self.adapter = adapter
        self.transcript = transcript

    def _record_failure(self, exc: ChatError) -> None:
        logger.error("Assistant turn failed: %s", exc)
        self.transcript.append_message("assistant", f"Error: {exc}", status="error")

    def run_turn(
        self,
        user_text: str,
        images: Sequence[str] = (),
        on_chunk: Optional[Sink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> str:
        self.transcript.append_message("user", user_text, images=images)
        partial: List[str] = []

        def sink(piece: str) -> None:
            partial.append(piece)
            if on_chunk is not None:
                on_chunk(piece)

        try:
            reply = self.adapter.chat(self.transcript.messages, sink, cancel=cancel)
        except ChatError as e:
            self._record_failure(e)
            raise
        except KeyboardInterrupt:
            if partial:
                self.transcript.append_message("assistant", "".join(partial), status="partial")
            raise

        status = "partial" if cancel is not None and cancel.cancelled else "complete"
        if reply or status == "complete":
            self.transcript.append_message("assistant", reply, status=status)
        return reply

    def run_turn_stream(self, user_text: str, images: Sequence[str] = ()) -> Iterator[str]:
        self.transcript.append_message("user", user_text, images=images)
        messages = self.transcript.messages
        partial: List[str] = []

        def gen():
            stream = iter_chat(self.adapter.chat, messages)
            status = "partial"
            try:
                for piece in stream:
                    partial.append(piece)
                    yield piece
                status = "complete"
            except ChatError as e:
                status = "error"
                self._record_failure(e)
                raise
            finally:
                # Stops delivery if the consumer closed us early
                stream.close()
                if status == "complete" or (status == "partial" and partial):
                    self.transcript.append_message("assistant", "".join(partial), status=status)
        return gen()
