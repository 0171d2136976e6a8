"""Lifecycle of one in-flight completion."""

import asyncio
from collections.abc import Callable
from enum import Enum

from gptcli.globals import log_exception
from gptcli.models import Message


class StreamState(Enum):
    IDLE = "idle"
    AWAITING_FIRST_TOKEN = "thinking"
    STREAMING = "streaming"
    SETTLED = "settled"
    FAILED = "failed"


IN_FLIGHT = (StreamState.AWAITING_FIRST_TOKEN, StreamState.STREAMING)

# Observer signature: (state, accumulated text)
StreamListener = Callable[[StreamState, str], None]


class StreamingCoordinator:
    """
    Drives a completion stream into the conversation.

    The placeholder assistant message is appended on the first delta and its
    content is replaced by the full accumulated text on every delta after that.
    Listeners only ever see the accumulated string, which grows monotonically.
    SETTLED and FAILED are terminal for a request; the next request may start
    from either of them.
    """

    def __init__(self, gateway, listener: StreamListener | None = None):
        self.gateway = gateway
        self.listener = listener
        self.state: StreamState = StreamState.IDLE
        self.partial: str = ""
        self.placeholder: Message | None = None

    @property
    def in_flight(self) -> bool:
        return self.state in IN_FLIGHT

    def _publish(self, state: StreamState):
        self.state = state
        if self.listener:
            try:
                self.listener(state, self.partial)
            except Exception as e:
                # Listener failures are logged, the stream carries on
                log_exception(e, "Error in stream listener")

    async def stream(self, model: str, messages: list[Message]) -> Message:
        """
        Streams one reply into `messages`, which must end with the new user turn.
        Returns the assistant message that was appended (reply or error notice).
        """
        if self.in_flight:
            raise RuntimeError("A completion is already in flight")

        history = [m.to_api() for m in messages if not m.is_notice]
        self.partial = ""
        self.placeholder = None
        self._publish(StreamState.AWAITING_FIRST_TOKEN)

        try:
            async for delta in self.gateway.stream_completion(model, history):
                if self.placeholder is None:
                    self.placeholder = Message("assistant", "", is_streaming=True)
                    messages.append(self.placeholder)
                    self.state = StreamState.STREAMING
                self.partial += delta
                self.placeholder.content = self.partial
                self._publish(StreamState.STREAMING)
        except asyncio.CancelledError:
            reply = self._settle_placeholder(messages)
            reply.content = (self.partial + "\n\n(response cancelled)").strip()
            reply.is_notice = not self.partial
            self._publish(StreamState.FAILED)
            raise
        except Exception as e:
            log_exception(e, "Error in StreamingCoordinator.stream()")
            reply = self._settle_placeholder(messages)
            reply.content = f"Error: {str(e) or type(e).__name__}"
            reply.is_notice = True
            self.partial = ""
            self._publish(StreamState.FAILED)
            return reply

        reply = self._settle_placeholder(messages)
        reply.model = model
        self._publish(StreamState.SETTLED)
        return reply

    def _settle_placeholder(self, messages: list[Message]) -> Message:
        """Returns the placeholder with streaming switched off, appending one if none arrived."""
        if self.placeholder is None:
            self.placeholder = Message("assistant", "")
            messages.append(self.placeholder)
        self.placeholder.is_streaming = False
        return self.placeholder
