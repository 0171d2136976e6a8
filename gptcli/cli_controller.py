"""Keyboard interactivity and the main input loop live here."""

import asyncio
import contextlib
import signal
from enum import Enum

from prompt_toolkit import PromptSession
from prompt_toolkit.application import run_in_terminal
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.filters import Condition
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from rich.live import Live

from gptcli.globals import CONSOLE, PROMPT_PREFIX, PROMPT_STYLE, log_exception
from gptcli.input_modes import ModelPicker
from gptcli.scroll import ScrollState, Window, compute_window
from gptcli.streaming import StreamState


class Action(Enum):
    """Shortcut results returned by the prompt instead of text."""

    REGENERATE = "regenerate"
    CLEAR = "clear"


class ChatController:
    """Maps keystrokes onto the input modes and the conversation engine"""

    def __init__(self, engine, ui, panels, refresh_rate: int = 30):
        self.engine = engine
        self.ui = ui
        self.panels = panels
        self.refresh_rate = refresh_rate
        self.scroll = ScrollState()
        self.window: Window | None = None
        self.live: Live | None = None
        self._last_size = None

        self.prompt_session: PromptSession = PromptSession(
            history=InMemoryHistory(),
            key_bindings=self._build_key_bindings(),
            bottom_toolbar=self.ui.toolbar_constructor,
            style=PROMPT_STYLE,
            refresh_interval=0.5,
        )
        self.prompt_session.default_buffer.on_text_changed += self._on_text_changed
        self.engine.streamer.listener = self._on_stream_event

    # <~~HELPERS~~>
    def _on_text_changed(self, buffer: Buffer):
        self.engine.modes.on_text_changed(buffer.text)

    def _set_buffer(self, buffer: Buffer, text: str):
        buffer.text = text
        buffer.cursor_position = len(text)

    def render(self):
        """Re-prints the visible slice of the conversation."""
        total = len(self.engine.messages)
        self.scroll.sync(total)
        size = CONSOLE.size
        if size != self._last_size:
            self.scroll.clamp(total)
            self._last_size = size
        self.window = compute_window(
            self.engine.messages, size.height, size.width, self.scroll.offset
        )
        self.panels.spawn_window(self.window)

    def _page(self) -> int:
        return self.window.size if self.window else 1

    # <~~KEY BINDINGS~~>
    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()
        modes = self.engine.modes

        resume = Condition(lambda: modes.resume_pending)
        model_picker = Condition(lambda: isinstance(modes.mode, ModelPicker))
        picker = Condition(lambda: modes.picker_open)
        free = Condition(lambda: not modes.resume_pending)

        @kb.add("<any>", filter=resume)
        def _answer_resume(event):
            """Only Y or N get through while the resume prompt is staged."""
            answer = modes.answer(event.data)
            if answer is None:
                return
            self.engine.answer_resume(answer)
            run_in_terminal(self.render)

        @kb.add("enter", filter=resume)
        @kb.add("up", filter=resume)
        @kb.add("down", filter=resume)
        @kb.add("<any>", filter=model_picker)
        def _swallow(event):
            pass

        @kb.add("escape")
        def _escape(event):
            if modes.escape():
                event.app.exit(exception=EOFError)

        @kb.add("escape", "enter", filter=free & ~picker)
        def _newline(event):
            """Inserts a line break (Alt+Enter)."""
            event.current_buffer.insert_text("\n")

        @kb.add("up", filter=picker)
        def _up(event):
            modes.move(-1)

        @kb.add("down", filter=picker)
        def _down(event):
            modes.move(1)

        @kb.add("enter", filter=picker)
        @kb.add("tab", filter=picker)
        def _commit(event):
            buffer = event.current_buffer
            text = self.engine.commit_overlay(buffer.text)
            if text is not None:
                self._set_buffer(buffer, text)
            if not modes.overlay_active and self.engine.messages:
                run_in_terminal(self.render)

        @kb.add("c-r", filter=free)
        def _regenerate(event):
            event.app.exit(result=Action.REGENERATE)

        @kb.add("c-l", filter=free)
        def _clear(event):
            event.app.exit(result=Action.CLEAR)

        @kb.add("c-p", filter=free)
        def _edit_last(event):
            content = self.engine.edit_last()
            if content is not None:
                self._set_buffer(event.current_buffer, content)

        @kb.add("c-u", filter=free)
        def _scroll_up(event):
            self.scroll.page_up(len(self.engine.messages), self._page())
            run_in_terminal(self.render)

        @kb.add("c-d", filter=free)
        def _scroll_down(event):
            self.scroll.page_down(self._page())
            run_in_terminal(self.render)

        return kb

    # <~~STREAMING~~>
    def _on_stream_event(self, state: StreamState, partial: str):
        """Mirrors the coordinator's state onto a rich live display."""
        if state is StreamState.AWAITING_FIRST_TOKEN:
            self.render()
            self.live = Live(
                self.ui.streaming_constructor(""),
                console=CONSOLE,
                screen=False,
                refresh_per_second=self.refresh_rate,
            )
            self.live.start()
        elif state is StreamState.STREAMING:
            if self.live:
                self.live.update(self.ui.streaming_constructor(partial))
        else:
            self._stop_live()

    def _stop_live(self):
        if self.live:
            self.live.stop()
            self.live = None

    async def _run_cancellable(self, coro):
        """Runs an engine call so that Ctrl+C aborts the stream, not the app."""
        task = asyncio.ensure_future(coro)
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signal.SIGINT, task.cancel)
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
        finally:
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(signal.SIGINT)
            self._stop_live()

    # <~~RUN~~>
    async def run(self):
        """Prompts for input until the user exits."""
        self.render()
        while not self.engine.exit_requested:
            try:
                result = await self.prompt_session.prompt_async(PROMPT_PREFIX)
            except (KeyboardInterrupt, EOFError):
                break
            try:
                if result is Action.REGENERATE:
                    await self._run_cancellable(self.engine.regenerate())
                elif result is Action.CLEAR:
                    self.engine.clear()
                else:
                    await self._run_cancellable(self.engine.submit(result))
            except Exception as e:
                log_exception(e, "Error in ChatController.run()")
                self.panels.spawn_error_panel("ERROR", f"{e}")
                continue
            if not self.engine.exit_requested:
                self.render()
        await self.engine.shutdown()
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
