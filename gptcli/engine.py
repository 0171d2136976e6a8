"""The conversation state machine. Owns the message list and the active session."""

import asyncio
import textwrap
import time
from dataclasses import replace
from datetime import datetime

import tiktoken

from gptcli.config import Config, validate_model
from gptcli.errors import ResolutionError, ValidationError
from gptcli.file_manager import expand_attachments
from gptcli.globals import (
    AVAILABLE_MODELS,
    COMMANDS,
    DEFAULT_MODEL,
    MAX_HISTORY_SESSIONS,
    log_exception,
)
from gptcli.input_modes import InputModeMachine
from gptcli.models import Message, Session, generate_session_id
from gptcli.session_manager import SessionStore
from gptcli.streaming import StreamingCoordinator

SAVE_DELAY = 0.5


def fallback_title(text: str) -> str:
    """First five words of the message, cut at 30 characters."""
    words = " ".join(text.split(" ")[:5])
    return words[:30] + "..." if len(words) > 30 else words


def model_token_limit(model: str) -> int:
    if "gpt-4" in model:
        return 128000
    if "gpt-3.5" in model:
        return 16385
    return 128000


class ConversationEngine:
    """
    Houses the session logic for GPT CLI.

    Every mutation of `messages` goes through this class. Mutations schedule a
    debounced save of the session snapshot, followed by a retention cleanup.
    """

    def __init__(
        self,
        config: Config,
        store: SessionStore,
        gateway,
        modes: InputModeMachine | None = None,
        save_delay: float = SAVE_DELAY,
    ):
        self.config = config
        self.store = store
        self.gateway = gateway
        self.modes = modes or InputModeMachine()
        self.streamer = StreamingCoordinator(gateway)
        self.save_delay = save_delay

        # Active session
        self.messages: list[Message] = []
        self.current_model: str = DEFAULT_MODEL
        self.session_id: str = ""
        self.title: str = ""
        self.created_at: float = 0.0

        # Flags
        self.is_initialized: bool = False
        self.title_generated: bool = False
        self.exit_requested: bool = False

        self.pending_resume: Session | None = None
        self.attachments: list[str] = []

        self._save_handle: asyncio.TimerHandle | None = None
        self._background: set[asyncio.Task] = set()
        self._encoder = None

    # <~~LIFECYCLE~~>
    def initialize(self):
        """Loads config, mints a session id and stages the last session for resuming."""
        self.config.load()
        try:
            self.current_model = validate_model(self.config.current_model)
        except ValidationError:
            self.current_model = DEFAULT_MODEL
        self._begin_session()

        if self.config.last_session_id:
            session = self.store.load(self.config.last_session_id)
            if session and session.messages:
                self.pending_resume = session
                self.modes.stage_resume(session)

        self.is_initialized = True
        # The old id stays in config until the resume prompt is answered
        if not self.pending_resume:
            self._persist_config()

    def answer_resume(self, accept: bool):
        """Y adopts the staged session, N keeps the fresh one with a new id."""
        candidate = self.pending_resume
        self.pending_resume = None
        self.modes.close()
        if accept and candidate:
            self._adopt(candidate)
            self._persist_config()
            self.announce(f'✅ Resumed session: "{candidate.title}"')
        else:
            self._begin_session()
            self._persist_config()

    async def shutdown(self, timeout: float = 2.0):
        """Waits briefly for title requests, then writes the session out."""
        if self._background:
            await asyncio.wait(set(self._background), timeout=timeout)
        self.flush_save()

    async def wait_background(self):
        """Awaits outstanding title requests."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _begin_session(self):
        self.session_id = generate_session_id()
        self.created_at = time.time()
        self.title = ""
        self.title_generated = False

    def _adopt(self, session: Session):
        self.session_id = session.id
        self.title = session.title
        self.created_at = session.created_at
        self.messages = [replace(m, is_streaming=False) for m in session.messages]
        try:
            self.current_model = validate_model(session.model)
        except ValidationError:
            self.current_model = DEFAULT_MODEL
        self.title_generated = True

    def _persist_config(self):
        self.config.current_model = self.current_model
        self.config.last_session_id = self.session_id
        self.config.save()

    # <~~PERSISTENCE~~>
    def snapshot(self) -> Session:
        """A detached copy of the active session, stamped with the current time."""
        return Session(
            id=self.session_id,
            title=self.title or "Untitled",
            created_at=self.created_at,
            updated_at=time.time(),
            messages=[replace(m) for m in self.messages],
            model=self.current_model,
        )

    def _schedule_save(self):
        if not self.is_initialized or not self.messages:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush_save()
            return
        if self._save_handle:
            self._save_handle.cancel()
        self._save_handle = loop.call_later(self.save_delay, self._debounced_save)

    def _debounced_save(self):
        self._save_handle = None
        # The settled reply schedules its own save
        if self.streamer.in_flight:
            return
        self.flush_save()

    def flush_save(self):
        """Writes the session now and enforces the retention cap."""
        if self._save_handle:
            self._save_handle.cancel()
            self._save_handle = None
        if not self.is_initialized or not self.messages:
            return
        self.store.save(self.snapshot())
        self.store.cleanup(MAX_HISTORY_SESSIONS)

    def _messages_changed(self):
        self._schedule_save()

    # <~~MESSAGES~~>
    def announce(self, content: str):
        """Appends a client-authored assistant message that is never sent to the model."""
        self.messages.append(Message("assistant", content, is_notice=True))
        self._messages_changed()

    def attach(self, path: str):
        self.attachments.append(path)

    def clear(self):
        self.messages = []
        self._messages_changed()

    def start_new(self):
        self.flush_save()
        self.messages = []
        self.attachments = []
        self._begin_session()
        self._persist_config()
        self.announce("✅ Started new session")

    def edit_last(self) -> str | None:
        """Returns the most recent user message for re-editing."""
        for msg in reversed(self.messages):
            if msg.role == "user":
                return msg.content
        return None

    @property
    def busy(self) -> bool:
        return self.streamer.in_flight

    # <~~SUBMISSION~~>
    async def submit(self, text: str):
        """Handles one line of user input: a command or a chat turn."""
        if self.busy or self.modes.overlay_active:
            return
        value = text.strip()
        if not value:
            return
        try:
            if self._dispatch_command(value):
                return
            content = expand_attachments(value, self.attachments)
            self.attachments = []
            await self._send(content, seed=value)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_exception(e, "Error in submit()")
            self.announce(f"Error: {e}")

    async def regenerate(self):
        """Drops the last reply and sends the user message before it again."""
        if self.busy or self.modes.overlay_active:
            return
        assistant_index = None
        for i in range(len(self.messages) - 1, -1, -1):
            if self.messages[i].role == "assistant":
                assistant_index = i
                break
        if assistant_index is None:
            return
        user_index = None
        for i in range(assistant_index - 1, -1, -1):
            if self.messages[i].role == "user":
                user_index = i
                break
        if user_index is None:
            return

        content = self.messages[user_index].content
        # The resubmission appends the user turn again
        del self.messages[user_index:]
        try:
            await self._send(content, seed=content)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_exception(e, "Error in regenerate()")
            self.announce(f"Error: {e}")

    async def _send(self, content: str, seed: str):
        first_turn = not self.title_generated and not any(
            m.role == "user" for m in self.messages
        )
        self.messages.append(Message("user", content))
        self._messages_changed()
        if first_turn:
            self.title_generated = True
            self._request_title(seed)
        try:
            await self.streamer.stream(self.current_model, self.messages)
        finally:
            self._messages_changed()

    def _request_title(self, seed: str):
        """Fire-and-forget title generation, tagged with the requesting session."""
        session_id = self.session_id

        async def _generate():
            try:
                title = await self.gateway.generate_title(seed)
            except Exception as e:
                log_exception(e, "Title generation failed, using fallback")
                title = fallback_title(seed)
            # A /new or /resume happened meanwhile
            if self.session_id != session_id:
                return
            self.title = title
            self._messages_changed()

        task = asyncio.ensure_future(_generate())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # <~~COMMANDS~~>
    def _dispatch_command(self, value: str) -> bool:
        """Runs a recognized slash command. Returns False for ordinary text."""
        if not value.startswith("/"):
            return False
        if value == "/clear":
            self.clear()
        elif value in ("/exit", "/quit"):
            self.exit_requested = True
        elif value == "/help":
            self.announce(self.help_text())
        elif value in ("/models", "/model"):
            self.modes.open_model_picker(self.current_model)
        elif value.startswith("/model "):
            self.select_model(value[len("/model ") :])
        elif value == "/sessions":
            self.show_sessions()
        elif value == "/resume":
            self.announce("Usage: /resume <id>")
        elif value.startswith("/resume "):
            self.resume(value[len("/resume ") :])
        elif value == "/new":
            self.start_new()
        else:
            return False
        return True

    def commit_overlay(self, buffer_text: str) -> str | None:
        """Applies the open picker's selection. Returns the new input text."""
        selection = self.modes.commit(buffer_text)
        if selection is None:
            return None
        if selection.kind == "open_models":
            self.modes.open_model_picker(self.current_model)
        elif selection.kind == "model":
            self.select_model(selection.value)
        elif selection.kind == "file":
            self.attach(selection.value)
        return selection.buffer_text

    def select_model(self, name: str) -> bool:
        name = name.strip()
        try:
            model = validate_model(name)
        except ValidationError:
            self.announce(
                f"❌ Unknown model: {name}\nAvailable models: {', '.join(AVAILABLE_MODELS)}"
            )
            return False
        self.current_model = model
        self._persist_config()
        self.announce(f"✅ Model switched to {model}")
        return True

    def resume(self, id_or_prefix: str) -> bool:
        try:
            session = self._resolve(id_or_prefix.strip())
        except ResolutionError as e:
            self.announce(f"❌ {e}")
            return False
        self.flush_save()
        self._adopt(session)
        self.attachments = []
        self._persist_config()
        self.announce(f'✅ Resumed session: "{session.title}"')
        return True

    def _resolve(self, id_or_prefix: str) -> Session:
        session = self.store.resolve(id_or_prefix)
        if session is None:
            raise ResolutionError(f"Session not found: {id_or_prefix}")
        return session

    def show_sessions(self):
        sessions = self.store.list(10)
        if not sessions:
            self.announce("No saved sessions found.")
            return
        lines = []
        for i, s in enumerate(sessions, start=1):
            stamp = datetime.fromtimestamp(s.updated_at).strftime("%Y-%m-%d %H:%M")
            lines.append(
                f"  {i}. {s.title} | {stamp} | {len(s.messages)} messages | {s.id}"
            )
        self.announce(
            "📚 Recent Sessions (last 10):\n\n"
            + "\n".join(lines)
            + "\n\nUse /resume <id> to restore a session."
            + f"\nCurrent session ID: {self.session_id}"
        )

    def help_text(self) -> str:
        commands = "\n".join(
            f"  {c.name:<12} {c.description}" + (f" ({c.usage})" if c.usage else "")
            for c in COMMANDS
        )
        shortcuts = textwrap.dedent("""
            Keyboard Shortcuts:
              Ctrl+R         Regenerate last response
              Ctrl+L         Clear chat history
              Alt+Enter      Insert a new line
              Ctrl+P         Edit last user message
              Ctrl+U         Scroll up messages
              Ctrl+D         Scroll down messages
              Ctrl+C         Abort a response mid-stream
              ESC            Exit / Cancel selection

            Tips:
            • Type / and use ↑↓ to select commands
            • Use @filename to attach files""").strip()
        return f"📖 Available Commands:\n\n{commands}\n\n{shortcuts}"

    # <~~TOKENS~~>
    def token_count(self) -> int:
        """Approximate token usage of the conversation, for display only."""
        text = "\n".join(m.content for m in self.messages)
        if not text:
            return 0
        try:
            if self._encoder is None:
                self._encoder = tiktoken.get_encoding("o200k_base")
            return len(self._encoder.encode(text))
        except Exception:
            return len(text) // 4

    def token_limit(self) -> int:
        return model_token_limit(self.current_model)
