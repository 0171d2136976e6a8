"""Keyboard interpretation modes. Exactly one mode is active at any time."""

from dataclasses import dataclass, replace

from gptcli.file_manager import find_file_query, scan_files
from gptcli.globals import AVAILABLE_MODELS, COMMANDS
from gptcli.models import Command, Session


@dataclass(frozen=True)
class Normal:
    """Keystrokes are free text."""


@dataclass(frozen=True)
class CommandPalette:
    commands: tuple[Command, ...]
    selected: int = 0


@dataclass(frozen=True)
class ModelPicker:
    selected: int = 0


@dataclass(frozen=True)
class FilePicker:
    candidates: tuple[str, ...]
    selected: int = 0


@dataclass(frozen=True)
class ResumePrompt:
    candidate: Session


InputMode = Normal | CommandPalette | ModelPicker | FilePicker | ResumePrompt

NORMAL = Normal()
PICKERS = (CommandPalette, ModelPicker, FilePicker)


@dataclass(frozen=True)
class Selection:
    """What committing a picker did: the chosen value and the new input text."""

    kind: str  # "command", "open_models", "model" or "file"
    value: str
    buffer_text: str


class InputModeMachine:
    """Single-active-mode state machine for the input line"""

    def __init__(self, commands=None, models=None, scanner=scan_files):
        self.commands: list[Command] = commands or COMMANDS
        self.models: list[str] = models or AVAILABLE_MODELS
        self.scanner = scanner
        self.mode: InputMode = NORMAL

    @property
    def overlay_active(self) -> bool:
        return not isinstance(self.mode, Normal)

    @property
    def picker_open(self) -> bool:
        return isinstance(self.mode, PICKERS)

    @property
    def resume_pending(self) -> bool:
        return isinstance(self.mode, ResumePrompt)

    # <~~TRANSITIONS~~>
    def stage_resume(self, candidate: Session):
        self.mode = ResumePrompt(candidate)

    def close(self):
        self.mode = NORMAL

    def open_model_picker(self, current_model: str):
        """Opens the model picker on the active model."""
        if self.resume_pending:
            return
        index = (
            self.models.index(current_model) if current_model in self.models else 0
        )
        self.mode = ModelPicker(index)

    def on_text_changed(self, text: str):
        """Re-derives the overlay from the input text."""
        # These two claim the keyboard until answered or committed
        if isinstance(self.mode, (ResumePrompt, ModelPicker)):
            return

        query = find_file_query(text)
        if query is not None:
            candidates = self.scanner(query)
            if candidates:
                self.mode = FilePicker(tuple(candidates))
                return

        if text.startswith("/"):
            lowered = text.lower()
            matches = tuple(
                c for c in self.commands if c.name.lower().startswith(lowered)
            )
            if matches:
                self.mode = CommandPalette(matches)
                return

        self.mode = NORMAL

    def _option_count(self) -> int:
        mode = self.mode
        if isinstance(mode, CommandPalette):
            return len(mode.commands)
        if isinstance(mode, ModelPicker):
            return len(self.models)
        if isinstance(mode, FilePicker):
            return len(mode.candidates)
        return 0

    def move(self, step: int):
        """Moves the picker selection, wrapping at both ends."""
        count = self._option_count()
        if not count:
            return
        self.mode = replace(self.mode, selected=(self.mode.selected + step) % count)

    def commit(self, text: str) -> Selection | None:
        """Commits the highlighted option and closes the picker."""
        mode = self.mode
        if isinstance(mode, CommandPalette):
            command = mode.commands[mode.selected]
            self.mode = NORMAL
            if command.name in ("/model", "/models"):
                return Selection("open_models", command.name, "")
            return Selection("command", command.name, command.name + " ")
        if isinstance(mode, ModelPicker):
            self.mode = NORMAL
            return Selection("model", self.models[mode.selected], "")
        if isinstance(mode, FilePicker):
            path = mode.candidates[mode.selected]
            self.mode = NORMAL
            before = text[: text.rfind("@")] if "@" in text else text
            return Selection("file", path, before + path + " ")
        return None

    def escape(self) -> bool:
        """Closes the open picker. Returns True when nothing was open (exit)."""
        if self.resume_pending:
            return False
        if self.picker_open:
            self.mode = NORMAL
            return False
        return True

    def answer(self, key: str) -> bool | None:
        """Interprets a keystroke in the resume prompt: True (Y), False (N) or None."""
        if not self.resume_pending:
            return None
        key = key.lower()
        if key == "y":
            return True
        if key == "n":
            return False
        return None
