"""Builds and spawns UI objects. UIConstructor and GlobalPanels live here."""

from datetime import datetime

from prompt_toolkit.formatted_text import FormattedText
from rich import box
from rich.console import Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from gptcli import __version__
from gptcli.globals import CONSOLE, spinner_constructor
from gptcli.input_modes import (
    CommandPalette,
    FilePicker,
    ModelPicker,
    ResumePrompt,
)
from gptcli.models import Message
from gptcli.scroll import Window

CODE_THEME = "monokai"


class UIConstructor:
    """Constructs and returns various UI objects"""

    def __init__(self, engine):
        self.engine = engine

    # <~~RICH PANELS~~>
    def header_constructor(self) -> Panel:
        engine = self.engine
        header = Text.assemble(
            (f"🤖 GPT CLI {__version__}", "bold cyan"),
            " | Model: ",
            (engine.current_model, "bold yellow"),
        )
        if engine.title:
            header.append(" | ")
            header.append(engine.title, style="bold green")
        header.append(
            f" | Tokens: {engine.token_count():,} / {engine.token_limit():,}",
            style="dim",
        )
        header.append(" | ")
        header.append("/help", style="bold")
        return Panel(header, box=box.SQUARE, padding=(0, 1))

    def user_panel_constructor(self, content: str) -> Panel:
        return Panel(
            content,
            box=box.HORIZONTALS,
            padding=(0, 0),
            title=Text("You", style="bold green"),
            title_align="left",
            border_style="green",
            style="default",
        )

    def assistant_panel_constructor(self, message: Message) -> Panel:
        if message.is_notice:
            return Panel(
                Text(message.content),
                box=box.HORIZONTALS,
                padding=(0, 0),
                title=Text("GPT", style="bold blue"),
                title_align="left",
                border_style="dim blue",
                style="default",
            )
        title = Text("GPT", style="bold blue")
        if message.model:
            title.append(f" ({message.model})", style="dim")
        return Panel(
            Markdown(message.content, code_theme=CODE_THEME),
            title=title,
            title_align="left",
            border_style="blue",
            style="default",
            width=None,
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def message_constructor(self, message: Message) -> Panel:
        if message.role == "user":
            return self.user_panel_constructor(message.content)
        return self.assistant_panel_constructor(message)

    def streaming_constructor(self, partial: str) -> RenderableType:
        """Live renderable for the in-flight reply."""
        if not partial:
            return spinner_constructor("Thinking...")
        return Panel(
            Markdown(partial, code_theme=CODE_THEME),
            title=Text("GPT", style="bold blue"),
            title_align="left",
            border_style="blue",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def window_constructor(self, window: Window) -> Group:
        """The visible slice of the conversation, with scroll hints."""
        parts: list[RenderableType] = []
        messages = self.engine.messages
        if not messages and not self.engine.pending_resume:
            parts.append(
                Text.assemble(
                    ("Welcome! Start typing to chat with GPT. Type ", "dim"),
                    ("/", "bold cyan"),
                    (" for commands, ", "dim"),
                    ("@", "bold cyan"),
                    (" to attach files.", "dim"),
                )
            )
        if window.has_more_above:
            n = window.start
            parts.append(
                Text(
                    f"▲ {n} earlier message{'s' if n != 1 else ''} (Ctrl+U to scroll up)",
                    style="dim",
                )
            )
        for message in messages[window.start : window.end]:
            parts.append(self.message_constructor(message))
        if window.has_more_below:
            n = len(messages) - window.end
            parts.append(
                Text(
                    f"▼ {n} newer message{'s' if n != 1 else ''} (Ctrl+D to scroll down)",
                    style="dim",
                )
            )
        return Group(*parts)

    def error_panel_constructor(self, error: str, exception: str) -> Panel:
        return Panel(
            exception,
            title=Text(f"❌ {error}", style="bold red"),
            title_align="left",
            border_style="red",
            expand=False,
        )

    # <~~PROMPT TOOLBAR~~>
    def toolbar_constructor(self) -> FormattedText:
        """Bottom toolbar: the active overlay, or a status line in Normal mode."""
        mode = self.engine.modes.mode
        if isinstance(mode, ResumePrompt):
            return self._resume_toolbar(mode)
        if isinstance(mode, CommandPalette):
            rows = [
                (c.name, f" - {c.description}") for c in mode.commands
            ]
            return self._picker_toolbar(
                "Commands:", rows, mode.selected, "Use ↑↓ to navigate, Tab/Enter to select"
            )
        if isinstance(mode, ModelPicker):
            current = self.engine.current_model
            rows = [
                (m, " ✓ current" if m == current else "")
                for m in self.engine.modes.models
            ]
            return self._picker_toolbar(
                "🤖 Select Model:",
                rows,
                mode.selected,
                "Use ↑↓ to navigate, Enter to select, ESC to cancel",
            )
        if isinstance(mode, FilePicker):
            rows = [(path, "") for path in mode.candidates]
            return self._picker_toolbar(
                "📎 Attach File:",
                rows,
                mode.selected,
                "Use ↑↓ to navigate, Tab/Enter to select, ESC to cancel",
            )
        return self._status_toolbar()

    def _picker_toolbar(
        self, heading: str, rows: list[tuple[str, str]], selected: int, hint: str
    ) -> FormattedText:
        fragments = [("class:overlay.title", f"{heading}\n")]
        for i, (label, meta) in enumerate(rows):
            if i == selected:
                fragments.append(("class:overlay.current", f"▶ {label}"))
            else:
                fragments.append(("class:overlay.item", f"  {label}"))
            fragments.append(("class:overlay.meta", f"{meta}\n"))
        fragments.append(("class:overlay.hint", hint))
        return FormattedText(fragments)

    def _resume_toolbar(self, mode: ResumePrompt) -> FormattedText:
        session = mode.candidate
        updated = datetime.fromtimestamp(session.updated_at).strftime("%Y-%m-%d %H:%M")
        return FormattedText(
            [
                ("class:overlay.warn", "💾 Resume Previous Session?\n"),
                ("class:overlay.item", f'Last session: "{session.title}"\n'),
                ("class:overlay.item", f"Messages: {len(session.messages)}\n"),
                ("class:overlay.item", f"Last updated: {updated}\n"),
                ("class:overlay.hint", "Press "),
                ("class:overlay.current", "Y"),
                ("class:overlay.hint", " to resume, "),
                ("class:overlay.warn", "N"),
                ("class:overlay.hint", " to start fresh"),
            ]
        )

    def _status_toolbar(self) -> FormattedText:
        engine = self.engine
        fragments = [("class:overlay.meta", f"{engine.current_model}")]
        if engine.title:
            fragments.append(("class:overlay.meta", f" | {engine.title}"))
        fragments.append(
            (
                "class:overlay.meta",
                f" | Tokens: {engine.token_count():,} / {engine.token_limit():,}",
            )
        )
        if engine.attachments:
            fragments.append(
                ("class:overlay.item", f"\n📎 {', '.join(engine.attachments)}")
            )
        return FormattedText(fragments)


class GlobalPanels:
    """Global panel spawner"""

    def __init__(self, ui: UIConstructor):
        self.ui: UIConstructor = ui

    def spawn_header(self):
        CONSOLE.print(self.ui.header_constructor())

    def spawn_window(self, window: Window):
        """Clears the viewport and prints the visible slice of the conversation."""
        CONSOLE.clear()
        self.spawn_header()
        CONSOLE.print(self.ui.window_constructor(window))
        CONSOLE.print()

    def spawn_error_panel(self, error: str, exception: str):
        """Error panel template, used by the controller and main()"""
        CONSOLE.print(self.ui.error_panel_constructor(error, exception))
        CONSOLE.print()
