#!/usr/bin/env python3

# <~~~~~~~>
#  GPT CLI
# <~~~~~~~>

import asyncio
import sys

from rich.live import Live

from gptcli.cli_controller import ChatController
from gptcli.config import Config
from gptcli.engine import ConversationEngine
from gptcli.gateway import CompletionGateway
from gptcli.globals import (
    CONSOLE,
    init_logger,
    log_exception,
    setup_keyring_backend,
    spinner_constructor,
)
from gptcli.session_manager import SessionStore
from gptcli.ui import GlobalPanels, UIConstructor


async def run(controller: ChatController, gateway: CompletionGateway):
    try:
        await controller.run()
    finally:
        await gateway.close()


def main():
    panels = None
    try:
        # Start a spinner, mostly for cold starts
        with Live(
            spinner_constructor("Launching GPT CLI..."),
            refresh_per_second=8,
            console=CONSOLE,
        ):
            init_logger()  # Initialize the log file
            setup_keyring_backend()
            gateway = CompletionGateway()
            engine = ConversationEngine(Config(), SessionStore(), gateway)
            engine.initialize()  # Loads config, stages the last session
            ui = UIConstructor(engine)
            panels = GlobalPanels(ui)
            controller = ChatController(engine, ui, panels)
        asyncio.run(run(controller, gateway))
    except (KeyboardInterrupt, EOFError):
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
    except Exception as e:
        log_exception(e, "Critical startup error")  # Log any critical errors
        if panels:
            panels.spawn_error_panel("CRITICAL ERROR", f"{e}")
        else:
            CONSOLE.print(f"[bold red]CRITICAL ERROR:[/bold red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
