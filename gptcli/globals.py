"""Global functions and variables, used across various modules."""

import getpass
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

import keyring
from keyring import get_password
from keyring.backends import null
from platformdirs import user_data_dir
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.spinner import Spinner

from gptcli.models import Command

# Default directories and system details
APP_DIR = user_data_dir("GPTCLI")
CONFIG_DIR = os.path.join(APP_DIR, "config")
SESSIONS_DIR = os.path.join(APP_DIR, "sessions")
LOG_DIR = os.path.join(APP_DIR, "logs")
CONFIG_FILE = os.path.join(CONFIG_DIR, "settings.json")
USER_NAME = getpass.getuser()

os.makedirs(SESSIONS_DIR, exist_ok=True)
os.makedirs(CONFIG_DIR, exist_ok=True)
os.makedirs(LOG_DIR, exist_ok=True)

# Models offered by the picker and accepted by /model
AVAILABLE_MODELS: list[str] = [
    "gpt-5",
    "gpt-5-mini",
    "gpt-5-nano",
    "o1",
    "o3-mini",
    "gpt-4o",
    "gpt-4o-mini",
    "gpt-4-turbo",
    "gpt-3.5-turbo",
]
DEFAULT_MODEL = "gpt-4o-mini"
TITLE_MODEL = "gpt-4o-mini"

# Retention cap for the sessions directory
MAX_HISTORY_SESSIONS = 50

# Slash commands, in palette order
COMMANDS: list[Command] = [
    Command("/clear", "Clear chat history"),
    Command("/exit", "Exit the application"),
    Command("/quit", "Exit the application (alias)"),
    Command("/model", "Switch AI model", "/model <model-name>"),
    Command("/models", "List available models"),
    Command("/help", "Show this help message"),
    Command("/sessions", "List recent sessions"),
    Command("/resume", "Resume a session", "/resume <id>"),
    Command("/new", "Start a new session"),
]

# Terminal integration
CONSOLE = Console()

# Main prompt prefix
PROMPT_PREFIX = HTML("<seagreen>➜ </seagreen>")

# Dark style for the prompt and the overlay toolbar
PROMPT_STYLE = Style.from_dict(
    {
        "bottom-toolbar": "noreverse bg:default #aaaaaa",
        "overlay.title": "bold #00afaf",
        "overlay.item": "#ffffff",
        "overlay.current": "bold #2e8b57",
        "overlay.hint": "#777777",
        "overlay.meta": "#888888",
        "overlay.warn": "bold #d7af00",
    }
)


def init_logger():
    """Initializes the logging system."""
    date_str = datetime.now().strftime("%Y%m%d")
    # Output example: gptcli_20251109.log
    log_path = os.path.join(LOG_DIR, f"gptcli_{date_str}.log")
    # Max of 3 backups, max size of 1MB
    handler = RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    logging.basicConfig(
        level=logging.ERROR,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )


def log_exception(e: BaseException, context: str = ""):
    """Creates a full formatted traceback string and writes it to a log file"""
    import traceback

    # Format the traceback (exception class, exception instance, traceback object)
    tb = "".join(traceback.format_exception(type(e), e, e.__traceback__))
    # Add optional context provided by error catchers
    msg = f"{context}\n{tb}" if context else tb
    logging.error(msg)


def setup_keyring_backend():
    """Safely detects a keyring backend."""
    try:
        keyring.get_keyring()
    except Exception as e:
        keyring.set_keyring(null.Keyring())
        logging.error(
            f"Keyring backend failed. Falling back to NullBackend. Error: {e}"
        )


def retrieve_key() -> str:
    """
    Attempts to retrieve a stored API key.\n
    Prio: OPENAI_API_KEY env variable -> OS keyring entry -> Dummy key
    """
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        try:
            api_key = get_password("GPTCLI", USER_NAME)
        except Exception as e:
            log_exception(e, "Keyring lookup failed")
    if not api_key:
        api_key = "dummy-key"
    return api_key


def spinner_constructor(content: str) -> Spinner:
    return Spinner(
        "dots",
        text=f"[bold yellow]{content}[/bold yellow]",
    )
