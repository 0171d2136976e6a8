"""Handles the persistent, process-wide configuration record."""

import json
import os

from gptcli.errors import PersistenceError, ValidationError
from gptcli.globals import (
    AVAILABLE_MODELS,
    CONFIG_FILE,
    DEFAULT_MODEL,
    log_exception,
)


def validate_model(name: str) -> str:
    """Returns the model name if it is supported, raises ValidationError otherwise."""
    name = str(name or "").strip()
    if name not in AVAILABLE_MODELS:
        raise ValidationError(f"Unknown model: {name}")
    return name


class Config:
    """User-facing configuration variables"""

    def __init__(self):
        # Default values
        self.current_model: str = DEFAULT_MODEL
        self.last_session_id: str | None = None

    def save(self):
        """Saves any config changes to the config file. Best-effort."""
        try:
            self._write()
        except PersistenceError as e:
            log_exception(e, "Error in Config.save()")

    def _write(self):
        try:
            os.makedirs(os.path.dirname(CONFIG_FILE), exist_ok=True)
            with open(CONFIG_FILE, "w", encoding="utf-8") as f:
                json.dump(self.__dict__, f, indent=2)
        except OSError as e:
            raise PersistenceError(f"Could not write {CONFIG_FILE}: {e}") from e

    def load(self):
        """Loads the config file, correcting invalid values to defaults."""
        if not os.path.exists(CONFIG_FILE):
            self.save()
            return
        try:
            with open(CONFIG_FILE, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log_exception(e, "Error in Config.load(), using defaults")
            return
        if not isinstance(data, dict):
            return
        for key in ("current_model", "last_session_id"):
            if key in data:
                setattr(self, key, data[key])
        if not isinstance(self.last_session_id, str):
            self.last_session_id = None
        try:
            self.current_model = validate_model(self.current_model)
        except ValidationError:
            self.current_model = DEFAULT_MODEL
