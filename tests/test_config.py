"""Config defaults, persistence and validation."""

import json
from unittest.mock import patch

import pytest

from gptcli.config import Config, validate_model
from gptcli.errors import ValidationError


def test_config_defaults(config_file):
    """Verify Config initializes with correct defaults."""
    cfg = Config()

    assert cfg.current_model == "gpt-4o-mini"
    assert cfg.last_session_id is None


def test_config_save_load(config_file):
    """Verify settings survive a save and a fresh load."""
    # 1. Create and save
    cfg = Config()
    cfg.current_model = "gpt-4o"
    cfg.last_session_id = "1700000000000-abc123def"
    cfg.save()

    # 2. Load into new object
    cfg_loaded = Config()
    cfg_loaded.load()

    assert cfg_loaded.current_model == "gpt-4o"
    assert cfg_loaded.last_session_id == "1700000000000-abc123def"


def test_load_creates_missing_file(config_file):
    assert not config_file.exists()
    Config().load()
    assert json.loads(config_file.read_text())["current_model"] == "gpt-4o-mini"


def test_unsupported_model_falls_back_to_default(config_file):
    config_file.write_text(json.dumps({"current_model": "gpt-2", "last_session_id": "x"}))

    cfg = Config()
    cfg.load()

    assert cfg.current_model == "gpt-4o-mini"
    assert cfg.last_session_id == "x"


def test_corrupt_file_keeps_defaults(config_file):
    config_file.write_text("{not json")

    cfg = Config()
    cfg.load()

    assert cfg.current_model == "gpt-4o-mini"


@pytest.mark.parametrize("bad_id", [123, ["a"], {"id": "x"}, True])
def test_non_string_session_id_is_dropped(config_file, bad_id):
    config_file.write_text(json.dumps({"current_model": "gpt-4o", "last_session_id": bad_id}))

    cfg = Config()
    cfg.load()

    assert cfg.current_model == "gpt-4o"
    assert cfg.last_session_id is None


def test_save_failure_is_swallowed(tmp_path):
    """A config path inside a regular file cannot be written; save() must not raise."""
    blocker = tmp_path / "blocker"
    blocker.write_text("")

    with patch("gptcli.config.CONFIG_FILE", str(blocker / "settings.json")):
        Config().save()


def test_validate_model():
    assert validate_model(" gpt-5 ") == "gpt-5"
    with pytest.raises(ValidationError):
        validate_model("bogus-name")
