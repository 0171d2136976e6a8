"""Key bindings of the chat controller, driven without a terminal."""

from types import SimpleNamespace

import pytest
from prompt_toolkit.application import create_app_session
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.keys import Keys
from prompt_toolkit.output import DummyOutput

from gptcli.cli_controller import ChatController
from gptcli.ui import GlobalPanels, UIConstructor


@pytest.fixture
def controller(engine):
    with create_pipe_input() as pipe_input:
        with create_app_session(input=pipe_input, output=DummyOutput()):
            ui = UIConstructor(engine)
            yield ChatController(engine, ui, GlobalPanels(ui))


def bindings_for(controller, *keys):
    return controller.prompt_session.key_bindings.get_bindings_for_keys(keys)


def test_alt_enter_inserts_a_line_break(controller):
    bindings = bindings_for(controller, Keys.Escape, Keys.ControlM)
    assert bindings

    buffer = Buffer()
    buffer.insert_text("first line")
    bindings[-1].handler(SimpleNamespace(current_buffer=buffer))
    buffer.insert_text("second line")

    assert buffer.text == "first line\nsecond line"


def test_alt_enter_is_disabled_in_pickers(controller, engine):
    binding = bindings_for(controller, Keys.Escape, Keys.ControlM)[-1]

    assert binding.filter()
    engine.modes.open_model_picker(engine.current_model)
    assert not binding.filter()


def test_escape_waits_for_a_following_key(controller):
    (binding,) = [
        b for b in bindings_for(controller, Keys.Escape) if b.keys == (Keys.Escape,)
    ]

    assert not binding.eager()
