"""GPT CLI, a terminal chat client for OpenAI models."""

__version__ = "0.3.0"
