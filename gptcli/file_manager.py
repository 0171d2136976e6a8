"""Attachment I/O. Directory scans for the file picker and truncated file reads."""

import os
import re

MAX_ATTACHMENT_LINES = 1000
MAX_PICKER_ENTRIES = 10

# Characters that cancel an '@' when they directly precede it
REF_BLOCKER = re.compile(r"[\w\\]")


def find_file_query(text: str) -> str | None:
    """Returns the partial path after the trailing @-reference, or None."""
    at_index = text.rfind("@")
    if at_index == -1:
        return None
    if at_index > 0 and REF_BLOCKER.match(text[at_index - 1]):
        return None
    query = text[at_index + 1 :]
    if any(ch.isspace() for ch in query):
        return None
    return query


def scan_files(query: str) -> list[str]:
    """Lists up to ten entries whose names start with the query's last path segment."""
    if "/" in query:
        directory = query[: query.rfind("/")] or "/"
        prefix = query[query.rfind("/") + 1 :]
    else:
        directory = ""
        prefix = query
    try:
        entries = sorted(os.listdir(os.path.expanduser(directory) or os.getcwd()))
    except OSError:
        return []
    matches = [
        os.path.join(directory, name) if directory else name
        for name in entries
        if name.startswith(prefix)
    ]
    return matches[:MAX_PICKER_ENTRIES]


def read_file(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError:
        with open(path, "r", encoding="latin-1") as f:
            return f.read()


def read_attachment(path: str) -> str:
    """Wraps a file's content in a labeled block, truncated past 1000 lines."""
    full_path = os.path.abspath(os.path.expanduser(path))
    try:
        content = read_file(full_path)
    except OSError:
        return f"[Could not read file: {path}]"

    lines = content.split("\n")
    if len(lines) > MAX_ATTACHMENT_LINES:
        content = (
            "\n".join(lines[:MAX_ATTACHMENT_LINES])
            + f"\n\n... (truncated, {MAX_ATTACHMENT_LINES}+ lines)"
        )
    ext = os.path.splitext(full_path)[1][1:] or "txt"
    return f"## File: {path}\n\n```{ext}\n{content}\n```"


def expand_attachments(text: str, attachments: list[str]) -> str:
    """Appends each attached file to the outgoing text."""
    if not attachments:
        return text
    blocks = [read_attachment(path) for path in attachments]
    return text + "\n\n" + "\n\n".join(blocks)
