from __future__ import annotations

import zipfile
from pathlib import Path

from .errors import MalformedRecord, MissingResource
from .paradox_text import Node, decode_game_text, find_section


TEXT_MAGIC = b"HOI4txt"
BINARY_MAGIC = b"HOI4bin"


def read_save_text(path: Path) -> str:
    """Return the text of a save, unpacking zipped saves first."""
    path = Path(path)
    if not path.is_file():
        raise MissingResource(path, "save file")

    if zipfile.is_zipfile(path):
        with zipfile.ZipFile(path) as z:
            names = z.namelist()
            if not names:
                raise MalformedRecord(path, None, "save archive is empty")
            # Prefer the gamestate entry; metadata entries are tiny.
            gamestate = [n for n in names if "gamestate" in n.lower()]
            name = gamestate[0] if gamestate else max(names, key=lambda n: z.getinfo(n).file_size)
            data = z.read(name)
    else:
        data = path.read_bytes()

    if data.startswith(BINARY_MAGIC):
        raise MalformedRecord(path, 1, "binary saves are not supported; save with save_as_binary=no")
    return decode_game_text(data)


def load_save_states(path: Path) -> Node:
    """The save's top-level ``states`` block."""
    text = read_save_text(path)
    states = find_section(text, "states", source=str(path))
    if states is None:
        raise MalformedRecord(path, None, "save has no 'states' section")
    return states
