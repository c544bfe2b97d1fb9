from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Tuple

from .errors import MalformedRecord, MissingResource
from .paradox_text import Node, as_int, as_int_list, parse_text, read_game_file


@dataclass(frozen=True)
class State:
    id: int
    province_ids: Tuple[int, ...]


def parse_state(text: str, *, source: str = "<state>") -> State:
    """Read the first top-level block of a history/states file."""
    root = parse_text(text, source)
    first = root.first()
    if first is None or not isinstance(first[1], Node):
        raise MalformedRecord(source, root.line, "expected a 'state = { ... }' block")
    block = first[1]
    if block.get("id") is None:
        raise MalformedRecord(source, block.line, "state has no 'id'")
    if block.get("provinces") is None:
        raise MalformedRecord(source, block.line, "state has no 'provinces'")
    state_id = as_int(block.get("id"), source=source, line=block.line_of("id"), what="state id")
    provinces = as_int_list(
        block.get("provinces"), source=source, line=block.line_of("provinces"), what="province id"
    )
    return State(id=state_id, province_ids=tuple(provinces))


def load_states(game_dir: Path) -> Dict[int, State]:
    states_dir = Path(game_dir) / "history" / "states"
    if not states_dir.is_dir():
        raise MissingResource(states_dir, "state definitions directory")

    states: Dict[int, State] = {}
    origin: Dict[int, Path] = {}
    for path in sorted(states_dir.glob("*.txt")):
        state = parse_state(read_game_file(path), source=str(path))
        if state.id in states:
            raise MalformedRecord(path, None, f"state {state.id} is already defined in {origin[state.id]}")
        states[state.id] = state
        origin[state.id] = path
    return states
