from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Tuple

from .errors import MalformedRecord
from .paradox_text import Node, as_int
from .provinces import RGBA, TRANSPARENT
from .states import State


@dataclass(frozen=True)
class Assignment:
    province_ids: Tuple[int, ...]
    color: RGBA


def save_states(states: Node, *, source: str = "<save>") -> List[Tuple[int, str]]:
    """(state id, owner tag) for every entry of a save's ``states`` block, in file order."""
    out: List[Tuple[int, str]] = []
    for key, value, line in states.fields_with_lines():
        state_id = as_int(key, source=source, line=line, what="state id")
        if not isinstance(value, Node):
            raise MalformedRecord(source, line, f"state {state_id} is not a block")
        owner = value.get("owner")
        if not isinstance(owner, str):
            raise MalformedRecord(source, line, f"state {state_id} has no owner")
        out.append((state_id, owner))
    return out


def resolve(
    owners: Iterable[Tuple[int, str]],
    state_definitions: Mapping[int, State],
    owner_colors: Mapping[str, RGBA],
    *,
    log_fn: Callable[[str], None] | None = None,
) -> List[Assignment]:
    """One Assignment per save state that also has a state definition.

    Owners without a color map to TRANSPARENT; states without a definition
    contribute nothing.
    """
    assignments: List[Assignment] = []
    for state_id, owner in owners:
        state = state_definitions.get(state_id)
        if state is None:
            if log_fn is not None:
                log_fn(f"State {state_id} (owner {owner}) has no definition, skipped")
            continue
        color = owner_colors.get(owner)
        if color is None:
            if log_fn is not None:
                log_fn(f"Owner {owner} of state {state_id} has no color, drawn transparent")
            color = TRANSPARENT
        assignments.append(Assignment(province_ids=state.province_ids, color=color))
    return assignments
