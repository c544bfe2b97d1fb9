from __future__ import annotations

import colorsys
import random
import re
from pathlib import Path
from typing import Callable, Dict, Mapping, Sequence

from .errors import MalformedRecord, MissingResource
from .paradox_text import Node, parse_text, read_game_file
from .provinces import RGBA


_FIRST_TRIPLE_RE = re.compile(r"\{\s*(\S+)\s+(\S+)\s+(\S+)\s*\}")


def load_country_tags(game_dir: Path) -> Dict[str, Path]:
    """TAG -> color file path relative to ``common/``, from every country_tags file."""
    tags_dir = Path(game_dir) / "common" / "country_tags"
    if not tags_dir.is_dir():
        raise MissingResource(tags_dir, "country tags directory")

    tags: Dict[str, Path] = {}
    for path in sorted(tags_dir.glob("*.txt")):
        root = parse_text(read_game_file(path), source=str(path))
        for tag, value in root.fields():
            # Skip switches such as ``dynamic_tags = yes``.
            if not isinstance(value, str) or not value.lower().endswith(".txt"):
                continue
            tags.setdefault(tag, Path(value.replace("\\", "/")))
    return tags


def hsv_to_rgb_int(h: float, s: float, v: float) -> tuple[int, int, int]:
    if h > 1:
        h = h / 360.0
    r, g, b = colorsys.hsv_to_rgb(h, s, v)
    return int(round(r * 255)), int(round(g * 255)), int(round(b * 255))


def _rgb_triple(raw: Sequence[str], *, source: str, line: int | None, hsv: bool) -> tuple[int, int, int]:
    if len(raw) != 3:
        raise MalformedRecord(source, line, f"color needs 3 components, found {len(raw)}")
    try:
        values = [float(x) for x in raw]
    except (TypeError, ValueError):
        raise MalformedRecord(source, line, f"color components must be numbers, found {list(raw)!r}") from None
    if hsv:
        h, s, v = values
        if h > 1:
            h = h / 360.0
        if any(c < 0 or c > 1 for c in (h, s, v)):
            raise MalformedRecord(source, line, f"hsv components must be within 0-1, found {list(raw)!r}")
        return hsv_to_rgb_int(h, s, v)
    if any(v < 0 or v > 255 for v in values):
        raise MalformedRecord(source, line, f"color components must be within 0-255, found {list(raw)!r}")
    r, g, b = (int(v) for v in values)
    return r, g, b


def parse_country_color(text: str, *, source: str = "<country>") -> RGBA:
    """Read ``color = { r g b }`` (or ``rgb {}``/``hsv {}``) from a country file."""
    root = parse_text(text, source)
    color = root.get("color")
    if isinstance(color, Node):
        raw = color.values()
        if all(isinstance(x, str) for x in raw):
            tag = (color.tag or "rgb").lower()
            r, g, b = _rgb_triple(raw, source=source, line=color.line, hsv=tag.startswith("hsv"))
            return (r, g, b, 255)

    m = _FIRST_TRIPLE_RE.search(text)
    if m is None:
        raise MalformedRecord(source, None, "no color block found")
    line = text.count("\n", 0, m.start()) + 1
    r, g, b = _rgb_triple(m.groups(), source=source, line=line, hsv=False)
    return (r, g, b, 255)


class ColorAllocator:
    """Keeps owner colors pairwise distinct, redrawing on collision.

    Retries are unbounded; that only terminates quickly while there are far
    fewer owners than the 16.7M available RGB triples.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        seed: int | None = None,
        log_fn: Callable[[str], None] | None = None,
    ) -> None:
        self._rng = rng if rng is not None else random.Random(seed)
        self._log_fn = log_fn
        self.collisions = 0

    def assign(self, table: Mapping[str, RGBA], candidate: Sequence[int]) -> RGBA:
        used = {tuple(color[:3]) for color in table.values()}
        rgb = (int(candidate[0]), int(candidate[1]), int(candidate[2]))
        while rgb in used:
            self.collisions += 1
            replacement = (
                self._rng.randint(0, 255),
                self._rng.randint(0, 255),
                self._rng.randint(0, 255),
            )
            if self._log_fn is not None:
                self._log_fn(f"Color {rgb} already taken, retrying with {replacement}")
            rgb = replacement
        return (rgb[0], rgb[1], rgb[2], 255)

    def allocate(self, table: Mapping[str, RGBA], tag: str, candidate: Sequence[int]) -> Dict[str, RGBA]:
        """Return a new table with ``tag`` added; ``table`` is left untouched."""
        others = {t: c for t, c in table.items() if t != tag}
        snapshot = dict(table)
        snapshot[tag] = self.assign(others, candidate)
        return snapshot


def load_country_colors(
    game_dir: Path,
    allocator: ColorAllocator | None = None,
    *,
    log_fn: Callable[[str], None] | None = None,
) -> Dict[str, RGBA]:
    allocator = allocator or ColorAllocator(log_fn=log_fn)
    common = Path(game_dir) / "common"
    table: Dict[str, RGBA] = {}
    for tag, rel in sorted(load_country_tags(game_dir).items()):
        path = common / rel
        if not path.is_file():
            raise MissingResource(path, f"country file for {tag}")
        color = parse_country_color(read_game_file(path), source=str(path))
        table = allocator.allocate(table, tag, color)
        if log_fn is not None and table[tag] != color:
            log_fn(f"Country {tag} color {color[:3]} reassigned to {table[tag][:3]}")
    return table
