from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from .errors import MalformedRecord, MissingResource, ProvinceColorCollision, UnknownProvinceId
from .paradox_text import decode_game_text


RGBA = Tuple[int, int, int, int]

TRANSPARENT: RGBA = (0, 0, 0, 0)


@dataclass(frozen=True)
class Province:
    id: int
    color: RGBA
    is_land: bool


def pack_rgba(arr: np.ndarray) -> np.ndarray:
    """Pack ...x4 uint8 to uint32 (r<<24|g<<16|b<<8|a)."""
    arr = np.asarray(arr, dtype=np.uint32)
    return (arr[..., 0] << 24) | (arr[..., 1] << 16) | (arr[..., 2] << 8) | arr[..., 3]


def _channel(raw: str, *, source: str, line: int, name: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise MalformedRecord(source, line, f"{name} must be an integer, found {raw!r}") from None
    if not 0 <= value <= 255:
        raise MalformedRecord(source, line, f"{name} must be within 0-255, found {value}")
    return value


def parse_definitions(lines: Iterable[str], *, source: str = "definition.csv") -> List[Province]:
    """Parse ``id;r;g;b;type;...`` rows in file order. Blank lines are skipped."""
    provinces: List[Province] = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not line.strip():
            continue
        record = line.split(";")
        if len(record) < 5:
            raise MalformedRecord(source, lineno, f"expected at least 5 fields, found {len(record)}")
        try:
            number = int(record[0])
        except ValueError:
            raise MalformedRecord(source, lineno, f"province id must be an integer, found {record[0]!r}") from None
        r = _channel(record[1], source=source, line=lineno, name="red")
        g = _channel(record[2], source=source, line=lineno, name="green")
        b = _channel(record[3], source=source, line=lineno, name="blue")
        provinces.append(Province(id=number, color=(r, g, b, 255), is_land=record[4] == "land"))
    return provinces


def load_provinces(map_dir: Path) -> List[Province]:
    path = Path(map_dir) / "definition.csv"
    if not path.is_file():
        raise MissingResource(path, "province definitions")
    text = decode_game_text(path.read_bytes())
    return parse_definitions(text.splitlines(), source=str(path))


class ProvinceIndex:
    """Hash lookups over a registry: color -> position, id -> first province."""

    def __init__(self, provinces: Sequence[Province]) -> None:
        self.provinces = tuple(provinces)
        self._by_id: Dict[int, int] = {}
        by_color: Dict[int, int] = {}
        for pos, province in enumerate(self.provinces):
            self._by_id.setdefault(province.id, pos)
            key = int(pack_rgba(np.array(province.color, dtype=np.uint8)))
            if key in by_color:
                other = self.provinces[by_color[key]]
                raise ProvinceColorCollision(province.color, (other.id, province.id))
            by_color[key] = pos

        order = sorted(by_color)
        self._sorted_colors = np.array(order, dtype=np.uint32)
        self._sorted_positions = np.array([by_color[k] for k in order], dtype=np.int32)
        self.sea_positions = np.array(
            [pos for pos, p in enumerate(self.provinces) if not p.is_land], dtype=np.int32
        )

    def __len__(self) -> int:
        return len(self.provinces)

    def position_of(self, province_id: int) -> int:
        pos = self._by_id.get(province_id)
        if pos is None:
            raise UnknownProvinceId(province_id)
        return pos

    def by_id(self, province_id: int) -> Province:
        return self.provinces[self.position_of(province_id)]

    def label(self, pixels: np.ndarray) -> np.ndarray:
        """Registry position for every pixel of an ...x4 array, -1 when no province matches."""
        packed = pack_rgba(pixels)
        out = np.full(packed.shape, -1, dtype=np.int32)
        if self._sorted_colors.size == 0:
            return out
        idx = np.searchsorted(self._sorted_colors, packed)
        idx = np.minimum(idx, self._sorted_colors.size - 1)
        hit = self._sorted_colors[idx] == packed
        out[hit] = self._sorted_positions[idx[hit]]
        return out
