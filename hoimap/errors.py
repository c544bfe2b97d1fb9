from __future__ import annotations

from pathlib import Path
from typing import Iterable


class MapDataError(Exception):
    """Base class for every load or consistency failure that aborts a render."""


class MalformedRecord(MapDataError):
    def __init__(self, source: str | Path, line: int | None, reason: str) -> None:
        self.source = str(source)
        self.line = line
        self.reason = reason
        where = self.source if line is None else f"{self.source}:{line}"
        super().__init__(f"{where}: {reason}")


class MissingResource(MapDataError):
    def __init__(self, path: str | Path, what: str = "file") -> None:
        self.path = Path(path)
        self.what = what
        super().__init__(f"Missing {what}: {self.path}")


class UnknownProvinceId(MapDataError):
    def __init__(self, province_id: int) -> None:
        self.province_id = province_id
        super().__init__(
            f"Province {province_id} is referenced by the save but not defined in definition.csv"
        )


class ProvinceColorCollision(MapDataError):
    def __init__(self, color: tuple[int, int, int, int], province_ids: Iterable[int]) -> None:
        self.color = color
        self.province_ids = tuple(province_ids)
        super().__init__(
            f"Provinces {list(self.province_ids)} share color {color}; recoloring would be ambiguous"
        )
