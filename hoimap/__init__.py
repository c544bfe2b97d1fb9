"""Political map rendering from strategy-game saves."""

from .countries import ColorAllocator, load_country_colors, parse_country_color
from .errors import MalformedRecord, MapDataError, MissingResource, ProvinceColorCollision, UnknownProvinceId
from .ownership import Assignment, resolve, save_states
from .provinces import TRANSPARENT, Province, ProvinceIndex, load_provinces, parse_definitions
from .recolor import PixelBuffer, mask_seas, recolor
from .states import State, load_states, parse_state

__all__ = [
    "Assignment",
    "ColorAllocator",
    "MalformedRecord",
    "MapDataError",
    "MapRenderer",
    "MissingResource",
    "PixelBuffer",
    "Province",
    "ProvinceColorCollision",
    "ProvinceIndex",
    "State",
    "TRANSPARENT",
    "UnknownProvinceId",
    "load_country_colors",
    "load_provinces",
    "load_states",
    "mask_seas",
    "parse_country_color",
    "parse_definitions",
    "parse_state",
    "recolor",
    "resolve",
    "save_states",
]


def __getattr__(name: str):
    if name == "MapRenderer":
        from .pipeline import MapRenderer

        return MapRenderer
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
