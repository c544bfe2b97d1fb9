from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np

from .provinces import pack_rgba


Rect = Tuple[int, int, int, int]


def _row_runs(row: np.ndarray) -> List[Tuple[int, int, int]]:
    """(x, width, packed color) for each run of equal, non-transparent pixels."""
    width = row.shape[0]
    if width == 0:
        return []
    starts = np.concatenate(([0], np.nonzero(row[1:] != row[:-1])[0] + 1))
    ends = np.concatenate((starts[1:], [width]))
    return [
        (int(x0), int(x1 - x0), int(row[x0]))
        for x0, x1 in zip(starts, ends)
        if int(row[x0]) & 0xFF
    ]


def trace_rects(pixels: np.ndarray) -> Dict[int, List[Rect]]:
    """Packed RGBA color -> rectangles covering every non-transparent pixel.

    Horizontal runs are merged downward while the run below has the same
    x, width and color.
    """
    packed = pack_rgba(pixels)
    rects: Dict[int, List[Rect]] = {}
    open_runs: Dict[Tuple[int, int, int], List[int]] = {}
    for y in range(packed.shape[0]):
        current = set(_row_runs(packed[y]))
        for key in list(open_runs):
            if key not in current:
                y0, h = open_runs.pop(key)
                x, w, color = key
                rects.setdefault(color, []).append((x, y0, w, h))
        for key in current:
            if key in open_runs:
                open_runs[key][1] += 1
            else:
                open_runs[key] = [y, 1]
    for (x, w, color), (y0, h) in open_runs.items():
        rects.setdefault(color, []).append((x, y0, w, h))
    for color_rects in rects.values():
        color_rects.sort(key=lambda r: (r[1], r[0]))
    return rects


def _fill_attrs(color: int) -> str:
    r, g, b, a = (color >> 24) & 0xFF, (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF
    attrs = f'fill="#{r:02x}{g:02x}{b:02x}"'
    if a != 255:
        attrs += f' fill-opacity="{a / 255:.3f}"'
    return attrs


def raster_to_svg(pixels: np.ndarray) -> str:
    h, w = pixels.shape[:2]
    lines = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}" '
        f'viewBox="0 0 {w} {h}" shape-rendering="crispEdges">'
    ]
    for color, color_rects in sorted(trace_rects(pixels).items()):
        lines.append(f"  <g {_fill_attrs(color)}>")
        for x, y, rw, rh in color_rects:
            lines.append(f'    <rect x="{x}" y="{y}" width="{rw}" height="{rh}"/>')
        lines.append("  </g>")
    lines.append("</svg>")
    return "\n".join(lines) + "\n"


def write_svg(pixels: np.ndarray, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(raster_to_svg(pixels), encoding="utf-8")
    return path
