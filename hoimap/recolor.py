from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Iterable, List

import numpy as np
from PIL import Image

from .ownership import Assignment
from .provinces import ProvinceIndex


DEFAULT_BAND_ROWS = 256


def default_workers() -> int:
    return min(32, max(os.cpu_count() or 1, 1))


def _bands(height: int, band_rows: int) -> List[slice]:
    band_rows = max(int(band_rows), 1)
    return [slice(y, min(height, y + band_rows)) for y in range(0, height, band_rows)]


def _run_bands(
    work: Callable[[slice], int],
    height: int,
    *,
    workers: int | None,
    band_rows: int,
) -> int:
    """Run ``work`` over disjoint row bands and wait for all of them."""
    bands = _bands(height, band_rows)
    if not bands:
        return 0
    worker_count = workers or default_workers()
    total = 0
    with ThreadPoolExecutor(max_workers=worker_count) as pool:
        futures = [pool.submit(work, rows) for rows in bands]
        for future in as_completed(futures):
            total += future.result()
    return total


@dataclass
class PixelBuffer:
    """RGBA pixels plus the province each pixel belonged to when loaded.

    ``labels`` holds registry positions (-1 for colors no province uses) and
    never changes after construction, so the sea mask still finds sea pixels
    that an earlier pass already recolored.
    """

    pixels: np.ndarray
    labels: np.ndarray

    @classmethod
    def from_pixels(
        cls,
        pixels: np.ndarray,
        index: ProvinceIndex,
        *,
        workers: int | None = None,
        band_rows: int = DEFAULT_BAND_ROWS,
    ) -> "PixelBuffer":
        pixels = np.ascontiguousarray(pixels, dtype=np.uint8)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected an HxWx4 RGBA array, got shape {pixels.shape}")
        labels = np.empty(pixels.shape[:2], dtype=np.int32)

        def _label(rows: slice) -> int:
            labels[rows] = index.label(pixels[rows])
            return rows.stop - rows.start

        _run_bands(_label, pixels.shape[0], workers=workers, band_rows=band_rows)
        return cls(pixels=pixels, labels=labels)

    @classmethod
    def from_image(
        cls,
        image: Image.Image,
        index: ProvinceIndex,
        *,
        workers: int | None = None,
        band_rows: int = DEFAULT_BAND_ROWS,
    ) -> "PixelBuffer":
        return cls.from_pixels(
            np.array(image.convert("RGBA"), dtype=np.uint8),
            index,
            workers=workers,
            band_rows=band_rows,
        )

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)


def recolor(
    buffer: PixelBuffer,
    index: ProvinceIndex,
    assignments: Iterable[Assignment],
    *,
    workers: int | None = None,
    band_rows: int = DEFAULT_BAND_ROWS,
    log_fn: Callable[[str], None] | None = None,
) -> PixelBuffer:
    """Paint every pixel of each assigned province with its assignment color.

    Later assignments win when they name the same province.
    """
    # One extra slot at the end: label -1 indexes it and it never has a target.
    palette = np.zeros((len(index) + 1, 4), dtype=np.uint8)
    has_target = np.zeros(len(index) + 1, dtype=bool)
    for assignment in assignments:
        for province_id in assignment.province_ids:
            pos = index.position_of(province_id)
            palette[pos] = assignment.color
            has_target[pos] = True

    def _paint(rows: slice) -> int:
        labels = buffer.labels[rows]
        hit = has_target[labels]
        buffer.pixels[rows][hit] = palette[labels[hit]]
        return int(hit.sum())

    painted = _run_bands(_paint, buffer.pixels.shape[0], workers=workers, band_rows=band_rows)
    if log_fn is not None:
        log_fn(f"Recolored {painted} pixels across {int(has_target.sum())} provinces")
    return buffer


def mask_seas(
    buffer: PixelBuffer,
    index: ProvinceIndex,
    *,
    workers: int | None = None,
    band_rows: int = DEFAULT_BAND_ROWS,
    log_fn: Callable[[str], None] | None = None,
) -> PixelBuffer:
    """Clear every pixel of a non-land province to (0, 0, 0, 0)."""
    is_sea = np.zeros(len(index) + 1, dtype=bool)
    is_sea[index.sea_positions] = True

    def _clear(rows: slice) -> int:
        hit = is_sea[buffer.labels[rows]]
        buffer.pixels[rows][hit] = 0
        return int(hit.sum())

    cleared = _run_bands(_clear, buffer.pixels.shape[0], workers=workers, band_rows=band_rows)
    if log_fn is not None:
        log_fn(f"Cleared {cleared} sea pixels across {index.sea_positions.size} provinces")
    return buffer
