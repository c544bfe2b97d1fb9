import tempfile
import unittest
from pathlib import Path
from xml.etree import ElementTree

import numpy as np

from hoimap.provinces import pack_rgba
from hoimap.vectorize import raster_to_svg, trace_rects, write_svg


RED = (200, 0, 0, 255)
BLUE = (0, 0, 200, 128)
CLEAR = (0, 0, 0, 0)


def _coverage(rects: dict, shape: tuple[int, int]) -> np.ndarray:
    out = np.zeros(shape, dtype=np.uint32)
    for color, color_rects in rects.items():
        for x, y, w, h in color_rects:
            overlap = out[y : y + h, x : x + w]
            assert not overlap.any()
            out[y : y + h, x : x + w] = color
    return out


class VectorizeTests(unittest.TestCase):
    def test_rects_cover_opaque_pixels_exactly(self) -> None:
        rng = np.random.default_rng(5)
        palette = np.array([RED, BLUE, CLEAR], dtype=np.uint8)
        pixels = palette[rng.integers(0, 3, size=(19, 13))]
        rects = trace_rects(pixels)
        expected = pack_rgba(pixels)
        expected[pixels[..., 3] == 0] = 0
        np.testing.assert_array_equal(_coverage(rects, (19, 13)), expected)

    def test_vertical_runs_merge(self) -> None:
        pixels = np.array([[RED, RED, CLEAR], [RED, RED, CLEAR], [RED, CLEAR, CLEAR]], dtype=np.uint8)
        rects = trace_rects(pixels)
        key = int(pack_rgba(np.array(RED, dtype=np.uint8)))
        self.assertEqual(sorted(rects[key]), [(0, 0, 2, 2), (0, 2, 1, 1)])

    def test_svg_is_well_formed(self) -> None:
        pixels = np.array([[RED, BLUE], [CLEAR, RED]], dtype=np.uint8)
        svg = raster_to_svg(pixels)
        root = ElementTree.fromstring(svg)
        self.assertEqual(root.get("viewBox"), "0 0 2 2")
        groups = root.findall("{http://www.w3.org/2000/svg}g")
        fills = {g.get("fill"): g.get("fill-opacity") for g in groups}
        self.assertEqual(fills, {"#c80000": None, "#0000c8": "0.502"})

    def test_fully_transparent_image(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = write_svg(np.zeros((3, 4, 4), dtype=np.uint8), Path(tmp_dir) / "out" / "map.svg")
            root = ElementTree.fromstring(path.read_text(encoding="utf-8"))
            self.assertEqual(len(list(root)), 0)


if __name__ == "__main__":
    unittest.main()
