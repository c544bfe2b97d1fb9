import random
import tempfile
import unittest
from pathlib import Path

from hoimap.countries import (
    ColorAllocator,
    load_country_colors,
    load_country_tags,
    parse_country_color,
)
from hoimap.errors import MalformedRecord, MissingResource


class ScriptedRng:
    """randint() returns queued values in order."""

    def __init__(self, values: list[int]) -> None:
        self._values = list(values)

    def randint(self, a: int, b: int) -> int:
        return self._values.pop(0)


def _write_game(root: Path, tags: str, countries: dict[str, str]) -> None:
    tags_dir = root / "common" / "country_tags"
    tags_dir.mkdir(parents=True)
    (tags_dir / "00_countries.txt").write_text(tags, encoding="utf-8")
    countries_dir = root / "common" / "countries"
    countries_dir.mkdir(parents=True)
    for name, text in countries.items():
        (countries_dir / name).write_text(text, encoding="utf-8")


class CountryColorTests(unittest.TestCase):
    def test_parse_plain_rgb_and_hsv(self) -> None:
        self.assertEqual(parse_country_color("graphical_culture = x\ncolor = { 10 20 30 }"), (10, 20, 30, 255))
        self.assertEqual(parse_country_color("color = rgb { 1 2 3 }"), (1, 2, 3, 255))
        self.assertEqual(parse_country_color("color = hsv { 0 0 1 }"), (255, 255, 255, 255))

    def test_first_triple_fallback(self) -> None:
        self.assertEqual(parse_country_color("colour = { 4 5 6 }"), (4, 5, 6, 255))

    def test_invalid_color(self) -> None:
        with self.assertRaises(MalformedRecord):
            parse_country_color("name = nothing")
        with self.assertRaises(MalformedRecord):
            parse_country_color("color = { 1 2 }")
        with self.assertRaises(MalformedRecord):
            parse_country_color("color = { 1 2 999 }")

    def test_hsv_out_of_range(self) -> None:
        for text in ("color = hsv { 0.5 2 1 }", "color = hsv { 0.5 0.5 -0.1 }", "color = hsv { 400 0.5 0.5 }"):
            with self.subTest(text=text):
                with self.assertRaises(MalformedRecord):
                    parse_country_color(text)
        self.assertEqual(parse_country_color("color = hsv { 360 0 1 }"), (255, 255, 255, 255))

    def test_country_tags_skip_switches(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            root = Path(tmp_dir)
            _write_game(
                root,
                '# tags\nGER = "countries/Germany.txt"\ndynamic_tags = yes\nFRA = "countries/France.txt"\n',
                {},
            )
            tags = load_country_tags(root)
            self.assertEqual(tags, {"GER": Path("countries/Germany.txt"), "FRA": Path("countries/France.txt")})

    def test_load_country_colors_keeps_colors_unique(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            root = Path(tmp_dir)
            _write_game(
                root,
                'AAA = "countries/A.txt"\nBBB = "countries/B.txt"\nCCC = "countries/C.txt"\n',
                {
                    "A.txt": "color = { 1 2 3 }",
                    "B.txt": "color = { 1 2 3 }",
                    "C.txt": "color = { 9 9 9 }",
                },
            )
            allocator = ColorAllocator(ScriptedRng([50, 60, 70]))
            table = load_country_colors(root, allocator)
            self.assertEqual(table["AAA"], (1, 2, 3, 255))
            self.assertEqual(table["BBB"], (50, 60, 70, 255))
            self.assertEqual(table["CCC"], (9, 9, 9, 255))
            self.assertEqual(allocator.collisions, 1)

    def test_missing_country_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            root = Path(tmp_dir)
            _write_game(root, 'AAA = "countries/A.txt"\n', {})
            with self.assertRaises(MissingResource):
                load_country_colors(root)

    def test_missing_tags_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            with self.assertRaises(MissingResource):
                load_country_tags(Path(tmp_dir))


class ColorAllocatorTests(unittest.TestCase):
    def test_keeps_free_candidate(self) -> None:
        allocator = ColorAllocator(seed=1)
        self.assertEqual(allocator.assign({"A": (1, 2, 3, 255)}, (4, 5, 6)), (4, 5, 6, 255))
        self.assertEqual(allocator.collisions, 0)

    def test_retries_until_unique(self) -> None:
        allocator = ColorAllocator(ScriptedRng([1, 2, 3, 7, 8, 9]))
        table = {"A": (1, 2, 3, 255)}
        self.assertEqual(allocator.assign(table, (1, 2, 3, 255)), (7, 8, 9, 255))
        self.assertEqual(allocator.collisions, 2)

    def test_alpha_ignored_when_comparing(self) -> None:
        allocator = ColorAllocator(ScriptedRng([0, 0, 1]))
        self.assertEqual(allocator.assign({"A": (5, 5, 5, 255)}, (5, 5, 5, 0)), (0, 0, 1, 255))

    def test_allocate_returns_new_snapshot(self) -> None:
        allocator = ColorAllocator(seed=3)
        table = {"A": (1, 2, 3, 255)}
        updated = allocator.allocate(table, "B", (4, 5, 6))
        self.assertEqual(table, {"A": (1, 2, 3, 255)})
        self.assertEqual(updated, {"A": (1, 2, 3, 255), "B": (4, 5, 6, 255)})
        self.assertEqual(allocator.allocate(updated, "B", (4, 5, 6))["B"], (4, 5, 6, 255))

    def test_forced_collisions_stay_unique_with_seed(self) -> None:
        def build(seed: int) -> dict:
            allocator = ColorAllocator(random.Random(seed))
            table: dict = {}
            for i in range(200):
                table = allocator.allocate(table, f"T{i:03d}", (0, 0, 0))
            return table

        table = build(11)
        rgbs = [color[:3] for color in table.values()]
        self.assertEqual(len(rgbs), len(set(rgbs)))
        self.assertTrue(all(color[3] == 255 for color in table.values()))
        self.assertEqual(table, build(11))


if __name__ == "__main__":
    unittest.main()
