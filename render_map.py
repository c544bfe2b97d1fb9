#!/usr/bin/env python3
"""Render a political map from a save file.

Usage: python render_map.py <game_dir> <save_path>

Writes output.png (recolored, seas cleared), output.svg and
information.json (owner tag -> display color).
"""

from __future__ import annotations

import argparse
import sys

from hoimap.errors import MapDataError
from hoimap.pipeline import MapRenderer, load_config


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a political map from a save file")
    parser.add_argument("game_dir", help="Game root directory (contains map/, history/, common/)")
    parser.add_argument("save", help="Path to the save file to render")
    parser.add_argument("--config", default=None, help="Optional JSON file with render settings")
    parser.add_argument("--out-dir", default=None, help="Directory for output files (default: .)")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads for pixel passes")
    parser.add_argument("--seed", type=int, default=None, help="Seed for replacement colors on collisions")
    parser.add_argument("--no-svg", action="store_true", help="Skip the vector output.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    try:
        config = load_config(
            args.config,
            out_dir=args.out_dir,
            workers=args.workers,
            seed=args.seed,
            write_svg=False if args.no_svg else None,
        )
        renderer = MapRenderer(args.game_dir, args.save, config=config)
    except MapDataError as exc:
        raise SystemExit(f"Error: {exc}")

    try:
        print("Rendering map...")
        result = renderer.run()
    except MapDataError as exc:
        renderer.log(f"Error: {exc}")
        raise SystemExit(f"Error: {exc}")
    finally:
        renderer.close()

    print(f"Provinces: {result.provinces}  States: {result.states}  Countries: {result.countries}")
    print(f"Wrote: {result.png_path}")
    if result.svg_path is not None:
        print(f"Wrote: {result.svg_path}")
    print(f"Wrote: {result.report_path}")
    print(f"Log: {result.log_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
