from __future__ import annotations

import datetime as dt
import json
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping

from PIL import Image

from .countries import ColorAllocator, load_country_colors
from .errors import MalformedRecord, MissingResource
from .ownership import resolve, save_states
from .provinces import RGBA, ProvinceIndex, load_provinces
from .recolor import DEFAULT_BAND_ROWS, PixelBuffer, mask_seas, recolor
from .savefile import load_save_states
from .states import load_states
from .vectorize import write_svg


WORKERS_ENV = "HOIMAP_WORKERS"


@dataclass
class RenderConfig:
    out_dir: str = "."
    workers: int | None = None
    seed: int | None = None
    band_rows: int = DEFAULT_BAND_ROWS
    write_svg: bool = True
    png_name: str = "output.png"
    svg_name: str = "output.svg"
    report_name: str = "information.json"
    log_dir: str = "logs"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], *, source: str = "<config>") -> "RenderConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise MalformedRecord(source, None, f"unknown config keys: {unknown}")

        def _is_int(value: Any) -> bool:
            return isinstance(value, int) and not isinstance(value, bool)

        for key in ("workers", "seed", "band_rows"):
            value = raw.get(key)
            if value is None and key != "band_rows":
                continue
            if key in raw and not _is_int(value):
                raise MalformedRecord(source, None, f"{key} must be an integer, found {value!r}")
        for key in ("workers", "band_rows"):
            if raw.get(key) is not None and raw[key] < 1:
                raise MalformedRecord(source, None, f"{key} must be at least 1, found {raw[key]}")
        if "write_svg" in raw and not isinstance(raw["write_svg"], bool):
            raise MalformedRecord(source, None, f"write_svg must be true or false, found {raw['write_svg']!r}")
        for key in ("out_dir", "png_name", "svg_name", "report_name", "log_dir"):
            if key in raw and not isinstance(raw[key], str):
                raise MalformedRecord(source, None, f"{key} must be a string, found {raw[key]!r}")
        return cls(**dict(raw))


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_config(path: str | None = None, **overrides: Any) -> RenderConfig:
    """Defaults, then the JSON file, then $HOIMAP_WORKERS, then non-None overrides."""
    data: Dict[str, Any] = {}
    if path:
        if not os.path.isfile(path):
            raise MissingResource(path, "config file")
        try:
            data = _load_json(path)
        except json.JSONDecodeError as exc:
            raise MalformedRecord(path, exc.lineno, f"invalid JSON: {exc.msg}") from None
        if not isinstance(data, dict):
            raise MalformedRecord(path, None, "expected a top-level object")
    env_workers = os.environ.get(WORKERS_ENV, "")
    if env_workers:
        try:
            data["workers"] = int(env_workers)
        except ValueError:
            raise MalformedRecord(WORKERS_ENV, None, f"must be an integer, found {env_workers!r}") from None
    data.update({k: v for k, v in overrides.items() if v is not None})
    return RenderConfig.from_mapping(data, source=path or "<config>")


@dataclass
class RenderResult:
    png_path: Path
    svg_path: Path | None
    report_path: Path
    log_path: str
    provinces: int
    states: int
    countries: int
    assignments: int


def write_report(path: Path, owner_colors: Mapping[str, RGBA]) -> Path:
    information = {"countries": {tag: list(color) for tag, color in sorted(owner_colors.items())}}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(information, indent=2) + "\n", encoding="utf-8")
    return path


class MapRenderer:
    """Save-to-political-map pipeline that records logs."""

    def __init__(
        self,
        game_dir: str | Path,
        save_path: str | Path,
        *,
        config: RenderConfig | None = None,
        run_label: str = "render",
    ) -> None:
        self.game_dir = Path(game_dir)
        self.map_dir = self.game_dir / "map"
        self.save_path = Path(save_path)
        self.config = config or RenderConfig()
        self.run_label = run_label
        os.makedirs(self.config.log_dir, exist_ok=True)
        run_id = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%d_%H%M%S")
        self.log_path = os.path.join(self.config.log_dir, f"{run_label}_{run_id}.log")
        self._log_fp = open(self.log_path, "w", encoding="utf-8")

    def close(self) -> None:
        self._log_fp.close()

    def log(self, msg: str) -> None:
        self._log_fp.write(msg + "\n")
        self._log_fp.flush()

    def _open_raster(self) -> Image.Image:
        path = self.map_dir / "provinces.bmp"
        if not path.is_file():
            raise MissingResource(path, "province bitmap")
        with Image.open(path) as img:
            return img.convert("RGBA")

    def run(self) -> RenderResult:
        cfg = self.config
        self.log(f"Render {self.run_label} start: game={self.game_dir} save={self.save_path}")
        self.log(f"Config: {asdict(cfg)}")
        if not self.game_dir.is_dir():
            raise MissingResource(self.game_dir, "game directory")

        # Loaders are independent; any failure propagates from result().
        allocator = ColorAllocator(seed=cfg.seed, log_fn=self.log)
        with ThreadPoolExecutor(max_workers=4) as pool:
            provinces_f = pool.submit(load_provinces, self.map_dir)
            colors_f = pool.submit(load_country_colors, self.game_dir, allocator)
            states_f = pool.submit(load_states, self.game_dir)
            save_f = pool.submit(load_save_states, self.save_path)
            provinces = provinces_f.result()
            owner_colors = colors_f.result()
            state_defs = states_f.result()
            save_block = save_f.result()
        self.log(f"Loaded {len(provinces)} provinces, {len(state_defs)} states, {len(owner_colors)} countries")
        self.log(f"Color collisions resolved: {allocator.collisions}")

        owners = save_states(save_block, source=str(self.save_path))
        assignments = resolve(owners, state_defs, owner_colors, log_fn=self.log)
        self.log(f"Resolved {len(assignments)} assignments from {len(owners)} save states")

        index = ProvinceIndex(provinces)
        buffer = PixelBuffer.from_image(
            self._open_raster(), index, workers=cfg.workers, band_rows=cfg.band_rows
        )
        self.log(f"Raster {buffer.pixels.shape[1]}x{buffer.pixels.shape[0]}")

        # Each pass returns only after every band finished.
        recolor(buffer, index, assignments, workers=cfg.workers, band_rows=cfg.band_rows, log_fn=self.log)
        mask_seas(buffer, index, workers=cfg.workers, band_rows=cfg.band_rows, log_fn=self.log)

        out_dir = Path(cfg.out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        png_path = out_dir / cfg.png_name
        buffer.to_image().save(png_path)
        self.log(f"Wrote {png_path}")

        svg_path = None
        if cfg.write_svg:
            svg_path = write_svg(buffer.pixels, out_dir / cfg.svg_name)
            self.log(f"Wrote {svg_path}")

        report_path = write_report(out_dir / cfg.report_name, owner_colors)
        self.log(f"Wrote {report_path}")
        self.log(f"Render {self.run_label} end")

        return RenderResult(
            png_path=png_path,
            svg_path=svg_path,
            report_path=report_path,
            log_path=self.log_path,
            provinces=len(provinces),
            states=len(state_defs),
            countries=len(owner_colors),
            assignments=len(assignments),
        )
