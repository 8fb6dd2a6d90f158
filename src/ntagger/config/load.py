from __future__ import annotations
from .schemas import Config
from pathlib import Path
import json

import tomllib

def _resolve(base: Path, value: str | None) -> str | None:
    if value is None:
        return None
    p = Path(value).expanduser()
    return str(p if p.is_absolute() else (base / p))

def load_config(path: str | Path) -> Config:
    """
    Parse a TOML config into a validated Config.

    Relative file paths ([io].input_path, [geometry].pmt_table) are taken
    relative to the directory holding the config file.
    """
    p = Path(path)
    data = tomllib.loads(p.read_text())
    cfg = Config(**data)
    base = p.resolve().parent
    if cfg.io is not None:
        cfg.io.input_path = _resolve(base, cfg.io.input_path)
    cfg.geometry.pmt_table = _resolve(base, cfg.geometry.pmt_table)
    return cfg

def json_dumps(obj) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)

def config_summary(cfg: Config) -> str:
    """Compact one-line JSON of the search thresholds, for diagnostics output."""
    return json_dumps(cfg.search.model_dump())
