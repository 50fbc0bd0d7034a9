"""Configuration for opening a mapper database.

Values can be given directly, through keyword overrides on `open_db`, or
loaded from a YAML file with `load_config`.
"""
from __future__ import annotations
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional
import yaml


@dataclass
class MapperConfig:
    # LMDB environment
    map_size: int = 1 << 28
    max_readers: int = 126
    sync: bool = True
    # mapper behaviour
    log_level: Optional[str] = None
    log_operations: bool = False
    event_workers: int = 4
    default_limit: int = 1000
    purge_bucket_values: bool = True
    # codec selection, see bucketmap_lib.storage.serializer.create_codec
    codec: str = "json"
    encryption_key: Optional[str] = None
    encryption_password: Optional[str] = None

    def with_overrides(self, **overrides: Any) -> "MapperConfig":
        _check_keys(overrides)
        return replace(self, **overrides)


def _check_keys(values: dict) -> None:
    known = {f.name for f in fields(MapperConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown config option(s): {', '.join(unknown)}")


def load_yaml_file(path: Path) -> dict:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(path: str | Path) -> MapperConfig:
    """Load a `MapperConfig` from a YAML mapping.

    A missing file yields the defaults. Options may be nested under a
    top-level `bucketmap` key so the mapper section can live in a larger
    application config file.
    """
    data = load_yaml_file(Path(path))
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    if isinstance(data.get("bucketmap"), dict):
        data = data["bucketmap"]
    _check_keys(data)
    return MapperConfig(**data)
