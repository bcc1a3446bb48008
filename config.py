"""
config.py - load and validate mediadeck configuration.

Search order (later entries override earlier):
  1. Built-in defaults
  2. /etc/mediadeck/mediadeck.conf   (system-wide, if present)
  3. ~/.config/mediadeck/mediadeck.conf  (user)
  4. --config FILE (command line)

User preferences that change at runtime (supported formats, recent folders,
cache size) live in the settings store, not here.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

# ---------------------------------------------------------------------------
# Default configuration values
# ---------------------------------------------------------------------------

SYSTEM_CONF = Path("/etc/mediadeck/mediadeck.conf")
USER_CONF = Path.home() / ".config" / "mediadeck" / "mediadeck.conf"

DEFAULT_SETTINGS_FILE = str(
    Path.home() / ".config" / "mediadeck" / "settings.json"
)
DEFAULT_LOG_FILE = str(
    Path.home() / ".local" / "share" / "mediadeck" / "logs" / "mediadeck.log"
)


# ---------------------------------------------------------------------------
# Dataclasses representing the full config
# ---------------------------------------------------------------------------


@dataclass
class PathsConfig:
    settings_file: str = DEFAULT_SETTINGS_FILE


@dataclass
class ScanConfig:
    max_workers: int = 8


@dataclass
class CacheConfig:
    ttl_seconds: float = 60.0
    max_entries: int = 100
    sweep_interval_seconds: float = 60.0
    max_age_seconds: float = 300.0   # swept regardless of capacity


@dataclass
class ThumbnailConfig:
    size: int = 300
    quality: int = 75
    max_entries: int = 200
    sweep_batch: int = 50


@dataclass
class MetadataConfig:
    max_entries: int = 500
    sweep_batch: int = 100


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_file: str = DEFAULT_LOG_FILE


@dataclass
class MediadeckConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    thumbnails: ThumbnailConfig = field(default_factory=ThumbnailConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base*, returning a new dict."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_toml(path: Path) -> dict:
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError:
        return {}
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse config file {path}: {exc}") from exc


def _positive_int(section: dict, key: str, default: int) -> int:
    value = int(section.get(key, default))
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def _positive_float(section: dict, key: str, default: float) -> float:
    value = float(section.get(key, default))
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def load_config(
    extra_path: Path | None = None,
    search_paths: list[Path] | None = None,
) -> MediadeckConfig:
    """Load and merge config from all known locations."""
    raw: dict = {}
    for conf_path in search_paths if search_paths is not None else [SYSTEM_CONF, USER_CONF]:
        raw = _merge(raw, _load_toml(conf_path))
    if extra_path:
        raw = _merge(raw, _load_toml(extra_path))

    cfg = MediadeckConfig()

    p = raw.get("paths", {})
    cfg.paths.settings_file = str(
        Path(p.get("settings_file", cfg.paths.settings_file)).expanduser()
    )

    s = raw.get("scan", {})
    cfg.scan.max_workers = _positive_int(s, "max_workers", cfg.scan.max_workers)

    c = raw.get("cache", {})
    cfg.cache.ttl_seconds = _positive_float(c, "ttl_seconds", cfg.cache.ttl_seconds)
    cfg.cache.max_entries = _positive_int(c, "max_entries", cfg.cache.max_entries)
    cfg.cache.sweep_interval_seconds = _positive_float(
        c, "sweep_interval_seconds", cfg.cache.sweep_interval_seconds
    )
    cfg.cache.max_age_seconds = _positive_float(
        c, "max_age_seconds", cfg.cache.max_age_seconds
    )

    t = raw.get("thumbnails", {})
    cfg.thumbnails.size = _positive_int(t, "size", cfg.thumbnails.size)
    cfg.thumbnails.quality = int(t.get("quality", cfg.thumbnails.quality))
    if not 1 <= cfg.thumbnails.quality <= 95:
        raise ValueError(
            f"thumbnails.quality must be between 1 and 95, got {cfg.thumbnails.quality}"
        )
    cfg.thumbnails.max_entries = _positive_int(t, "max_entries", cfg.thumbnails.max_entries)
    cfg.thumbnails.sweep_batch = _positive_int(t, "sweep_batch", cfg.thumbnails.sweep_batch)

    m = raw.get("metadata", {})
    cfg.metadata.max_entries = _positive_int(m, "max_entries", cfg.metadata.max_entries)
    cfg.metadata.sweep_batch = _positive_int(m, "sweep_batch", cfg.metadata.sweep_batch)

    lo = raw.get("logging", {})
    cfg.logging.level = lo.get("level", cfg.logging.level).upper()
    cfg.logging.log_file = str(Path(lo.get("log_file", cfg.logging.log_file)).expanduser())

    return cfg


def ensure_user_config_exists() -> None:
    """Write a default config file to the user location if none exists."""
    if USER_CONF.exists():
        return
    USER_CONF.parent.mkdir(parents=True, exist_ok=True)
    USER_CONF.write_text(
        f"""\
# mediadeck configuration

[paths]
settings_file = "{DEFAULT_SETTINGS_FILE}"

[scan]
max_workers = 8

[cache]
ttl_seconds = 60
max_entries = 100
sweep_interval_seconds = 60
max_age_seconds = 300

[thumbnails]
size = 300
quality = 75
max_entries = 200
sweep_batch = 50

[metadata]
max_entries = 500
sweep_batch = 100

[logging]
level = "INFO"
log_file = "{DEFAULT_LOG_FILE}"
""",
        encoding="utf-8",
    )
