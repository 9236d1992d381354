from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Paths:
    root: Path
    var_dir: Path
    local_dir: Path
    conf_file: Path
    export_dir: Path


@dataclass
class Settings:
    api_base_url: str = "http://localhost:5002"
    settle_delay: float = 1.5        # seconds between a successful load and the sync pass
    max_retries: int = 3
    request_timeout: float = 10.0
    default_region: str = "GB"
    storage_file: str = "var/storage.json"


DEFAULT_CONF = """# cardwallet local config (TOML)
api_base_url = "http://localhost:5002"
settle_delay = 1.5
max_retries = 3
request_timeout = 10.0
default_region = "GB"
storage_file = "var/storage.json"
"""


def _apply(settings: Settings, data: dict) -> None:
    settings.api_base_url = str(data.get("api_base_url", settings.api_base_url)).rstrip("/")
    settings.settle_delay = float(data.get("settle_delay", settings.settle_delay))
    settings.max_retries = max(1, int(data.get("max_retries", settings.max_retries)))
    settings.request_timeout = float(data.get("request_timeout", settings.request_timeout))
    settings.default_region = str(data.get("default_region", settings.default_region)).upper()
    settings.storage_file = str(data.get("storage_file", settings.storage_file))


def ensure_workspace(base: Path | None = None) -> tuple[Paths, Settings]:
    root = Path(base or os.getcwd())
    var = root / "var"
    local = root / "local"
    exports = root / "cards-export"
    conf = local / "cardwallet.conf"

    for d in (var, local):
        d.mkdir(parents=True, exist_ok=True)

    if not conf.exists():
        conf.write_text(DEFAULT_CONF, encoding="utf-8")

    settings = Settings()
    try:
        _apply(settings, tomllib.loads(conf.read_text(encoding="utf-8")))
    except (tomllib.TOMLDecodeError, ValueError, TypeError) as e:
        # malformed config: keep defaults
        logger.warning("Ignoring malformed config %s: %s", conf, e)
        settings = Settings()

    return (
        Paths(root=root, var_dir=var, local_dir=local, conf_file=conf, export_dir=exports),
        settings,
    )


def storage_path(paths: Paths, settings: Settings) -> Path:
    p = Path(settings.storage_file)
    return p if p.is_absolute() else paths.root / p
