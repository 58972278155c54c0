# utils/config.py
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from utils.logger import logger

_ENV_REF = re.compile(r"^\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>.*))?\}$")


def _resolve_env(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _resolve_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_resolve_env(v) for v in obj]
    if isinstance(obj, str):
        m = _ENV_REF.match(obj.strip())
        if m:
            return os.getenv(m.group("name"), m.group("default") or "")
    return obj


def _contains_live_mode(obj: Any) -> bool:
    if isinstance(obj, dict):
        for k, v in obj.items():
            if k == "mode" and str(v).lower() == "live":
                return True
            if _contains_live_mode(v):
                return True
    elif isinstance(obj, list):
        return any(_contains_live_mode(v) for v in obj)
    return False


def load_cfg(cfg_path: str | os.PathLike | None = None) -> dict:
    """
    Load the YAML configuration.

    Lookup order for the file: explicit ``cfg_path``, then ``$APCA_CONFIG``,
    then ``config.yaml`` at the repository root. A ``.env`` file next to the
    configuration is loaded first so that ``${VAR}`` / ``${VAR:-default}``
    references can be resolved from it.
    """
    base_dir = Path(__file__).resolve().parents[1]
    env_path = cfg_path or os.getenv("APCA_CONFIG")
    cfg_file = Path(env_path).expanduser() if env_path else (base_dir / "config.yaml")

    load_dotenv(cfg_file.parent / ".env")

    with open(cfg_file, "r", encoding="utf-8") as f:
        raw_cfg = yaml.safe_load(f) or {}

    cfg = _resolve_env(raw_cfg)

    if _contains_live_mode(cfg):
        logger.warning("Live trading mode configured: orders will hit a real account")

    return cfg
