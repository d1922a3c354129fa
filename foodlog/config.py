from __future__ import annotations

# foodlog/config.py
import logging
import os

import yaml

# Lookup order for the database path:
# 1) env FOODLOG_DB_PATH (highest priority)
# 2) config.yaml test_db_path (when running under tests)
# 3) config.yaml db_path
# 4) fallback: foodlog.db in the project root
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "foodlog.db")

MEMORY_DB = ":memory:"

DEFAULTS = {
    "worker_threads": "4",
    "busy_timeout_ms": "5000",
    "log_level": "INFO",
    "recent_limit": "20",
}


def _config_path() -> str:
    return os.environ.get("FOODLOG_CONFIG") or os.path.join(_PROJECT_ROOT, "config.yaml")


def _read_config_yaml() -> dict:
    cfg_path = _config_path()
    if not os.path.exists(cfg_path):
        return {}
    with open(cfg_path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"{cfg_path}: expected a mapping at top level")
    out = {}
    for k, v in cfg.items():
        if isinstance(v, str):
            v = v.strip()
            if not v:
                continue
        if v is not None:
            out[k] = v
    return out


def get_config() -> dict:
    cfg = _read_config_yaml()
    return {
        "db_path": cfg.get("db_path"),
        "test_db_path": cfg.get("test_db_path"),
        "worker_threads": int(cfg.get("worker_threads", DEFAULTS["worker_threads"])),
        "busy_timeout_ms": int(cfg.get("busy_timeout_ms", DEFAULTS["busy_timeout_ms"])),
        "log_level": str(cfg.get("log_level", DEFAULTS["log_level"])).upper(),
        "recent_limit": int(cfg.get("recent_limit", DEFAULTS["recent_limit"])),
    }


def get_db_path(cfg: dict | None = None) -> str:
    env_path = os.environ.get("FOODLOG_DB_PATH")
    cfg = cfg if cfg is not None else get_config()
    cfg_db = cfg.get("db_path")
    cfg_test = cfg.get("test_db_path")
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and cfg_test:
        path = cfg_test
    elif cfg_db:
        path = cfg_db
    else:
        path = _ROOT_DB

    if path == MEMORY_DB:
        return path
    # make sure the parent directory exists
    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


def configure_logging(level: str | None = None) -> None:
    level = (level or get_config()["log_level"]).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
