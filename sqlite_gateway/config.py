from __future__ import annotations

# sqlite_gateway/config.py
import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

# DB 路径解析顺序：
# 1) 环境变量 SQLITE_GATEWAY_DB_PATH（最高优先级）
# 2) config.yaml 的 test_db_path（当检测到测试环境时）
# 3) config.yaml 的 db_path（生产默认）
# 4) 兜底：项目根 app.db
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "app.db")

DEFAULTS = {
    "schema_version": "1.0",
    "max_retry_count": "3",
    "retry_delay_ms": "1000",
    "include_relations": "false",
    "log_level": "INFO",
    "operation_log": "false",
}


@dataclass
class Settings:
    db_path: str
    schema_version: str = "1.0"
    max_retry_count: int = 3
    retry_delay_ms: int = 1000
    include_relations: bool = False
    log_level: str = "INFO"
    operation_log: bool = False

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000.0


def _config_path(path: str | None = None) -> str:
    return path or os.environ.get("SQLITE_GATEWAY_CONFIG") or os.path.join(_PROJECT_ROOT, "config.yaml")


def _read_config_yaml(path: str | None = None) -> dict:
    cfg_path = _config_path(path)
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("config file %s unreadable, using defaults: %s", cfg_path, e)
        return {}
    if not isinstance(cfg, dict):
        logger.warning("config file %s is not a mapping, using defaults", cfg_path)
        return {}
    return cfg


def _to_int(v, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _to_bool(v) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "yes", "on")


def get_db_path(cfg: dict | None = None) -> str:
    cfg = _read_config_yaml() if cfg is None else cfg
    env_path = os.environ.get("SQLITE_GATEWAY_DB_PATH")
    cfg_db = cfg.get("db_path")
    cfg_test = cfg.get("test_db_path")
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and isinstance(cfg_test, str) and cfg_test.strip():
        path = cfg_test.strip()
    elif isinstance(cfg_db, str) and cfg_db.strip():
        path = cfg_db.strip()
    else:
        path = _ROOT_DB

    # 确保目录存在
    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


def load_settings(config_path: str | None = None) -> Settings:
    """config_path 优先于 SQLITE_GATEWAY_CONFIG。"""
    cfg = _read_config_yaml(config_path)
    raw = {k: cfg.get(k, v) for k, v in DEFAULTS.items()}
    return Settings(
        db_path=get_db_path(cfg),
        schema_version=str(raw["schema_version"]),
        max_retry_count=max(1, _to_int(raw["max_retry_count"], int(DEFAULTS["max_retry_count"]))),
        retry_delay_ms=max(0, _to_int(raw["retry_delay_ms"], int(DEFAULTS["retry_delay_ms"]))),
        include_relations=_to_bool(raw["include_relations"]),
        log_level=str(raw["log_level"]).upper(),
        operation_log=_to_bool(raw["operation_log"]),
    )
