"""配置模块 -- 可通过环境变量覆盖

包含存储后端选择、数据库路径、REST 端点以及加载超时等配置。
"""

import os
from pathlib import Path
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()

# 登录后首次加载的超时（秒）
DEFAULT_LOAD_TIMEOUT_S: float = 5.0

# REST 后端单次请求的传输层超时（秒）
DEFAULT_REQUEST_TIMEOUT_S: float = 10.0


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKTREE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKTREE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "tasktree.db"),
    )


class SyncConfig(BaseModel):
    """同步层配置 -- 从环境变量加载

    环境变量:
        TASKTREE_STORE_MODE: 存储后端（sqlite/rest）
        TASKTREE_DB_PATH: SQLite 数据库路径
        TASKTREE_REST_URL: PostgREST 兼容端点的基础 URL
        TASKTREE_REST_KEY: 端点访问密钥
        TASKTREE_LOAD_TIMEOUT_S: 首次加载超时（秒，默认 5）
        TASKTREE_REQUEST_TIMEOUT_S: REST 请求超时（秒，默认 10）
    """

    store_mode: Literal["sqlite", "rest"] = Field(
        default="sqlite",
        description="存储后端：sqlite / rest",
    )
    db_path: str = Field(default_factory=get_db_path, description="SQLite 数据库路径")
    rest_url: str = Field(
        default="http://localhost:54321",
        description="PostgREST 兼容端点基础 URL",
    )
    rest_api_key: SecretStr = Field(default=SecretStr(""), description="端点访问密钥")
    load_timeout_s: float = Field(
        default=DEFAULT_LOAD_TIMEOUT_S,
        gt=0,
        description="首次加载超时（秒）",
    )
    request_timeout_s: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_S,
        gt=0,
        description="REST 请求传输层超时（秒）",
    )


def _float_from_env(env_var: str, fallback: float) -> float | None:
    val = os.environ.get(env_var)
    if not val:
        return None
    try:
        return float(val)
    except ValueError:
        log.warning(
            "invalid_timeout_config",
            env_var=env_var,
            value=val,
            fallback=fallback,
        )
        # 使用默认值，不阻塞启动
        return None


def load_sync_config() -> SyncConfig:
    """从环境变量加载同步层配置

    Returns:
        SyncConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKTREE_STORE_MODE"):
        kwargs["store_mode"] = val

    if val := os.environ.get("TASKTREE_REST_URL"):
        kwargs["rest_url"] = val

    if val := os.environ.get("TASKTREE_REST_KEY"):
        kwargs["rest_api_key"] = SecretStr(val)

    load_timeout = _float_from_env("TASKTREE_LOAD_TIMEOUT_S", DEFAULT_LOAD_TIMEOUT_S)
    if load_timeout is not None:
        kwargs["load_timeout_s"] = load_timeout

    request_timeout = _float_from_env(
        "TASKTREE_REQUEST_TIMEOUT_S", DEFAULT_REQUEST_TIMEOUT_S
    )
    if request_timeout is not None:
        kwargs["request_timeout_s"] = request_timeout

    return SyncConfig(**kwargs)
