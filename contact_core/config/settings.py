"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
各组件都通过构造参数显式接收 Settings，这里的模块级 settings 只是默认值。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CONTACT_CORE_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 存储 ----
    storage_root: str = Field(default=".storage", description="共享键值存储的根目录")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 同步与健康检查 ----
    poll_interval: float = Field(default=30.0, gt=0, description="目录摘要轮询间隔（秒）")
    probe_timeout: float = Field(default=5.0, gt=0, description="健康检查超时时间（秒）")

    # ---- 联系人导入 ----
    default_country_code: Optional[str] = Field(
        default=None,
        description="导入时若号码不以此开头则补上的国家码，例如 55",
    )
    default_instance: str = Field(default="", description="出站消息的兜底实例名")

    # ---- 文本理解服务（Provider）----
    default_provider: str = Field(default="glm", description="默认 Provider 名称，例如 glm、kimi")
    default_model: str = Field(
        default="assist-chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )
    kimi_api_key: Optional[str] = Field(default=None, description="Kimi API 密钥")
    kimi_base_url: str = Field(default="https://api.moonshot.cn/v1", description="Kimi API 基础URL")
    glm_api_key: Optional[str] = Field(default=None, description="GLM API 密钥")
    glm_base_url: str = Field(
        default="https://open.bigmodel.cn/api/paas/v4",
        description="GLM API 基础URL",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    assist_max_attempts: int = Field(default=3, ge=1, le=10, description="文本理解调用最大尝试次数")
    assist_retry_delay: float = Field(default=2.0, ge=0, description="首次重试前的等待时间（秒）")
    assist_retry_multiplier: float = Field(default=2.0, ge=1.0, description="每次重试的退避倍数")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("kimi_api_key", "glm_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("default_country_code")
    @classmethod
    def validate_country_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        v = str(v).lstrip("+").strip()
        if not v.isdigit():
            raise ValueError("default_country_code must contain digits only")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
