"""全局配置加载模块：从环境变量构建引擎运行参数并提供缓存访问。"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _csv_to_list(value: str) -> list[str]:
    """将逗号分隔字符串转换为去空白列表。"""
    return [item.strip() for item in value.split(",") if item.strip()]


class SkillLimitOverride(BaseModel):
    """单个技能的资源限制覆盖项，未填写的字段沿用全局默认值。"""
    timeout_seconds: float | None = None
    max_output_chars: int | None = None


@dataclass(frozen=True, slots=True)
class ResourceLimits:
    """技能执行资源预算。"""
    timeout_seconds: float
    max_output_chars: int


class Settings(BaseSettings):
    """引擎运行配置对象，从环境变量读取并提供类型化访问。"""
    model_config = SettingsConfigDict(
        env_prefix="YOZUK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Yozuk"
    api_prefix: str = "/api/v1"
    environment: str = "dev"
    server_host: str = "127.0.0.1"
    server_port: int = 8080

    confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    ambiguity_margin: float = Field(default=0.15, ge=0.0, le=1.0)
    confidence_floor: float = Field(default=0.4, ge=0.0, le=1.0)
    max_clarify_options: int = Field(default=5, ge=1)

    clarification_timeout_seconds: float = 120.0
    session_sweep_interval_seconds: float = 30.0
    conversation_queue_depth: int = Field(default=16, ge=1)
    max_attachment_bytes: int = Field(default=10 * 1024 * 1024, ge=1)

    enabled_skills: str = ""
    disabled_skills: str = ""
    executor_max_workers: int = 8
    skill_timeout_seconds: float = 2.0
    skill_max_output_chars: int = 16 * 1024
    skill_limits: dict[str, SkillLimitOverride] = Field(default_factory=dict)

    currency_rates_url: str | None = None
    currency_rates_ttl_seconds: int = 3600

    log_dir: Path = Field(default=Path("./logs"))
    log_level: str = "INFO"
    log_debug_modules: str = ""
    log_debug_conversation_ids: str = ""
    log_redaction_mode: str = "standard"
    log_payload_preview_chars: int = 512
    log_max_bytes: int = 20 * 1024 * 1024
    log_backup_count: int = 5

    def enabled_skills_list(self) -> list[str]:
        return _csv_to_list(self.enabled_skills)

    def disabled_skills_list(self) -> list[str]:
        return _csv_to_list(self.disabled_skills)

    def log_debug_modules_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_modules)

    def log_debug_conversation_ids_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_conversation_ids)

    def is_skill_enabled(self, code: str) -> bool:
        """按白名单/黑名单判断技能是否启用；白名单为空表示全部启用。"""
        enabled = self.enabled_skills_list()
        if enabled and code not in enabled:
            return False
        return code not in self.disabled_skills_list()

    def limits_for(self, code: str) -> ResourceLimits:
        """返回指定技能的资源预算，合并全局默认值与单技能覆盖项。"""
        override = self.skill_limits.get(code)
        timeout = self.skill_timeout_seconds
        max_chars = self.skill_max_output_chars
        if override is not None:
            if override.timeout_seconds is not None:
                timeout = override.timeout_seconds
            if override.max_output_chars is not None:
                max_chars = override.max_output_chars
        return ResourceLimits(timeout_seconds=timeout, max_output_chars=max_chars)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """构建并缓存 Settings，相对日志目录按当前工作目录解析。"""
    settings = Settings()
    if not settings.log_dir.is_absolute():
        settings.log_dir = (Path.cwd() / settings.log_dir).resolve()
    return settings
