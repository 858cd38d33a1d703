"""
配置管理系统

支持:
1. 环境变量读取
2. .env 文件
3. 类型验证
4. 敏感信息脱敏
"""
from functools import lru_cache
from typing import List, Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """数据库配置"""
    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore"
    )

    enabled: bool = Field(default=True, description="是否使用数据库持久化（否则使用内存存储）")
    url: str = Field(default="sqlite:///./alarm_definitions.db", description="数据库连接 URL")

    pool_size: int = Field(default=5, ge=1, le=20, description="连接池大小")
    max_overflow: int = Field(default=10, ge=0, le=50, description="最大溢出连接数")
    pool_timeout: int = Field(default=30, ge=5, description="连接超时（秒）")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def safe_url(self) -> str:
        """隐藏密码的连接 URL"""
        scheme, sep, rest = self.url.partition("://")
        if "@" not in rest:
            return self.url
        credentials, _, host = rest.rpartition("@")
        user = credentials.split(":", 1)[0]
        return f"{scheme}{sep}{user}:***@{host}"


class LoggingSettings(BaseSettings):
    """日志配置"""
    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        extra="ignore"
    )

    level: str = Field(default="INFO", description="日志级别")
    format: str = Field(default="json", description="日志格式: json, console")
    file_path: Optional[str] = Field(default=None, description="日志文件路径")
    max_size_mb: int = Field(default=100, ge=1, le=1000, description="日志文件最大大小 (MB)")
    backup_count: int = Field(default=7, ge=1, le=30, description="保留日志文件数")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"日志级别必须是 {allowed} 之一")
        return v

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        v = v.lower()
        if v not in {"json", "console"}:
            raise ValueError("日志格式必须是 json 或 console")
        return v


class AlarmPolicySettings(BaseSettings):
    """告警定义校验策略"""
    model_config = SettingsConfigDict(
        env_prefix="ALARM_",
        extra="ignore"
    )

    reject_duplicate_actions: bool = Field(default=False, description="同一动作列表内的重复 ID 视为错误")
    reject_duplicate_match_by: bool = Field(default=True, description="重复的 match_by 键视为错误")
    strict_action_validation: bool = Field(default=False, description="通过动作注册表校验动作 ID 是否存在")
    known_actions: str = Field(default="", description="严格模式下已知的动作 ID（逗号分隔）")

    name_max_length: int = Field(default=255, ge=1, le=1024, description="名称最大长度")
    description_max_length: int = Field(default=255, ge=0, le=4096, description="描述最大长度")
    action_id_max_length: int = Field(default=50, ge=1, le=255, description="动作 ID 最大长度")

    @property
    def known_action_list(self) -> List[str]:
        """获取已知动作 ID 列表"""
        return [a.strip() for a in self.known_actions.split(",") if a.strip()]

    @model_validator(mode="after")
    def validate_strict_mode(self) -> "AlarmPolicySettings":
        if self.strict_action_validation and not self.known_action_list:
            raise ValueError("启用严格动作校验时必须配置 ALARM_KNOWN_ACTIONS")
        return self


class Settings(BaseSettings):
    """
    主配置类

    层级:
    1. 环境变量 (最高优先级)
    2. .env 文件
    3. 默认值 (最低优先级)

    使用示例:
    >>> settings = Settings()
    >>> print(settings.alarm.reject_duplicate_actions)
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 应用基础配置
    app_name: str = Field(default="AlarmDefinitionService", description="应用名称")
    app_version: str = Field(default="0.1.0", description="应用版本")
    debug: bool = Field(default=False, description="调试模式")
    environment: str = Field(default="development", description="运行环境: development, staging, production")

    # API 配置
    api_host: str = Field(default="0.0.0.0", description="API 监听地址")
    api_port: int = Field(default=8070, ge=1, le=65535, description="API 监听端口")
    api_prefix: str = Field(default="/v2.0", description="API 路径前缀")
    base_url: str = Field(default="http://localhost:8070", description="生成链接使用的外部地址")

    # 子配置
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    alarm: AlarmPolicySettings = Field(default_factory=AlarmPolicySettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"环境必须是 {allowed} 之一")
        return v

    def display_config(self) -> dict:
        """返回脱敏后的配置（用于日志/调试）"""
        return {
            "app_name": self.app_name,
            "app_version": self.app_version,
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_enabled": self.database.enabled,
            "database_url": self.database.safe_url,
            "reject_duplicate_actions": self.alarm.reject_duplicate_actions,
            "strict_action_validation": self.alarm.strict_action_validation,
        }


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例（缓存）"""
    return Settings()
