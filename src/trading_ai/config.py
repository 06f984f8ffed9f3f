"""配置加载模块 - 从环境变量和 .env 文件加载配置。"""

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class SuggestionBackend(str, Enum):
    """交易建议来源枚举。"""

    HEURISTIC = "heuristic"  # 离线规则
    LLM = "llm"  # OpenAI 兼容接口


class LogFormat(str, Enum):
    """日志格式枚举。"""

    JSON = "json"
    CONSOLE = "console"


class Settings(BaseSettings):
    """系统配置设置。

    从环境变量和 .env 文件加载配置。
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==================== 建议来源 ====================
    llm_provider: SuggestionBackend = Field(
        default=SuggestionBackend.HEURISTIC,
        description="交易建议来源: heuristic 或 llm",
    )

    # ==================== LLM API ====================
    llm_api_key: str = Field(default="", description="LLM API Key")
    llm_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI 兼容接口地址（Groq / OpenAI / OpenRouter）",
    )
    llm_model: str = Field(
        default="llama-3.3-70b-versatile",
        description="LLM 模型名称",
    )
    llm_temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="采样温度")
    llm_timeout: int = Field(default=60, ge=1, description="LLM 调用超时（秒）")
    llm_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="限流/瞬时错误的最大尝试次数",
    )

    # ==================== Binance API ====================
    binance_api_key: str = Field(default="", description="Binance API Key")
    binance_api_secret: str = Field(default="", description="Binance API Secret")
    binance_testnet: bool = Field(default=False, description="是否使用 Binance 测试网")

    # ==================== 市场上下文 ====================
    symbols: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["BTCUSDT", "ETHUSDT"],
        description="已登记的交易品种",
    )
    context_candle_limit: int = Field(
        default=200,
        ge=1,
        le=1000,
        description="构建分析上下文时读取的最近 K 线数量",
    )
    ema_fast_period: int = Field(default=21, ge=1, description="快速 EMA 周期")
    ema_slow_period: int = Field(default=25, ge=1, description="慢速 EMA 周期")

    # ==================== 信号风控参数 ====================
    scalping_max_sl_pct: float = Field(
        default=0.4,
        gt=0.0,
        description="SCALPING 模式止损距离上限（入场价百分比）",
    )
    intraday_max_sl_pct: float = Field(
        default=1.0,
        gt=0.0,
        description="INTRADAY 模式止损距离上限（入场价百分比）",
    )
    swing_max_sl_pct: float | None = Field(
        default=None,
        description="SWING 模式止损距离上限，None 表示不限制",
    )
    min_risk_reward: float = Field(default=1.0, ge=0.0, description="RR1 下限（含）")
    max_risk_reward: float = Field(default=4.0, gt=0.0, description="RR1 上限（含）")

    # ==================== 日志配置 ====================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="日志级别",
    )
    log_format: LogFormat = Field(
        default=LogFormat.CONSOLE,
        description="日志输出格式",
    )

    # ==================== 数据存储 ====================
    data_dir: Path = Field(
        default=Path("data"),
        description="信号、持仓与 K 线存储目录",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def parse_data_dir(cls, v: str | Path) -> Path:
        """将字符串转换为 Path 对象。"""
        return Path(v) if isinstance(v, str) else v

    @field_validator("symbols", mode="before")
    @classmethod
    def parse_symbols(cls, v: str | list[str]) -> list[str]:
        """支持逗号分隔的字符串，并统一为大写。"""
        if isinstance(v, str):
            v = [item for item in v.split(",") if item.strip()]
        return [item.strip().upper() for item in v]

    def ensure_directories(self) -> None:
        """确保必要的目录存在。"""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def uses_llm(self) -> bool:
        """是否调用外部 LLM。"""
        return self.llm_provider == SuggestionBackend.LLM

    def validate_for_llm(self) -> list[str]:
        """验证 LLM 模式的必要配置，返回缺失项列表。"""
        missing = []
        if not self.llm_api_key:
            missing.append("LLM_API_KEY")
        if not self.llm_base_url:
            missing.append("LLM_BASE_URL")
        return missing


# 全局配置实例（延迟初始化）
_settings: Settings | None = None


def get_settings() -> Settings:
    """获取全局配置实例。"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """重新加载配置。"""
    global _settings
    _settings = Settings()
    return _settings
