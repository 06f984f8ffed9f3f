"""结构化日志模块。

structlog 事件经标准库 logging 输出到 stderr，渲染为 JSON 或彩色控制台格式。
价格、数量等 Decimal 字段统一渲染为字符串，避免精度丢失。
"""

import logging
import sys
from decimal import Decimal
from enum import Enum
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from trading_ai.config import LogFormat, Settings, get_settings

# 重复调用 setup_logging 时按名称替换，而不是叠加 handler
_HANDLER_NAME = "trading_ai"


def _stringify_domain_values(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Decimal 转为字符串，枚举转为取值。"""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
        elif isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def setup_logging(settings: Settings | None = None, *, stream: TextIO | None = None) -> None:
    """配置结构化日志系统。

    Args:
        settings: 配置；为 None 时读取全局配置。
        stream: 输出流，默认当前的 sys.stderr。
    """
    settings = settings or get_settings()
    target = stream or sys.stderr

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _stringify_domain_values,
    ]

    # 根据格式选择渲染器
    if settings.log_format == LogFormat.JSON:
        render_chain: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render_chain = [structlog.dev.ConsoleRenderer(colors=target.isatty())]

    handler = logging.StreamHandler(target)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *render_chain],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.log_level))

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """获取结构化日志记录器，name 一般取模块路径，如 trading_ai.signals.service。"""
    return structlog.get_logger(name)


# 业务事件
def log_trade_signal(
    logger: structlog.stdlib.BoundLogger,
    *,
    symbol: str,
    direction: str,
    signal_type: str,
    **kwargs: Any,
) -> None:
    """记录一次信号请求的结果（accepted / neutral）。"""
    logger.info(
        "trade_signal",
        symbol=symbol,
        direction=direction,
        signal_type=signal_type,
        **kwargs,
    )


def log_llm_call(
    logger: structlog.stdlib.BoundLogger,
    *,
    model: str,
    success: bool,
    latency_ms: float,
    **kwargs: Any,
) -> None:
    """记录 LLM 调用；失败以 warning 级别输出。"""
    level = "info" if success else "warning"
    getattr(logger, level)(
        "llm_call",
        model=model,
        success=success,
        latency_ms=round(latency_ms, 2),
        **kwargs,
    )


def log_position_event(
    logger: structlog.stdlib.BoundLogger,
    *,
    action: str,
    position_id: str,
    symbol: str,
    status: str,
    **kwargs: Any,
) -> None:
    """记录持仓状态变更（opened / executed / closed / cancelled）。"""
    logger.info(
        "position_event",
        action=action,
        position_id=position_id,
        symbol=symbol,
        status=status,
        **kwargs,
    )


def log_risk_event(
    logger: structlog.stdlib.BoundLogger,
    *,
    event_type: str,
    action: str,
    **kwargs: Any,
) -> None:
    """记录风控拦截，例如信号被降级为 NEUTRAL。"""
    logger.warning(
        "risk_event",
        event_type=event_type,
        action=action,
        **kwargs,
    )
