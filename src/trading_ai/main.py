"""CLI 入口模块 - trading-ai 命令行接口。"""

import json
import sys
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterator

import click

from trading_ai import __version__
from trading_ai.ai.providers import build_provider
from trading_ai.config import Settings, get_settings
from trading_ai.data.binance import BinanceDataClient
from trading_ai.data.candles import frame_to_candles, load_ohlcv_csv
from trading_ai.errors import SymbolNotFound, TradingError
from trading_ai.portfolio.stats import compute_portfolio_stats
from trading_ai.positions.lifecycle import PositionService
from trading_ai.positions.models import ClosePositionRequest, OpenPositionRequest, Position
from trading_ai.signals.service import SignalService
from trading_ai.store.files import (
    CsvCandleStore,
    JsonlSignalStore,
    JsonPositionStore,
    position_to_record,
    signal_to_record,
)
from trading_ai.store.memory import InMemorySymbolRegistry
from trading_ai.types import (
    Caller,
    Direction,
    ExitReason,
    PositionStatus,
    Signal,
    Timeframe,
    TradingMode,
)
from trading_ai.utils.logging import get_logger, setup_logging

_TIMEFRAMES = [tf.value for tf in Timeframe]
_MODES = [mode.value for mode in TradingMode]


class DecimalType(click.ParamType):
    """把命令行参数解析为 Decimal，避免浮点误差。"""

    name = "decimal"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> Decimal:
        if isinstance(value, Decimal):
            return value
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            self.fail(f"{value!r} is not a valid decimal", param, ctx)
        if not result.is_finite():
            self.fail(f"{value!r} is not a finite number", param, ctx)
        return result


DECIMAL = DecimalType()


@dataclass(slots=True)
class _Stores:
    symbols: InMemorySymbolRegistry
    candles: CsvCandleStore
    signals: JsonlSignalStore
    positions: JsonPositionStore


def _build_stores(settings: Settings) -> _Stores:
    settings.ensure_directories()
    return _Stores(
        symbols=InMemorySymbolRegistry(settings.symbols),
        candles=CsvCandleStore(settings.data_dir / "candles"),
        signals=JsonlSignalStore(settings.data_dir / "signals"),
        positions=JsonPositionStore(settings.data_dir / "positions.json"),
    )


def _position_service(settings: Settings) -> PositionService:
    stores = _build_stores(settings)
    return PositionService(stores.symbols, stores.positions, stores.signals)


@contextmanager
def _trading_errors() -> Iterator[None]:
    """把业务异常映射为退出码：可重试为 2，其余为 1。"""
    try:
        yield
    except TradingError as exc:
        click.echo(f"[ERROR] {exc.code}: {exc.message}", err=True)
        sys.exit(2 if exc.retryable else 1)


def _echo_json(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, ensure_ascii=True, indent=2, default=str))


def _echo_position(position: Position) -> None:
    _echo_json(position_to_record(position))


def _caller(ctx: click.Context) -> Caller:
    return ctx.obj["caller"]


@click.group(invoke_without_command=True)
@click.option("--version", "-v", is_flag=True, help="显示版本号")
@click.option(
    "--user",
    "-u",
    envvar="TRADING_AI_USER",
    default="local",
    show_default=True,
    help="调用者用户名（持仓归属）",
)
@click.option("--admin", is_flag=True, default=False, help="以管理员身份调用，可操作所有持仓")
@click.pass_context
def cli(ctx: click.Context, version: bool, user: str, admin: bool) -> None:
    """trading-ai - 带风控护栏的 AI 交易信号与持仓日志。

    读取 K 线、构建 EMA/趋势上下文，向 LLM 请求交易建议，
    经过硬性风控规则校验后保存信号，并跟踪持仓生命周期与盈亏。
    """
    ctx.ensure_object(dict)
    ctx.obj["caller"] = Caller(username=user, is_admin=admin)

    if version:
        click.echo(f"trading-ai version {__version__}")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def status() -> None:
    """显示系统状态和配置摘要。"""
    setup_logging()
    settings = get_settings()

    click.echo("=" * 50)
    click.echo("trading-ai - Status")
    click.echo("=" * 50)
    click.echo()

    # 建议来源
    click.echo("[Suggestion Provider]")
    click.echo(f"   Provider: {settings.llm_provider.value}")
    if settings.uses_llm:
        click.echo(f"   Base URL: {settings.llm_base_url}")
        click.echo(f"   LLM Model: {settings.llm_model}")
        click.echo(f"   Max attempts: {settings.llm_max_attempts}")
    click.echo()

    # API 配置状态
    click.echo("[API Configuration]")
    binance_status = "[OK] Configured" if settings.binance_api_key else "[--] Not configured"
    llm_status = "[OK] Configured" if settings.llm_api_key else "[--] Not configured"
    click.echo(f"   Binance API: {binance_status}")
    click.echo(f"   LLM API: {llm_status}")
    click.echo(f"   Binance Testnet: {'Yes' if settings.binance_testnet else 'No'}")
    click.echo()

    # 风控参数
    click.echo("[Signal Guard]")
    click.echo(f"   SCALPING max SL: {settings.scalping_max_sl_pct}%")
    click.echo(f"   INTRADAY max SL: {settings.intraday_max_sl_pct}%")
    swing_cap = "none" if settings.swing_max_sl_pct is None else f"{settings.swing_max_sl_pct}%"
    click.echo(f"   SWING max SL: {swing_cap}")
    click.echo(f"   RR1 range: [{settings.min_risk_reward}, {settings.max_risk_reward}]")
    click.echo()

    # 市场与存储
    click.echo("[Market & Storage]")
    click.echo(f"   Symbols: {', '.join(settings.symbols)}")
    click.echo(f"   Context candles: {settings.context_candle_limit}")
    click.echo(f"   Data dir: {settings.data_dir}")
    click.echo(f"   Log level: {settings.log_level}")
    click.echo(f"   Log format: {settings.log_format.value}")
    click.echo()

    # 验证状态
    if settings.uses_llm:
        missing = settings.validate_for_llm()
        if missing:
            click.echo("[ERROR] LLM configuration incomplete, missing:")
            for key in missing:
                click.echo(f"   - {key}")
        else:
            click.echo("[OK] LLM configuration complete")
    else:
        click.echo("[INFO] Heuristic provider does not require an API key")

    click.echo()
    click.echo("=" * 50)


@cli.command("import-candles")
@click.argument("symbol")
@click.option("--timeframe", "-t", type=click.Choice(_TIMEFRAMES), default="1h", show_default=True)
@click.option(
    "--csv",
    "csv_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="从 CSV 导入（open_time/open/high/low/close/volume）",
)
@click.option("--binance", "from_binance", is_flag=True, default=False, help="从 Binance 拉取 K 线")
@click.option("--limit", type=int, default=500, show_default=True, help="Binance 拉取数量")
@click.option("--merge", is_flag=True, default=False, help="只追加新时间戳，不整体替换")
def import_candles(
    symbol: str,
    timeframe: str,
    csv_path: Path | None,
    from_binance: bool,
    limit: int,
    merge: bool,
) -> None:
    """导入 K 线到本地存储（默认整体替换该品种/周期）。"""
    setup_logging()
    logger = get_logger("trading_ai.main")
    settings = get_settings()

    if (csv_path is None) == (not from_binance):
        raise click.UsageError("Use exactly one of --csv PATH or --binance")

    with _trading_errors():
        stores = _build_stores(settings)
        code = stores.symbols.get(symbol)
        if code is None:
            raise SymbolNotFound(symbol)

        try:
            if csv_path is not None:
                candles = frame_to_candles(load_ohlcv_csv(csv_path), code, timeframe)
            else:
                candles = BinanceDataClient(settings).fetch_candles(code, timeframe, limit)

            if merge:
                count = stores.candles.upsert(code, timeframe, candles)
            else:
                count = stores.candles.replace_all(code, timeframe, candles)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc

    logger.info(
        "candles_imported",
        symbol=code,
        timeframe=timeframe,
        source="csv" if csv_path is not None else "binance",
        merge=merge,
        count=count,
    )
    click.echo(f"Imported {count} candles for {code} {timeframe}")


@cli.command()
@click.argument("symbol")
@click.option("--timeframe", "-t", type=click.Choice(_TIMEFRAMES), default="1h", show_default=True)
@click.option(
    "--mode",
    "-m",
    type=click.Choice(_MODES, case_sensitive=False),
    default=TradingMode.SCALPING.value,
    show_default=True,
    help="交易模式，决定上下文窗口与止损上限",
)
@click.pass_context
def signal(ctx: click.Context, symbol: str, timeframe: str, mode: str) -> None:
    """生成一次交易信号：上下文 → AI 建议 → 风控校验 → 保存。"""
    setup_logging()
    settings = get_settings()

    if settings.uses_llm:
        missing = settings.validate_for_llm()
        if missing:
            click.echo(f"[ERROR] LLM configuration incomplete, missing: {', '.join(missing)}", err=True)
            sys.exit(1)

    with _trading_errors():
        stores = _build_stores(settings)
        service = SignalService(
            stores.symbols,
            stores.candles,
            stores.signals,
            build_provider(settings),
            settings,
        )
        result = service.generate_signal(
            symbol,
            timeframe,
            TradingMode.from_string(mode),
            _caller(ctx),
        )

    if isinstance(result, Signal):
        _echo_json(signal_to_record(result))
    else:
        _echo_json({**asdict(result), "mode": result.mode.value, "direction": "NEUTRAL"})


@cli.command()
@click.argument("symbol")
@click.option("--timeframe", "-t", type=click.Choice(_TIMEFRAMES), default="1h", show_default=True)
@click.option("--page", type=int, default=0, show_default=True)
@click.option("--size", type=int, default=20, show_default=True)
def signals(symbol: str, timeframe: str, page: int, size: int) -> None:
    """列出已保存的信号（最新在前）。"""
    setup_logging()
    settings = get_settings()

    with _trading_errors():
        stores = _build_stores(settings)
        service = SignalService(
            stores.symbols,
            stores.candles,
            stores.signals,
            build_provider(settings),
            settings,
        )
        result = service.get_signals(symbol, timeframe, page=page, size=size)

    click.echo(f"Page {result.page + 1}/{max(result.total_pages, 1)} ({result.total} signals)")
    for item in result.items:
        click.echo(
            f"  {item.created_at.isoformat()}  {item.id}  {item.direction.value:<5}  "
            f"entry={item.entry_price} sl={item.stop_loss} tp1={item.take_profit_1}"
        )


@cli.group()
def position() -> None:
    """持仓生命周期：open → execute → close，或 cancel。"""


@position.command("open")
@click.argument("symbol")
@click.option("--direction", type=click.Choice(["LONG", "SHORT"], case_sensitive=False), required=True)
@click.option("--entry", type=DECIMAL, required=True, help="计划入场价")
@click.option("--stop", type=DECIMAL, required=True, help="止损价")
@click.option("--qty", type=DECIMAL, required=True, help="数量")
@click.option("--tp1", type=DECIMAL, default=None)
@click.option("--tp2", type=DECIMAL, default=None)
@click.option("--tp3", type=DECIMAL, default=None)
@click.option("--notes", default=None)
@click.option("--signal-id", default=None, help="关联的信号 ID")
@click.pass_context
def position_open(
    ctx: click.Context,
    symbol: str,
    direction: str,
    entry: Decimal,
    stop: Decimal,
    qty: Decimal,
    tp1: Decimal | None,
    tp2: Decimal | None,
    tp3: Decimal | None,
    notes: str | None,
    signal_id: str | None,
) -> None:
    """手动创建一个 PENDING 持仓。"""
    setup_logging()
    with _trading_errors():
        created = _position_service(get_settings()).open(
            OpenPositionRequest(
                symbol_code=symbol,
                direction=Direction(direction.upper()),
                planned_entry_price=entry,
                stop_loss=stop,
                quantity=qty,
                take_profit_1=tp1,
                take_profit_2=tp2,
                take_profit_3=tp3,
                notes=notes,
                signal_id=signal_id,
            ),
            _caller(ctx),
        )
    _echo_position(created)


@position.command("from-signal")
@click.argument("signal_id")
@click.option("--qty", type=DECIMAL, required=True, help="数量")
@click.option("--notes", default=None)
@click.pass_context
def position_from_signal(ctx: click.Context, signal_id: str, qty: Decimal, notes: str | None) -> None:
    """按已保存信号的方向与价位创建 PENDING 持仓。"""
    setup_logging()
    with _trading_errors():
        created = _position_service(get_settings()).open_from_signal(
            signal_id, qty, _caller(ctx), notes=notes
        )
    _echo_position(created)


@position.command("execute")
@click.argument("position_id")
@click.option("--price", type=DECIMAL, required=True, help="实际成交价")
@click.pass_context
def position_execute(ctx: click.Context, position_id: str, price: Decimal) -> None:
    """记录 PENDING 持仓的成交（→ OPEN）。"""
    setup_logging()
    with _trading_errors():
        updated = _position_service(get_settings()).execute(position_id, price, _caller(ctx))
    _echo_position(updated)


@position.command("close")
@click.argument("position_id")
@click.option("--price", type=DECIMAL, required=True, help="平仓价")
@click.option(
    "--reason",
    type=click.Choice([reason.value for reason in ExitReason], case_sensitive=False),
    default=ExitReason.MANUAL_EXIT.value,
    show_default=True,
)
@click.option("--fees", type=DECIMAL, default=None, help="本次手续费（累加）")
@click.option("--notes", default=None)
@click.pass_context
def position_close(
    ctx: click.Context,
    position_id: str,
    price: Decimal,
    reason: str,
    fees: Decimal | None,
    notes: str | None,
) -> None:
    """平仓 OPEN 持仓并计算已实现盈亏（→ CLOSED）。"""
    setup_logging()
    with _trading_errors():
        updated = _position_service(get_settings()).close(
            position_id,
            ClosePositionRequest(
                exit_price=price,
                exit_reason=ExitReason(reason.upper()),
                fees=fees,
                notes=notes,
            ),
            _caller(ctx),
        )
    _echo_position(updated)


@position.command("cancel")
@click.argument("position_id")
@click.pass_context
def position_cancel(ctx: click.Context, position_id: str) -> None:
    """取消 PENDING 持仓（→ CANCELLED）。"""
    setup_logging()
    with _trading_errors():
        updated = _position_service(get_settings()).cancel(position_id, _caller(ctx))
    _echo_position(updated)


@position.command("list")
@click.option("--symbol", default=None)
@click.option(
    "--status",
    type=click.Choice([status.value for status in PositionStatus], case_sensitive=False),
    default=None,
)
@click.option("--page", type=int, default=0, show_default=True)
@click.option("--size", type=int, default=20, show_default=True)
@click.pass_context
def position_list(
    ctx: click.Context,
    symbol: str | None,
    status: str | None,
    page: int,
    size: int,
) -> None:
    """列出持仓（管理员可见全部）。"""
    setup_logging()
    with _trading_errors():
        result = _position_service(get_settings()).list_positions(
            _caller(ctx),
            symbol_code=symbol,
            status=PositionStatus(status.upper()) if status else None,
            page=page,
            size=size,
        )

    click.echo(f"Page {result.page + 1}/{max(result.total_pages, 1)} ({result.total} positions)")
    for item in result.items:
        pnl = "" if item.realized_pnl is None else f" pnl={item.realized_pnl}"
        click.echo(
            f"  {item.id}  {item.symbol_code}  {item.direction.value:<5}  "
            f"{item.status.value:<9}  qty={item.quantity}  owner={item.owner}{pnl}"
        )


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """显示组合统计（胜率、盈亏、连胜/连亏、持仓时长）。"""
    setup_logging()
    settings = get_settings()
    caller = _caller(ctx)

    stores = _build_stores(settings)
    owner = None if caller.is_admin else caller.username
    result = compute_portfolio_stats(stores.positions.list(owner=owner), owner=owner)
    _echo_json(asdict(result))


# 支持 python -m trading_ai.main 调用
if __name__ == "__main__":
    cli()
