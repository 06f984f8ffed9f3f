from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from trading_ai.config import Settings
from trading_ai.data.binance import BinanceDataClient
from trading_ai.main import cli


def _write_csv(path: Path, rows: int = 60) -> None:
    lines = ["open_time,open,high,low,close,volume"]
    for i in range(rows):
        close = 100 + i
        lines.append(f"2024-01-0{1 + i // 24}T{i % 24:02d}:00:00Z,{close},{close + 1},{close - 1},{close},10")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _patch_settings(monkeypatch: object, tmp_path: Path) -> Settings:
    settings = Settings(data_dir=tmp_path / "data", llm_provider="heuristic")
    monkeypatch.setattr("trading_ai.main.get_settings", lambda: settings)
    return settings


def test_cli_version_and_status(monkeypatch: object, tmp_path: Path) -> None:
    _patch_settings(monkeypatch, tmp_path)
    runner = CliRunner()

    version = runner.invoke(cli, ["--version"])
    assert version.exit_code == 0
    assert "trading-ai version" in version.stdout

    status = runner.invoke(cli, ["status"])
    assert status.exit_code == 0
    assert "heuristic" in status.stdout


def test_cli_signal_to_closed_position(monkeypatch: object, tmp_path: Path) -> None:
    _patch_settings(monkeypatch, tmp_path)
    csv_path = tmp_path / "btc.csv"
    _write_csv(csv_path)
    runner = CliRunner()

    imported = runner.invoke(cli, ["import-candles", "BTCUSDT", "-t", "1h", "--csv", str(csv_path)])
    assert imported.exit_code == 0, imported.output
    assert "Imported 60 candles" in imported.stdout

    generated = runner.invoke(cli, ["--user", "alice", "signal", "BTCUSDT", "-t", "1h", "-m", "intraday"])
    assert generated.exit_code == 0, generated.output
    signal = json.loads(generated.stdout)
    assert signal["direction"] == "LONG"
    assert signal["created_by"] == "alice"

    listed = runner.invoke(cli, ["signals", "BTCUSDT", "-t", "1h"])
    assert listed.exit_code == 0
    assert signal["id"] in listed.stdout

    opened = runner.invoke(
        cli, ["--user", "alice", "position", "from-signal", signal["id"], "--qty", "0.5"]
    )
    assert opened.exit_code == 0, opened.output
    position_id = json.loads(opened.stdout)["id"]

    forbidden = runner.invoke(cli, ["--user", "bob", "position", "execute", position_id, "--price", "159"])
    assert forbidden.exit_code == 1
    assert "OWNERSHIP_VIOLATION" in forbidden.output

    executed = runner.invoke(
        cli, ["--user", "alice", "position", "execute", position_id, "--price", "159"]
    )
    assert executed.exit_code == 0, executed.output
    assert json.loads(executed.stdout)["status"] == "OPEN"

    closed = runner.invoke(
        cli,
        [
            "--user",
            "alice",
            "position",
            "close",
            position_id,
            "--price",
            "161",
            "--reason",
            "tp1_hit",
            "--fees",
            "0.1",
        ],
    )
    assert closed.exit_code == 0, closed.output
    record = json.loads(closed.stdout)
    assert record["status"] == "CLOSED"
    assert record["realized_pnl"] == "0.9"

    stats = runner.invoke(cli, ["--user", "alice", "stats"])
    assert stats.exit_code == 0
    assert json.loads(stats.stdout)["closed_positions"] == 1

    everyone = runner.invoke(cli, ["--admin", "position", "list"])
    assert everyone.exit_code == 0
    assert position_id in everyone.stdout


def test_cli_missing_market_data_is_retryable_exit(monkeypatch: object, tmp_path: Path) -> None:
    _patch_settings(monkeypatch, tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["signal", "ETHUSDT", "-t", "1h"])
    assert result.exit_code == 2
    assert "MARKET_DATA_UNAVAILABLE" in result.output

    unknown = runner.invoke(cli, ["position", "cancel", "nope"])
    assert unknown.exit_code == 1
    assert "POSITION_NOT_FOUND" in unknown.output


class _OfflineBinance:
    def get_klines(self, **kwargs: object) -> list[list[object]]:
        raise ConnectionError("connection refused")


def test_cli_binance_import_failure_is_reported(monkeypatch: object, tmp_path: Path) -> None:
    _patch_settings(monkeypatch, tmp_path)
    monkeypatch.setattr(
        "trading_ai.main.BinanceDataClient",
        lambda settings: BinanceDataClient(settings, client=_OfflineBinance()),
    )
    runner = CliRunner()

    result = runner.invoke(cli, ["import-candles", "BTCUSDT", "-t", "1h", "--binance"])
    assert result.exit_code == 2
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert "MARKET_DATA_UNAVAILABLE" in result.output
