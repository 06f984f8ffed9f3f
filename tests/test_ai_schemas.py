from decimal import Decimal

from trading_ai.ai.schemas import TradeSuggestion
from trading_ai.types import Direction


def test_trade_suggestion_parse_valid_json() -> None:
    raw = """
    {
      "direction": "LONG",
      "entryPrice": 42000.5,
      "stopLoss": 41900.1,
      "takeProfit1": 42200,
      "riskReward1": 2.0,
      "reasoning": "EMA21 reclaimed"
    }
    """
    suggestion = TradeSuggestion.parse_response_text(raw)
    assert suggestion.direction == Direction.LONG
    assert suggestion.entry_price == Decimal("42000.5")
    assert suggestion.stop_loss == Decimal("41900.1")
    assert suggestion.take_profit_1 == Decimal("42200")
    assert suggestion.take_profit_2 is None
    assert suggestion.reasoning == "EMA21 reclaimed"


def test_trade_suggestion_null_reasoning_keeps_direction() -> None:
    raw = (
        '{"direction":"LONG","entryPrice":100,"stopLoss":99.8,'
        '"takeProfit1":101,"riskReward1":2,"reasoning":null}'
    )
    suggestion = TradeSuggestion.parse_response_text(raw)
    assert suggestion.direction == Direction.LONG
    assert suggestion.entry_price == Decimal("100")
    assert suggestion.reasoning == ""


def test_trade_suggestion_parse_fenced_json() -> None:
    raw = 'Here you go:\n```json\n{"direction": "NEUTRAL", "reasoning": "range"}\n```'
    suggestion = TradeSuggestion.parse_response_text(raw)
    assert suggestion.is_neutral
    assert suggestion.reasoning == "range"


def test_trade_suggestion_invalid_payload_maps_to_neutral() -> None:
    raw = '{"direction": "LONG", "entryPrice": "bad", "stopLoss": 1}'
    suggestion = TradeSuggestion.parse_response_text(raw)
    assert suggestion.is_neutral
    assert suggestion.reasoning.startswith("parse_error")
    assert suggestion.entry_price is None


def test_trade_suggestion_unknown_direction_maps_to_neutral() -> None:
    suggestion = TradeSuggestion.parse_strict({"direction": "UP"})
    assert suggestion.is_neutral
    assert suggestion.reasoning.startswith("parse_error")


def test_trade_suggestion_non_positive_price_maps_to_neutral() -> None:
    suggestion = TradeSuggestion.parse_strict({"direction": "SHORT", "entryPrice": 0})
    assert suggestion.is_neutral


def test_trade_suggestion_non_json_maps_to_neutral() -> None:
    suggestion = TradeSuggestion.parse_response_text("hello world")
    assert suggestion.is_neutral
    assert suggestion.reasoning == "parse_error: model_response_not_json"


def test_as_neutral_clears_every_price() -> None:
    suggestion = TradeSuggestion(
        direction=Direction.SHORT,
        entry_price=Decimal("10"),
        stop_loss=Decimal("11"),
        take_profit_1=Decimal("8"),
        risk_reward_1=Decimal("2"),
    )
    neutral = suggestion.as_neutral("rejected")
    assert neutral.direction == Direction.NEUTRAL
    assert neutral.reasoning == "rejected"
    assert neutral.entry_price is None
    assert neutral.stop_loss is None
    assert neutral.take_profit_1 is None
    assert neutral.risk_reward_1 is None
