"""AI output schema and strict parsing helpers."""

from __future__ import annotations

import json
import re
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from trading_ai.types import Direction

_PRICE_FIELDS = (
    "entry_price",
    "stop_loss",
    "take_profit_1",
    "take_profit_2",
    "take_profit_3",
    "risk_reward_1",
    "risk_reward_2",
    "risk_reward_3",
)


def _wire_name(field_name: str) -> str:
    # take_profit_1 -> takeProfit1
    return to_camel(field_name.replace("_1", "1").replace("_2", "2").replace("_3", "3"))


class TradeSuggestion(BaseModel):
    """Strict trade suggestion schema.

    Accepts the camelCase names the model is asked to produce
    (``entryPrice``, ``takeProfit1``, ``riskReward1`` ...) as well as the
    Python field names.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        alias_generator=_wire_name,
        populate_by_name=True,
    )

    direction: Direction
    entry_price: Decimal | None = Field(default=None, gt=0)
    stop_loss: Decimal | None = Field(default=None, gt=0)
    take_profit_1: Decimal | None = Field(default=None, gt=0)
    take_profit_2: Decimal | None = Field(default=None, gt=0)
    take_profit_3: Decimal | None = Field(default=None, gt=0)
    risk_reward_1: Decimal | None = Field(default=None, ge=0)
    risk_reward_2: Decimal | None = Field(default=None, ge=0)
    risk_reward_3: Decimal | None = Field(default=None, ge=0)
    reasoning: str = ""

    @field_validator("reasoning", mode="before")
    @classmethod
    def _null_reasoning(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def is_neutral(self) -> bool:
        return self.direction == Direction.NEUTRAL

    @classmethod
    def neutral(cls, reason: str) -> "TradeSuggestion":
        """Construct a no-trade suggestion with every price field cleared."""
        return cls(direction=Direction.NEUTRAL, reasoning=reason)

    def as_neutral(self, reason: str) -> "TradeSuggestion":
        """Downgrade to NEUTRAL, keeping only direction and reasoning."""
        cleared: dict[str, Any] = {name: None for name in _PRICE_FIELDS}
        return self.model_copy(
            update={**cleared, "direction": Direction.NEUTRAL, "reasoning": reason}
        )

    @classmethod
    def parse_strict(cls, payload: dict[str, Any]) -> "TradeSuggestion":
        """Parse a raw dict. Any violation is mapped to NEUTRAL."""
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            return cls.neutral(f"parse_error: {location} {first['msg']}".strip())

    @classmethod
    def parse_response_text(cls, text: str) -> "TradeSuggestion":
        """Parse model text response. Non-JSON/invalid JSON is NEUTRAL."""
        try:
            json_obj = _extract_json_obj(text)
        except ValueError as exc:
            return cls.neutral(f"parse_error: {exc}")
        return cls.parse_strict(json_obj)


def _extract_json_obj(text: str) -> dict[str, Any]:
    """Extract the first JSON object from plain text or fenced content."""
    stripped = text.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        return _decode_object(stripped)

    fenced_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", stripped, re.DOTALL)
    if fenced_match:
        return _decode_object(fenced_match.group(1))

    brace_match = re.search(r"\{.*\}", stripped, re.DOTALL)
    if brace_match:
        return _decode_object(brace_match.group(0))

    raise ValueError("model_response_not_json")


def _decode_object(raw: str) -> dict[str, Any]:
    # parse_float keeps prices exact instead of going through binary floats
    try:
        decoded = json.loads(raw, parse_float=Decimal)
    except json.JSONDecodeError as exc:
        raise ValueError(f"model_response_invalid_json: {exc.msg}") from exc
    if isinstance(decoded, dict):
        return decoded
    raise ValueError("model_response_json_not_object")
