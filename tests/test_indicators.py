from decimal import Decimal

from trading_ai.features.indicators import compute_ema, infer_trend
from trading_ai.types import Trend


def _d(values: list[float | int | str]) -> list[Decimal]:
    return [Decimal(str(v)) for v in values]


def test_compute_ema_short_series_is_empty() -> None:
    assert compute_ema(_d([1, 2, 3]), 21) == []
    assert compute_ema(_d([1, 2, 3]), 0) == []


def test_compute_ema_constant_series_stays_constant() -> None:
    closes = _d([100] * 30)
    ema = compute_ema(closes, 21)
    assert len(ema) == 30 - 20
    assert all(value == Decimal("100.000000") for value in ema)


def test_compute_ema_seed_and_recurrence() -> None:
    ema = compute_ema(_d([1, 2, 3, 4]), 3)
    # seed = (1+2+3)/3 = 2; k = 0.5 -> 4*0.5 + 2*0.5 = 3
    assert ema == [Decimal("2.000000"), Decimal("3.000000")]


def test_compute_ema_quantizes_to_six_places_half_up() -> None:
    ema = compute_ema(_d([1, 1, 2]), 3)
    # (1+1+2)/3 = 1.3333333 -> 1.333333
    assert ema == [Decimal("1.333333")]
    assert ema[0].as_tuple().exponent == -6


def test_infer_trend_labels() -> None:
    assert infer_trend(_d([100] * 6)) == Trend.SIDEWAYS
    assert infer_trend(_d([1, 2, 3, 4, 5])) == Trend.UP
    assert infer_trend(_d([5, 4, 3, 2, 1])) == Trend.DOWN
    assert infer_trend(_d([1, 2, 3, 4])) == Trend.UNKNOWN


def test_infer_trend_compares_against_five_back() -> None:
    # last=3 vs closes[-5]=5 -> DOWN, despite the rising tail
    assert infer_trend(_d([9, 5, 1, 2, 2, 3])) == Trend.DOWN
