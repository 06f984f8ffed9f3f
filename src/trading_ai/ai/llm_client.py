"""OpenAI-compatible chat completion client producing trade suggestions."""

from __future__ import annotations

import json
import time
from typing import Any

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from trading_ai.ai.schemas import TradeSuggestion
from trading_ai.config import Settings
from trading_ai.types import AnalysisContext, TradingMode
from trading_ai.utils.logging import get_logger, log_llm_call

_SYSTEM_PROMPT = (
    "You are an intraday price action trader. You receive candles, EMA21, EMA25 "
    "and a coarse trend for one market plus a trading MODE. Return ONE trade idea "
    "or NEUTRAL when the context is unclear. Reply with JSON only."
)

_RESPONSE_SCHEMA = (
    '{"direction": "LONG" | "SHORT" | "NEUTRAL", "entryPrice": number|null, '
    '"stopLoss": number|null, "takeProfit1": number|null, "takeProfit2": number|null, '
    '"takeProfit3": number|null, "riskReward1": number|null, "riskReward2": number|null, '
    '"riskReward3": number|null, "reasoning": string}'
)


class LLMError(Exception):
    """Base LLM transport error. ``failure_class`` names the failure in NEUTRAL fallbacks."""

    failure_class = "upstream_unavailable"


class LLMRateLimited(LLMError):
    failure_class = "rate_limited"


class LLMUnauthorized(LLMError):
    failure_class = "unauthorized"


class LLMUpstreamUnavailable(LLMError):
    failure_class = "upstream_unavailable"


class LLMTimeout(LLMError):
    failure_class = "timeout"


class LLMNetworkError(LLMError):
    failure_class = "network"


_TRANSIENT_ERRORS = (LLMRateLimited, LLMUpstreamUnavailable, LLMTimeout, LLMNetworkError)


class LLMClient:
    """Thin client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
        backoff_min: float = 1.0,
        backoff_max: float = 8.0,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._backoff_min = backoff_min
        self._backoff_max = backoff_max
        self._logger = get_logger("trading_ai.ai.llm_client")

    def suggest(self, context: AnalysisContext, mode: TradingMode) -> TradeSuggestion:
        """Ask the model for one trade idea. Never raises: failures become NEUTRAL."""
        started = time.perf_counter()
        try:
            content = self._request_with_retry(context, mode)
        except LLMError as exc:
            elapsed_ms = (time.perf_counter() - started) * 1000
            log_llm_call(
                self._logger,
                model=self._settings.llm_model,
                success=False,
                latency_ms=elapsed_ms,
                reason=exc.failure_class,
                error=str(exc),
            )
            return TradeSuggestion.neutral(f"AI service unavailable ({exc.failure_class}): {exc}")

        suggestion = TradeSuggestion.parse_response_text(content)
        elapsed_ms = (time.perf_counter() - started) * 1000
        parse_failed = suggestion.is_neutral and suggestion.reasoning.startswith("parse_error")
        log_llm_call(
            self._logger,
            model=self._settings.llm_model,
            success=not parse_failed,
            latency_ms=elapsed_ms,
            direction=suggestion.direction.value,
            symbol=context.symbol_code,
            mode=mode.value,
        )
        return suggestion

    def _request_with_retry(self, context: AnalysisContext, mode: TradingMode) -> str:
        retryer = Retrying(
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            wait=wait_exponential(multiplier=1, min=self._backoff_min, max=self._backoff_max),
            stop=stop_after_attempt(self._settings.llm_max_attempts),
            reraise=True,
        )
        return retryer(self._request_completion, context, mode)

    def _request_completion(self, context: AnalysisContext, mode: TradingMode) -> str:
        if not self._settings.llm_api_key:
            raise LLMUnauthorized("missing_llm_api_key")

        headers = {
            "Authorization": f"Bearer {self._settings.llm_api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self._settings.llm_model,
            "temperature": self._settings.llm_temperature,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(context, mode)},
            ],
        }
        url = self._settings.llm_base_url.rstrip("/") + "/chat/completions"

        try:
            with httpx.Client(
                timeout=self._settings.llm_timeout,
                transport=self._transport,
            ) as client:
                response = client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise LLMTimeout(str(exc) or "request_timed_out") from exc
        except httpx.TransportError as exc:
            raise LLMNetworkError(str(exc) or "network_error") from exc

        _raise_for_status(response)
        try:
            body = response.json()
        except ValueError:
            return ""
        return _extract_message_content(body)


def build_user_prompt(context: AnalysisContext, mode: TradingMode) -> str:
    """Render the mode and trimmed context for the model."""
    context_json = json.dumps(context.to_payload(), ensure_ascii=True)
    return (
        f"MODE: {mode.value}\n"
        f"Market context (oldest to newest): {context_json}\n"
        f"Reply with only this JSON object: {_RESPONSE_SCHEMA}"
    )


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    detail = f"http_{status}"
    if status == 429:
        raise LLMRateLimited(detail)
    if status in (401, 403):
        raise LLMUnauthorized(detail)
    if status >= 500:
        raise LLMUpstreamUnavailable(detail)
    raise LLMError(detail)


def _extract_message_content(payload: dict[str, Any]) -> str:
    """Read assistant content from a chat completion payload."""
    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    message = first.get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content
    return ""
