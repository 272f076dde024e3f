"""汇率提供方：内置静态汇率表与基于 HTTP 的汇率接口客户端。"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Mapping

import httpx

from yozuk.domain.errors import SkillError
from yozuk.domain.skills.currency import RateTable

logger = logging.getLogger(__name__)

# 参考汇率，仅在未配置汇率接口时使用：1 USD 可兑换的数量。
STATIC_USD_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.92,
    "JPY": 150.0,
    "GBP": 0.79,
    "CNY": 7.2,
    "KRW": 1350.0,
    "CAD": 1.36,
    "AUD": 1.52,
    "CHF": 0.88,
    "INR": 83.0,
    "HKD": 7.8,
    "SGD": 1.34,
}


class StaticRateProvider:
    """返回固定汇率表的提供方。"""

    def __init__(self, rates: Mapping[str, float] | None = None) -> None:
        self._table = RateTable(rates=dict(rates or STATIC_USD_RATES), source="indicative static rates")

    def get_rates(self, timeout: float) -> RateTable:
        return self._table


class HttpRateProvider:
    """从 HTTP 接口拉取汇率并按 TTL 缓存。

    接口返回 JSON：{"base": "USD", "rates": {"EUR": 0.92, ...}}；base 不是 USD 时会换算为美元基准。
    """

    def __init__(
        self,
        url: str,
        *,
        ttl_seconds: int = 3600,
        client: httpx.Client | None = None,
        clock: Any = time.monotonic,
    ) -> None:
        self._url = url
        self._ttl = ttl_seconds
        self._clock = clock
        self._owns_client = client is None
        self._client = client or httpx.Client(
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        self._lock = threading.Lock()
        self._cached: RateTable | None = None
        self._fetched_at = 0.0
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            self._client.close()

    def get_rates(self, timeout: float) -> RateTable:
        """返回缓存汇率；缓存过期时在 timeout 内重新拉取。"""
        with self._lock:
            if self._cached is not None and self._clock() - self._fetched_at < self._ttl:
                return self._cached
        table = self._fetch(timeout)
        with self._lock:
            self._cached = table
            self._fetched_at = self._clock()
        return table

    def _fetch(self, timeout: float) -> RateTable:
        if self._closed:
            raise RuntimeError("HttpRateProvider is already closed")
        started = time.perf_counter()
        try:
            response = self._client.get(self._url, timeout=httpx.Timeout(max(timeout, 0.001)))
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise SkillError("exchange rate service timed out", code="rates_unavailable") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "exchange rate fetch failed",
                extra={
                    "event": "rates.fetch.failed",
                    "external_service": "rates",
                    "op": "GET",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise SkillError("exchange rate service unavailable", code="rates_unavailable") from exc

        table = self._parse(payload)
        logger.info(
            "exchange rates fetched",
            extra={
                "event": "rates.fetch.succeeded",
                "external_service": "rates",
                "op": "GET",
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "payload_preview": {"currencies": len(table.rates)},
            },
        )
        return table

    @staticmethod
    def _parse(payload: Any) -> RateTable:
        if not isinstance(payload, dict) or not isinstance(payload.get("rates"), dict):
            raise SkillError("exchange rate service returned malformed data", code="rates_unavailable")
        base = str(payload.get("base") or "USD").upper()
        try:
            rates = {str(code).upper(): float(value) for code, value in payload["rates"].items()}
        except (TypeError, ValueError) as exc:
            raise SkillError("exchange rate service returned malformed data", code="rates_unavailable") from exc
        if any(not value > 0 for value in rates.values()):
            raise SkillError("exchange rate service returned non-positive rates", code="rates_unavailable")
        rates.setdefault(base, 1.0)
        if base != "USD":
            if "USD" not in rates:
                raise SkillError("exchange rate service has no USD rate", code="rates_unavailable")
            per_usd = rates["USD"]
            rates = {code: value / per_usd for code, value in rates.items()}
        return RateTable(rates=rates, source=f"rates from {base}-based feed")
