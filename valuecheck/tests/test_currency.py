"""
Currency normalizer tests. Rate fetchers are plain async fakes; coroutines
are driven with asyncio.run.
"""

import asyncio
from datetime import datetime, timedelta

from valuecheck.repositories.cache_repo import get_cache, put_cache
from valuecheck.services.currency import CurrencyNormalizer, fx_cache_key, is_currency_unit

T0 = datetime(2024, 3, 1, 12, 0, 0)


class _FakeRates:
    def __init__(self, rates=None, fail=False):
        self.rates = rates or {}
        self.fail = fail
        self.calls = []

    async def __call__(self, currency):
        self.calls.append(currency)
        if self.fail:
            raise RuntimeError("fx provider down")
        return self.rates[currency]


def test_usd_and_non_currency_units_pass_through(db):
    fetcher = _FakeRates()
    fx = CurrencyNormalizer(db, fetcher, now=T0)
    assert asyncio.run(fx.to_usd(100.0, "USD")) == 100.0
    assert asyncio.run(fx.to_usd(100.0, "shares")) == 100.0
    assert asyncio.run(fx.to_usd(100.0, "USD/shares")) == 100.0
    assert asyncio.run(fx.to_usd(None, "EUR")) is None
    assert fetcher.calls == []


def test_is_currency_unit():
    assert is_currency_unit("EUR")
    assert is_currency_unit("jpy")
    assert not is_currency_unit("pure")
    assert not is_currency_unit("shares")
    assert not is_currency_unit(None)


def test_converts_and_caches_rate(db):
    fetcher = _FakeRates({"EUR": 1.1})
    fx = CurrencyNormalizer(db, fetcher, now=T0)
    assert asyncio.run(fx.to_usd(100.0, "EUR")) == 100.0 * 1.1
    assert asyncio.run(fx.to_usd(200.0, "EUR")) == 200.0 * 1.1
    assert fetcher.calls == ["EUR"]
    assert get_cache(db, fx_cache_key("EUR"), now=T0) == {"rate": 1.1}


def test_fresh_cached_rate_skips_fetch(db):
    put_cache(db, fx_cache_key("GBP"), {"rate": 1.25}, now=T0)
    fetcher = _FakeRates(fail=True)
    fx = CurrencyNormalizer(db, fetcher, now=T0 + timedelta(hours=2))
    assert asyncio.run(fx.rate_to_usd("GBP")) == 1.25
    assert fetcher.calls == []


def test_stale_rate_used_when_fetch_fails(db):
    put_cache(db, fx_cache_key("GBP"), {"rate": 1.25}, now=T0)
    fetcher = _FakeRates(fail=True)
    fx = CurrencyNormalizer(db, fetcher, now=T0 + timedelta(days=3))
    assert asyncio.run(fx.rate_to_usd("GBP")) == 1.25
    assert fetcher.calls == ["GBP"]


def test_rate_defaults_to_one_when_nothing_available(db):
    fx = CurrencyNormalizer(db, _FakeRates(fail=True), now=T0)
    assert asyncio.run(fx.to_usd(500.0, "CHF")) == 500.0
