"""Tests del modelo de precios (fórmulas puras)."""

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from guildmarket.domain.services.price_model import (
    NewsMomentum,
    PriceModel,
    PriceModelConfig,
    merge_candle_range,
)
from support import ScriptedRandom


def model(rng=None, **overrides) -> PriceModel:
    return PriceModel(PriceModelConfig(**overrides), rng or ScriptedRandom())


class TestTickComponents:

    def test_base_change_stays_within_volatility(self):
        m = PriceModel(PriceModelConfig(), random.Random(7))
        draws = [m.base_change(1.0) for _ in range(2000)]
        assert all(-0.01 <= d <= 0.01 for d in draws)
        assert min(draws) < 0 < max(draws)

    def test_trade_flow_without_volume_is_zero(self):
        assert model().trade_flow_impact(0, 0) == 0.0

    def test_trade_flow_sign_follows_imbalance(self):
        m = model()
        assert m.trade_flow_impact(500, 0) == pytest.approx(0.001)
        assert m.trade_flow_impact(0, 500) == pytest.approx(-0.001)
        assert m.trade_flow_impact(30, 10) == pytest.approx(0.0005)

    def test_trade_flow_scales_with_small_volume(self):
        assert model().trade_flow_impact(5, 0) == pytest.approx(0.0005)

    def test_news_shock_up_down_or_none(self):
        assert model(ScriptedRandom(randoms=[0.0005], uniforms=[0.003])).news_shock() == 0.003
        assert model(ScriptedRandom(randoms=[0.0015], uniforms=[0.004])).news_shock() == -0.004
        assert model(ScriptedRandom(randoms=[0.5])).news_shock() == 0.0

    def test_clamp_change_by_volatility(self):
        m = model()
        assert m.clamp_change(0.1, 1.0) == pytest.approx(0.03)
        assert m.clamp_change(-0.1, 1.0) == pytest.approx(-0.03)
        assert m.clamp_change(0.012, 1.0) == 0.012


class TestPriceBounds:

    def test_regular_band(self):
        assert model().price_bounds(Decimal("10000")) == (Decimal("9500.00"), Decimal("10500.00"))

    def test_floor_near_minimum(self):
        lower, upper = model().price_bounds(Decimal("1020"))
        assert lower == Decimal("1000")
        assert upper == Decimal("1071.00")

    def test_below_floor_cannot_fall(self):
        m = model()
        assert m.price_bounds(Decimal("900"))[0] == Decimal("900")
        assert m.next_price(Decimal("900"), -0.05) == Decimal("900")
        assert m.next_price(Decimal("900"), 0.05) == Decimal("945.00")

    def test_next_price_is_quantized(self):
        assert model().next_price(Decimal("10000"), 0.0123) == Decimal("10123.00")

    def test_next_price_clamped_to_band(self):
        assert model().next_price(Decimal("10000"), 0.2) == Decimal("10500.00")


class TestVolumeAndImpact:

    def test_synthetic_volume_grows_with_change(self):
        assert model(ScriptedRandom(randranges=[500])).synthetic_volume(0.01) == 10500
        assert model(ScriptedRandom(randranges=[500])).synthetic_volume(0.0) == 500

    def test_market_impact_capped(self):
        m = model(random.Random(1), market_impact_noise=0.0)
        assert m.market_impact(2000, 1) == pytest.approx(0.005)
        assert m.market_impact(20, -1) == pytest.approx(-0.002)

    def test_apply_impact_floor(self):
        m = model()
        assert m.apply_impact(Decimal("10000"), 0.05) == Decimal("10500.00")
        assert m.apply_impact(Decimal("1.50"), -0.9) == Decimal("1")


class TestNewsMomentum:
    START = datetime(2026, 3, 2, 1, 0, tzinfo=timezone.utc)

    def momentum(self):
        return NewsMomentum(1.0, 0.5, self.START, timedelta(minutes=3))

    def test_linear_decay(self):
        m = self.momentum()
        assert m.time_decay(self.START) == 1.0
        assert m.time_decay(self.START + timedelta(seconds=90)) == pytest.approx(0.5)
        assert m.time_decay(self.START + timedelta(minutes=3)) == 0.0
        assert m.is_expired(self.START + timedelta(minutes=3))

    def test_impact_uses_weight_and_intensity(self):
        m = model(ScriptedRandom(uniforms=[0.0]))
        assert m.momentum_impact(self.momentum(), self.START) == pytest.approx(0.3)

    def test_expired_momentum_has_no_impact(self):
        m = model()
        assert m.momentum_impact(self.momentum(), self.START + timedelta(minutes=5)) == 0.0


class TestCandleRange:

    def test_small_move_keeps_range(self):
        high, low = merge_candle_range(
            Decimal("100"), Decimal("100"), Decimal("100"), Decimal("100.005"),
        )
        assert (high, low) == (Decimal("100"), Decimal("100"))

    def test_upward_move_widens_high_by_step(self):
        high, low = merge_candle_range(
            Decimal("100"), Decimal("100"), Decimal("100"), Decimal("110"),
        )
        assert high == Decimal("100.5")
        assert low == Decimal("100")

    def test_downward_move_widens_low_by_step(self):
        high, low = merge_candle_range(
            Decimal("100"), Decimal("100"), Decimal("100"), Decimal("90"),
        )
        assert high == Decimal("100")
        assert low == Decimal("99.5")

    def test_close_move_reaches_price(self):
        high, _ = merge_candle_range(
            Decimal("100"), Decimal("100"), Decimal("100"), Decimal("100.2"),
        )
        assert high == Decimal("100.2")
