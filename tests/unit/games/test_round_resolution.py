"""Tests for market resolution of single rounds."""

import math

import pytest

from src.marketlab.games.market import (
    clamp_decision,
    resolve_round,
    summarize_rounds,
)
from src.marketlab.models.demand import CESDemandSpec
from src.marketlab.models.market import CompetitionMode, FirmSpec, MarketConfig
from src.marketlab.randomizer import expected_parameters
from tests.utils import create_linear_market


def _resolve(config: MarketConfig, decisions, **kwargs):
    return resolve_round(1, decisions, config, expected_parameters(config), **kwargs)


class TestCournotResolution:
    """Test rounds where firms choose quantities."""

    def test_symmetric_duopoly(self) -> None:
        """Test the textbook outcome at the Nash quantities."""
        result = _resolve(create_linear_market(), {1: 30.0, 2: 30.0})

        assert result.mode == CompetitionMode.COURNOT
        assert result.market_price == pytest.approx(40.0)
        assert result.total_quantity == pytest.approx(60.0)
        for firm in result.firms:
            assert firm.price == pytest.approx(40.0)
            assert firm.revenue == pytest.approx(1200.0)
            assert firm.cost == pytest.approx(300.0)
            assert firm.profit == pytest.approx(900.0)

    def test_asymmetric_costs(self) -> None:
        """Test per-firm costs with a common price."""
        result = _resolve(create_linear_market(costs=(10.0, 20.0)), {1: 10.0, 2: 20.0})

        assert result.market_price == pytest.approx(70.0)
        assert result.firm(1).profit == pytest.approx(600.0)
        assert result.firm(2).profit == pytest.approx(1000.0)

    def test_differentiated_prices(self) -> None:
        """Test that each firm gets its own price with gamma < 1."""
        result = _resolve(create_linear_market(gamma=0.5), {1: 20.0, 2: 40.0})

        assert result.firm(1).price == pytest.approx(100.0 - 20.0 - 20.0)
        assert result.firm(2).price == pytest.approx(100.0 - 40.0 - 10.0)
        assert result.market_prices == pytest.approx((60.0, 50.0))
        assert result.market_price == pytest.approx(55.0)

    def test_quadratic_costs(self) -> None:
        """Test C(q) = c*q + d*q^2."""
        config = create_linear_market(quadratic_costs=(1.0, 0.0))
        result = _resolve(config, {1: 10.0, 2: 10.0})

        assert result.firm(1).cost == pytest.approx(10.0 * 10.0 + 100.0)
        assert result.firm(2).cost == pytest.approx(100.0)

    def test_losses_are_allowed(self) -> None:
        """Test that oversupply drives the price to zero and profits negative."""
        result = _resolve(create_linear_market(), {1: 80.0, 2: 80.0})

        assert result.market_price == 0.0
        assert result.firm(1).profit == pytest.approx(-800.0)

    def test_bounds_and_negatives_are_clamped(self) -> None:
        """Test that decisions are clamped to bounds and to be non-negative."""
        config = create_linear_market(max_quantity=20.0)
        result = _resolve(config, {1: 35.0, 2: -5.0})

        assert result.firm(1).decision == 20.0
        assert result.firm(2).decision == 0.0
        assert result.firm(2).quantity == 0.0

    def test_floored_evaluation_is_flagged(self) -> None:
        """Test that domain flooring shows up in numeric_flags."""
        config = MarketConfig(
            firms=(FirmSpec(firm_id=1), FirmSpec(firm_id=2)),
            demand=CESDemandSpec(scale=10.0, substitution_elasticity=2.0),
        )
        result = _resolve(config, {1: 0.0, 2: 0.0})

        assert len(result.numeric_flags) == 2
        assert "floored" in result.numeric_flags[0]
        assert all(math.isfinite(f.price) for f in result.firms)

    def test_reasoning_is_carried(self) -> None:
        """Test that reasoning text is attached to the firm's outcome."""
        result = _resolve(
            create_linear_market(), {1: 30.0, 2: 30.0}, reasoning={2: "undercut"}
        )

        assert result.firm(1).reasoning is None
        assert result.firm(2).reasoning == "undercut"


class TestBertrandResolution:
    """Test rounds where firms choose prices."""

    def test_homogeneous_lowest_price_takes_market(self) -> None:
        """Test winner-take-all with homogeneous products."""
        config = create_linear_market(mode="bertrand")
        result = _resolve(config, {1: 40.0, 2: 50.0})

        assert result.firm(1).quantity == pytest.approx(60.0)
        assert result.firm(1).profit == pytest.approx(1800.0)
        assert result.firm(2).quantity == 0.0
        assert result.firm(2).profit == 0.0
        assert result.market_price == pytest.approx(45.0)

    def test_differentiated_prices(self) -> None:
        """Test the Singh-Vives allocation with gamma = 0.5."""
        config = create_linear_market(mode="bertrand", gamma=0.5)
        result = _resolve(config, {1: 40.0, 2: 40.0})

        assert result.firm(1).quantity == pytest.approx(40.0)
        assert result.firm(1).profit == pytest.approx(1200.0)
        assert result.total_quantity == pytest.approx(80.0)

    def test_price_bounds(self) -> None:
        """Test that price bounds apply in Bertrand mode."""
        config = create_linear_market(mode="bertrand", min_price=15.0, max_price=60.0)
        result = _resolve(config, {1: 5.0, 2: 80.0})

        assert result.firm(1).decision == 15.0
        assert result.firm(2).decision == 60.0


class TestDecisionValidation:
    """Test rejection of incomplete or invalid decision sets."""

    def test_missing_decision(self) -> None:
        """Test that every firm must decide."""
        with pytest.raises(ValueError, match=r"Missing decisions for firms \[2\]"):
            _resolve(create_linear_market(), {1: 30.0})

    def test_unknown_firm(self) -> None:
        """Test that decisions for unknown firms are rejected."""
        with pytest.raises(ValueError, match="unknown firms"):
            _resolve(create_linear_market(), {1: 30.0, 2: 30.0, 3: 30.0})

    def test_non_finite_decision(self) -> None:
        """Test that NaN decisions are rejected."""
        with pytest.raises(ValueError, match="must be finite"):
            _resolve(create_linear_market(), {1: 30.0, 2: float("nan")})

    def test_clamp_decision(self) -> None:
        """Test clamping against configured bounds."""
        config = create_linear_market(min_quantity=5.0, max_quantity=10.0)

        assert clamp_decision(1.0, CompetitionMode.COURNOT, config) == 5.0
        assert clamp_decision(12.0, CompetitionMode.COURNOT, config) == 10.0
        assert clamp_decision(-3.0, CompetitionMode.BERTRAND, config) == 0.0


class TestSummarizeRounds:
    """Test aggregation of rounds."""

    def test_summary(self) -> None:
        """Test per-firm and market averages over two rounds."""
        config = create_linear_market()
        rounds = [
            _resolve(config, {1: 30.0, 2: 30.0}),
            _resolve(config, {1: 20.0, 2: 40.0}),
        ]
        summary = summarize_rounds(rounds, config.firm_ids)

        assert summary.num_rounds == 2
        assert summary.average_market_price == pytest.approx(40.0)
        assert summary.average_total_quantity == pytest.approx(60.0)
        assert summary.firm(1).average_quantity == pytest.approx(25.0)
        assert summary.firm(1).total_profit == pytest.approx(900.0 + 600.0)
        assert summary.firm(2).total_profit == pytest.approx(900.0 + 1200.0)
        assert summary.total_profit == pytest.approx(3600.0)

    def test_empty_summary(self) -> None:
        """Test that no rounds give zero aggregates."""
        summary = summarize_rounds([], [1, 2])

        assert summary.num_rounds == 0
        assert summary.firm(2).total_profit == 0.0
        assert summary.average_market_price == 0.0
