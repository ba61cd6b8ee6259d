"""
Portfolio optimization module.

Implements a Monte Carlo weight search over long-only portfolios:
- Uniform non-negative candidate weights normalized to sum to one
- Vectorized per-candidate performance (annualized return, risk, Sharpe,
  maximum drawdown)
- Target-driven selection (max Sharpe, min risk, max return, balanced)
- Optional thread-pool evaluation with scheduling-independent results
- Portfolio analysis (weight distribution, risk contribution, summary)

This is a sampling search, not a closed-form optimizer: the selected
portfolio is the best of the drawn candidates, not the true optimum.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from quant_analytics.core.data_types import OptimizationTarget, coerce_enum
from quant_analytics.core.exceptions import (
    InsufficientDataError,
    InvalidParameterError,
    NumericDegeneracyError,
)
from quant_analytics.core.reproducibility import make_generator
from quant_analytics.features.statistical import TRADING_DAYS_PER_YEAR, ArrayLike, as_array

logger = logging.getLogger(__name__)

# Tolerance for candidate weights produced by the search
CANDIDATE_WEIGHT_TOLERANCE = 1e-6

# Tolerance for caller-supplied weights
WEIGHT_SUM_TOLERANCE = 0.01


@dataclass
class MonteCarloConfig:
    """Configuration for the Monte Carlo weight search."""

    n_candidates: int = 5000
    risk_free_rate: float = 0.02
    trading_days: int = TRADING_DAYS_PER_YEAR
    max_workers: int | None = None  # None or 1 evaluates on the calling thread
    chunk_size: int = 500  # Candidates per evaluation batch
    tie_tolerance: float = 1e-9  # Relative tolerance for equal objectives

    def __post_init__(self) -> None:
        if self.n_candidates < 1:
            raise InvalidParameterError(
                "Candidate count must be at least 1",
                parameter="n_candidates",
                value=self.n_candidates,
                expected=">= 1",
            )
        if self.trading_days <= 0:
            raise InvalidParameterError(
                "Trading days must be positive",
                parameter="trading_days",
                value=self.trading_days,
                expected="> 0",
            )
        if self.chunk_size < 1:
            raise InvalidParameterError(
                "Chunk size must be at least 1",
                parameter="chunk_size",
                value=self.chunk_size,
                expected=">= 1",
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise InvalidParameterError(
                "max_workers must be positive",
                parameter="max_workers",
                value=self.max_workers,
                expected=">= 1 or None",
            )
        if not np.isfinite(self.risk_free_rate):
            raise InvalidParameterError(
                "Risk-free rate must be finite",
                parameter="risk_free_rate",
                value=self.risk_free_rate,
            )
        if self.tie_tolerance < 0:
            raise InvalidParameterError(
                "Tie tolerance must be non-negative",
                parameter="tie_tolerance",
                value=self.tie_tolerance,
                expected=">= 0",
            )


@dataclass
class PortfolioPerformance:
    """Annualized performance of one weight vector."""

    annualized_return: float
    annualized_risk: float
    sharpe_ratio: float
    max_drawdown: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "annualized_return": self.annualized_return,
            "annualized_risk": self.annualized_risk,
            "sharpe_ratio": self.sharpe_ratio,
            "max_drawdown": self.max_drawdown,
        }


@dataclass
class PortfolioCandidate:
    """A weight vector and its performance."""

    weights: dict[str, float]
    performance: PortfolioPerformance

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "weights": self.weights,
            "performance": self.performance.to_dict(),
        }


@dataclass
class PortfolioAnalysis:
    """Descriptive analysis of the selected portfolio."""

    weight_distribution: list[dict[str, Any]]
    risk_contribution: list[dict[str, Any]]
    performance_summary: str
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "weight_distribution": self.weight_distribution,
            "risk_contribution": self.risk_contribution,
            "performance_summary": self.performance_summary,
            "suggestions": self.suggestions,
        }


@dataclass
class OptimizationResult:
    """Result of a Monte Carlo portfolio search."""

    target: OptimizationTarget
    tickers: list[str]
    selected: PortfolioCandidate
    candidates: list[PortfolioCandidate]
    analysis: PortfolioAnalysis
    selected_index: int = 0

    @property
    def optimal_weights(self) -> dict[str, float]:
        """Weights of the selected candidate."""
        return self.selected.weights

    @property
    def performance(self) -> PortfolioPerformance:
        """Performance of the selected candidate."""
        return self.selected.performance

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (candidate list summarized by count)."""
        return {
            "target": self.target.value,
            "tickers": self.tickers,
            "optimal_weights": self.selected.weights,
            "performance": self.selected.performance.to_dict(),
            "analysis": self.analysis.to_dict(),
            "candidate_count": len(self.candidates),
            "selected_index": self.selected_index,
        }


# =============================================================================
# INPUT PREPARATION
# =============================================================================


def _check_tickers(tickers: Sequence[str]) -> list[str]:
    tickers = list(tickers)
    if not tickers:
        raise InvalidParameterError(
            "At least one ticker is required",
            parameter="tickers",
            value=tickers,
            expected="non-empty list",
        )
    if len(set(tickers)) != len(tickers):
        raise InvalidParameterError(
            "Tickers must be unique",
            parameter="tickers",
            value=tickers,
        )
    return tickers


def returns_matrix(
    tickers: Sequence[str],
    returns_by_ticker: Mapping[str, ArrayLike],
) -> np.ndarray:
    """Stack per-ticker daily returns into a (days, tickers) matrix.

    Args:
        tickers: Column order.
        returns_by_ticker: Date-aligned daily returns per ticker.

    Returns:
        Float64 matrix with one column per ticker.

    Raises:
        InvalidParameterError: If a ticker is missing, values are not
            finite, or series lengths differ.
        InsufficientDataError: If fewer than two observations are given.
    """
    tickers = _check_tickers(tickers)
    missing = [t for t in tickers if t not in returns_by_ticker]
    if missing:
        raise InvalidParameterError(
            f"Missing return series for {', '.join(missing)}",
            parameter="returns_by_ticker",
            value=missing,
            expected="a return series for every ticker",
            details={"tickers": missing},
        )

    columns = [as_array(returns_by_ticker[t], f"returns[{t}]", 2, ticker=t) for t in tickers]
    lengths = {t: len(c) for t, c in zip(tickers, columns)}
    if len(set(lengths.values())) != 1:
        raise InvalidParameterError(
            "Return series lengths differ",
            parameter="returns_by_ticker",
            value=lengths,
            expected="date-aligned series of equal length",
            details={"tickers": tickers},
        )
    return np.column_stack(columns)


def validate_weights(
    tickers: Sequence[str],
    weights: Sequence[float] | Mapping[str, float],
    tolerance: float = WEIGHT_SUM_TOLERANCE,
) -> np.ndarray:
    """Validate caller-supplied portfolio weights.

    Args:
        tickers: Ticker order.
        weights: Weights in ticker order, or a ticker-to-weight mapping.
        tolerance: Allowed deviation of the weight sum from 1.

    Returns:
        Weight vector aligned with ``tickers``.
    """
    tickers = _check_tickers(tickers)
    if isinstance(weights, Mapping):
        unknown = sorted(set(weights) - set(tickers))
        if unknown:
            raise InvalidParameterError(
                f"Weights given for unknown tickers: {', '.join(unknown)}",
                parameter="weights",
                value=unknown,
            )
        weights = [weights.get(t, 0.0) for t in tickers]

    w = np.array(weights, dtype=np.float64)
    if w.ndim != 1 or len(w) != len(tickers):
        raise InvalidParameterError(
            "Weights and tickers differ in length",
            parameter="weights",
            value=(w.size, len(tickers)),
            expected="one weight per ticker",
        )
    if not np.all(np.isfinite(w)):
        raise InvalidParameterError(
            "Weights must be finite",
            parameter="weights",
            value=w.tolist(),
            expected="finite numbers",
        )
    if np.any(w < 0):
        raise InvalidParameterError(
            "Weights must be non-negative",
            parameter="weights",
            value=w.tolist(),
            expected=">= 0",
        )
    total = float(w.sum())
    if abs(total - 1.0) > tolerance:
        raise InvalidParameterError(
            f"Weights must sum to 1 (got {total:.4f})",
            parameter="weights",
            value=total,
            expected=f"1 +/- {tolerance}",
        )
    return w


# =============================================================================
# PERFORMANCE
# =============================================================================


def portfolio_returns(weights: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Daily portfolio returns: sum of weight times asset return per day."""
    return matrix @ weights


def _batch_performance(
    weights: np.ndarray,
    matrix: np.ndarray,
    risk_free_rate: float,
    trading_days: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Performance columns for a (candidates, tickers) weight batch."""
    daily = matrix @ weights.T  # (days, candidates)
    ann_return = (1.0 + daily.mean(axis=0)) ** trading_days - 1.0
    ann_risk = daily.std(axis=0) * np.sqrt(trading_days)
    if np.any(ann_risk == 0):
        raise NumericDegeneracyError(
            "Portfolio has zero volatility; Sharpe ratio is undefined",
            quantity="annualized_risk",
        )
    sharpe = (ann_return - risk_free_rate) / ann_risk

    ones = np.ones((1, daily.shape[1]))
    curve = np.concatenate((ones, np.cumprod(1.0 + daily, axis=0)), axis=0)
    peaks = np.maximum.accumulate(curve, axis=0)
    drawdown = ((peaks - curve) / peaks).max(axis=0)
    return ann_return, ann_risk, sharpe, drawdown


def evaluate_performance(
    weights: ArrayLike,
    matrix: np.ndarray,
    risk_free_rate: float = 0.02,
    trading_days: int = TRADING_DAYS_PER_YEAR,
) -> PortfolioPerformance:
    """Annualized performance of a single weight vector.

    Args:
        weights: Weight per matrix column.
        matrix: (days, tickers) daily returns.
        risk_free_rate: Annual risk-free rate for the Sharpe ratio.
        trading_days: Trading days per year.

    Raises:
        NumericDegeneracyError: If the portfolio has zero volatility.
    """
    w = np.asarray(weights, dtype=np.float64).reshape(1, -1)
    ann_return, ann_risk, sharpe, drawdown = _batch_performance(
        w, matrix, risk_free_rate, trading_days
    )
    return PortfolioPerformance(
        annualized_return=float(ann_return[0]),
        annualized_risk=float(ann_risk[0]),
        sharpe_ratio=float(sharpe[0]),
        max_drawdown=float(drawdown[0]),
    )


# =============================================================================
# ANALYSIS
# =============================================================================


def analyze_portfolio(candidate: PortfolioCandidate, tickers: Sequence[str]) -> PortfolioAnalysis:
    """Describe a selected portfolio.

    Risk contribution is the simplified weight times portfolio risk.
    """
    perf = candidate.performance
    weight_distribution = sorted(
        ({"ticker": t, "weight": candidate.weights[t]} for t in tickers),
        key=lambda item: item["weight"],
        reverse=True,
    )
    risk_contribution = sorted(
        ({"ticker": t, "contribution": candidate.weights[t] * perf.annualized_risk} for t in tickers),
        key=lambda item: item["contribution"],
        reverse=True,
    )

    if perf.sharpe_ratio > 1.5:
        summary = "Excellent risk-adjusted performance with a high return per unit of risk."
    elif perf.sharpe_ratio > 1.0:
        summary = "Good performance; risk and return are well matched."
    elif perf.sharpe_ratio > 0.5:
        summary = "Fair performance with moderate risk-adjusted return."
    else:
        summary = "Poor risk-adjusted performance; the allocation should be revisited."

    suggestions = []
    if perf.sharpe_ratio < 1.0:
        suggestions.append("Add assets with low correlation to the current holdings to improve diversification.")
        suggestions.append("Check for over-concentrated weights and spread the allocation more evenly.")
    if perf.max_drawdown > 0.2:
        suggestions.append(
            "Maximum drawdown is large; consider defensive assets or a smaller share of volatile holdings."
        )
    if perf.annualized_return < 0.08:
        suggestions.append("Annualized return is low; consider a larger share of growth assets.")

    return PortfolioAnalysis(
        weight_distribution=weight_distribution,
        risk_contribution=risk_contribution,
        performance_summary=summary,
        suggestions=suggestions,
    )


# =============================================================================
# MONTE CARLO OPTIMIZER
# =============================================================================


class MonteCarloOptimizer:
    """Monte Carlo search for portfolio weights.

    Candidate weights are drawn up front from the injected generator and
    evaluated in fixed-size batches, so serial and threaded runs produce
    bit-identical results for the same seed.

    Example:
        >>> optimizer = MonteCarloOptimizer(MonteCarloConfig(n_candidates=1000))
        >>> result = optimizer.optimize(
        ...     ["AAPL", "MSFT"], returns, OptimizationTarget.MAX_SHARPE, rng=42
        ... )
        >>> result.optimal_weights
    """

    def __init__(self, config: MonteCarloConfig | None = None) -> None:
        """Initialize optimizer.

        Args:
            config: Search configuration.
        """
        self.config = config or MonteCarloConfig()

    def optimize(
        self,
        tickers: Sequence[str],
        returns_by_ticker: Mapping[str, ArrayLike],
        target: OptimizationTarget | str = OptimizationTarget.MAX_SHARPE,
        *,
        rng: np.random.Generator | int,
    ) -> OptimizationResult:
        """Search for the best portfolio under a target.

        Args:
            tickers: Assets to allocate across.
            returns_by_ticker: Date-aligned daily returns per ticker.
            target: Optimization target.
            rng: Generator or integer seed for the weight draws.

        Returns:
            OptimizationResult with the selected candidate and all candidates.
        """
        target = coerce_enum(OptimizationTarget, target, "target")
        tickers = _check_tickers(tickers)
        matrix = returns_matrix(tickers, returns_by_ticker)
        generator = make_generator(rng)

        weights = self.draw_weights(generator, len(tickers))
        ann_return, ann_risk, sharpe, drawdown = self._evaluate(weights, matrix)
        index = self.select(target, weights, ann_return, ann_risk, sharpe)

        candidates = [
            PortfolioCandidate(
                weights=dict(zip(tickers, weights[i].tolist())),
                performance=PortfolioPerformance(
                    annualized_return=float(ann_return[i]),
                    annualized_risk=float(ann_risk[i]),
                    sharpe_ratio=float(sharpe[i]),
                    max_drawdown=float(drawdown[i]),
                ),
            )
            for i in range(len(weights))
        ]
        selected = candidates[index]

        logger.info(
            f"Selected portfolio {index}/{len(candidates)} for {target.value}: "
            f"return={selected.performance.annualized_return:.4f} "
            f"risk={selected.performance.annualized_risk:.4f} "
            f"sharpe={selected.performance.sharpe_ratio:.3f}"
        )

        return OptimizationResult(
            target=target,
            tickers=tickers,
            selected=selected,
            candidates=candidates,
            analysis=analyze_portfolio(selected, tickers),
            selected_index=index,
        )

    def draw_weights(self, rng: np.random.Generator, n_assets: int) -> np.ndarray:
        """Draw uniform non-negative weights normalized to sum to one."""
        raw = rng.random((self.config.n_candidates, n_assets))
        totals = raw.sum(axis=1, keepdims=True)
        # An all-zero row is practically impossible; fall back to equal weight
        raw[totals[:, 0] == 0] = 1.0
        return raw / raw.sum(axis=1, keepdims=True)

    def _evaluate(
        self,
        weights: np.ndarray,
        matrix: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Evaluate all candidates in fixed batches, optionally threaded."""
        cfg = self.config
        bounds = [
            (start, min(start + cfg.chunk_size, len(weights)))
            for start in range(0, len(weights), cfg.chunk_size)
        ]

        if cfg.max_workers and cfg.max_workers > 1 and len(bounds) > 1:
            logger.debug(f"Evaluating {len(weights)} candidates on {cfg.max_workers} threads")
            with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
                futures = [
                    executor.submit(
                        _batch_performance,
                        weights[start:stop],
                        matrix,
                        cfg.risk_free_rate,
                        cfg.trading_days,
                    )
                    for start, stop in bounds
                ]
                parts = [future.result() for future in futures]
        else:
            parts = [
                _batch_performance(weights[start:stop], matrix, cfg.risk_free_rate, cfg.trading_days)
                for start, stop in bounds
            ]

        return tuple(np.concatenate([p[k] for p in parts]) for k in range(4))

    def select(
        self,
        target: OptimizationTarget,
        weights: np.ndarray,
        ann_return: np.ndarray,
        ann_risk: np.ndarray,
        sharpe: np.ndarray,
    ) -> int:
        """Index of the candidate chosen for a target.

        Objectives within the tie tolerance of the best are treated as equal;
        among those the candidate closest to equal weight wins, then the
        lowest index.
        """
        if len(weights) == 0:
            raise InsufficientDataError("No candidates to select from", required=1, actual=0)

        eligible = np.arange(len(weights))
        if target == OptimizationTarget.MAX_SHARPE:
            objective = sharpe
        elif target == OptimizationTarget.MIN_RISK:
            objective = -ann_risk
        elif target == OptimizationTarget.MAX_RETURN:
            objective = ann_return
        else:
            average = float(ann_return.mean())
            keep = ann_return >= average - self._tolerance(average)
            if not np.any(keep):
                logger.warning("No candidate at or above the average return; using the first candidate")
                return 0
            eligible = eligible[keep]
            objective = ann_return / ann_risk

        values = objective[eligible]
        best = float(values.max())
        tied = eligible[values >= best - self._tolerance(best)]
        if len(tied) == 1:
            return int(tied[0])

        n_assets = weights.shape[1]
        distance = np.linalg.norm(weights[tied] - 1.0 / n_assets, axis=1)
        return int(tied[int(np.argmin(distance))])

    def _tolerance(self, reference: float) -> float:
        return self.config.tie_tolerance * max(abs(reference), 1.0)
