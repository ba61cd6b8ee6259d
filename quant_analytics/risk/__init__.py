"""
Portfolio risk module.

Handles the Monte Carlo portfolio search, VaR/CVaR and stress testing,
tail-risk analysis and sector diversification.
"""

from quant_analytics.risk.portfolio_optimizer import (
    MonteCarloConfig,
    MonteCarloOptimizer,
    OptimizationResult,
    PortfolioAnalysis,
    PortfolioCandidate,
    PortfolioPerformance,
    analyze_portfolio,
    evaluate_performance,
    portfolio_returns,
    returns_matrix,
    validate_weights,
)
from quant_analytics.risk.sector_exposure import (
    DEFAULT_SECTOR_MAP,
    DiversificationLevel,
    Sector,
    SectorAllocation,
    SectorClassifier,
    SectorDiversification,
    StaticSectorClassifier,
    analyze_sector_diversification,
)
from quant_analytics.risk.var_stress_testing import (
    DEFAULT_EXTREME_EVENTS,
    DEFAULT_STRESS_SCENARIOS,
    ExtremeEvent,
    RiskEngine,
    RiskReport,
    RiskReportConfig,
    StressScenario,
    StressTestResult,
    StressType,
    TailRiskAnalysis,
    analyze_tail_risk,
    beta,
    conditional_var,
    estimate_recovery_time,
    information_ratio,
    loss_probability,
    parametric_var,
    run_stress_tests,
    tracking_error,
    value_at_risk,
)

__all__ = [
    # Portfolio optimizer
    "MonteCarloConfig",
    "MonteCarloOptimizer",
    "OptimizationResult",
    "PortfolioAnalysis",
    "PortfolioCandidate",
    "PortfolioPerformance",
    "analyze_portfolio",
    "evaluate_performance",
    "portfolio_returns",
    "returns_matrix",
    "validate_weights",
    # Sector exposure
    "DEFAULT_SECTOR_MAP",
    "DiversificationLevel",
    "Sector",
    "SectorAllocation",
    "SectorClassifier",
    "SectorDiversification",
    "StaticSectorClassifier",
    "analyze_sector_diversification",
    # VaR and stress testing
    "DEFAULT_EXTREME_EVENTS",
    "DEFAULT_STRESS_SCENARIOS",
    "ExtremeEvent",
    "RiskEngine",
    "RiskReport",
    "RiskReportConfig",
    "StressScenario",
    "StressTestResult",
    "StressType",
    "TailRiskAnalysis",
    "analyze_tail_risk",
    "beta",
    "conditional_var",
    "estimate_recovery_time",
    "information_ratio",
    "loss_probability",
    "parametric_var",
    "run_stress_tests",
    "tracking_error",
    "value_at_risk",
]
