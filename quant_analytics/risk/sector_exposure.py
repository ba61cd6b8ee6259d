"""
Sector exposure and diversification analysis.

Provides:
- Sector enumeration and a default ticker-to-sector table
- SectorClassifier protocol so callers can inject their own classification
- StaticSectorClassifier backed by an extendable lookup table
- Sector allocation, Herfindahl-Hirschman concentration and suggestions
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import numpy as np

from quant_analytics.core.exceptions import InvalidParameterError

logger = logging.getLogger(__name__)


class Sector(str, Enum):
    """Sector classification labels."""

    TECHNOLOGY = "Technology"
    FINANCIAL_SERVICES = "Financial Services"
    HEALTHCARE = "Healthcare"
    CONSUMER_CYCLICAL = "Consumer Cyclical"
    CONSUMER_DEFENSIVE = "Consumer Defensive"
    COMMUNICATION_SERVICES = "Communication Services"
    ENERGY = "Energy"
    INDUSTRIALS = "Industrials"
    BASIC_MATERIALS = "Basic Materials"
    UTILITIES = "Utilities"
    REAL_ESTATE = "Real Estate"
    OTHER = "Other"


class DiversificationLevel(str, Enum):
    """Sector diversification level derived from HHI."""

    HIGH = "high"  # HHI < 1500
    MEDIUM = "medium"  # HHI < 2500
    LOW = "low"


DEFAULT_SECTOR_MAP: dict[str, Sector] = {
    "AAPL": Sector.TECHNOLOGY,
    "MSFT": Sector.TECHNOLOGY,
    "GOOG": Sector.TECHNOLOGY,
    "FB": Sector.TECHNOLOGY,
    "ADBE": Sector.TECHNOLOGY,
    "CRM": Sector.TECHNOLOGY,
    "INTC": Sector.TECHNOLOGY,
    "AMZN": Sector.CONSUMER_CYCLICAL,
    "TSLA": Sector.CONSUMER_CYCLICAL,
    "HD": Sector.CONSUMER_CYCLICAL,
    "BRK.B": Sector.FINANCIAL_SERVICES,
    "JPM": Sector.FINANCIAL_SERVICES,
    "V": Sector.FINANCIAL_SERVICES,
    "MA": Sector.FINANCIAL_SERVICES,
    "PYPL": Sector.FINANCIAL_SERVICES,
    "JNJ": Sector.HEALTHCARE,
    "PG": Sector.CONSUMER_DEFENSIVE,
    "DIS": Sector.COMMUNICATION_SERVICES,
    "VZ": Sector.COMMUNICATION_SERVICES,
    "NFLX": Sector.COMMUNICATION_SERVICES,
}

MAJOR_SECTORS: tuple[str, ...] = (
    Sector.TECHNOLOGY.value,
    Sector.FINANCIAL_SERVICES.value,
    Sector.HEALTHCARE.value,
    Sector.CONSUMER_CYCLICAL.value,
    Sector.CONSUMER_DEFENSIVE.value,
)

HHI_HIGH_DIVERSIFICATION = 1500.0
HHI_MEDIUM_DIVERSIFICATION = 2500.0
SECTOR_CONCENTRATION_LIMIT = 0.40
MIN_MAJOR_SECTOR_WEIGHT = 0.05


@runtime_checkable
class SectorClassifier(Protocol):
    """Anything that maps a ticker to a sector name."""

    def get_sector(self, ticker: str) -> str:
        ...


class StaticSectorClassifier:
    """Classifies tickers from a static lookup table.

    Tickers missing from the table are classified as ``Other``.
    """

    def __init__(self, sector_map: Mapping[str, str] | None = None) -> None:
        """Initialize sector classifier.

        Args:
            sector_map: Ticker-to-sector mapping; defaults to DEFAULT_SECTOR_MAP.
        """
        source = DEFAULT_SECTOR_MAP if sector_map is None else sector_map
        self._sector_map: dict[str, str] = {k.upper(): str(_label(v)) for k, v in source.items()}
        self._lock = threading.RLock()

    def get_sector(self, ticker: str) -> str:
        """Get the sector for a ticker."""
        with self._lock:
            sector = self._sector_map.get(ticker.upper())
        if sector is None:
            logger.warning(f"No sector mapping for {ticker}; classifying as {Sector.OTHER.value}")
            return Sector.OTHER.value
        return sector

    def add_mapping(self, ticker: str, sector: str) -> None:
        """Add or update a sector mapping."""
        with self._lock:
            self._sector_map[ticker.upper()] = _label(sector)

    def get_all_mappings(self) -> dict[str, str]:
        """Get all sector mappings."""
        with self._lock:
            return dict(self._sector_map)


def _label(sector: str) -> str:
    return sector.value if isinstance(sector, Sector) else str(sector)


@dataclass
class SectorAllocation:
    """Portfolio weight held in one sector."""

    sector: str
    weight_pct: float  # Percent, one decimal
    tickers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"sector": self.sector, "weight_pct": self.weight_pct, "tickers": self.tickers}


@dataclass
class SectorDiversification:
    """Sector diversification assessment."""

    allocation: list[SectorAllocation]
    hhi: float
    level: DiversificationLevel
    highest_sector: str
    missing_major_sectors: list[str]
    suggestions: list[str]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "allocation": [a.to_dict() for a in self.allocation],
            "hhi": self.hhi,
            "level": self.level.value,
            "highest_sector": self.highest_sector,
            "missing_major_sectors": self.missing_major_sectors,
            "suggestions": self.suggestions,
        }


def diversification_level(hhi: float) -> DiversificationLevel:
    """Map an HHI score (percent-squared scale) to a diversification level."""
    if hhi < HHI_HIGH_DIVERSIFICATION:
        return DiversificationLevel.HIGH
    if hhi < HHI_MEDIUM_DIVERSIFICATION:
        return DiversificationLevel.MEDIUM
    return DiversificationLevel.LOW


def analyze_sector_diversification(
    tickers: Sequence[str],
    weights: Sequence[float] | np.ndarray,
    classifier: SectorClassifier | None = None,
) -> SectorDiversification:
    """Bucket portfolio weights by sector and measure concentration.

    Args:
        tickers: Portfolio tickers.
        weights: Weight per ticker (fractions summing to ~1).
        classifier: Sector classifier; defaults to StaticSectorClassifier.

    Returns:
        SectorDiversification with allocation sorted by weight.
    """
    if len(tickers) != len(weights) or not tickers:
        raise InvalidParameterError(
            "Tickers and weights must be non-empty and of equal length",
            parameter="weights",
            value=(len(tickers), len(weights)),
            expected="one weight per ticker",
        )
    classifier = classifier or StaticSectorClassifier()

    sector_weights: dict[str, float] = {}
    sector_tickers: dict[str, list[str]] = {}
    for ticker, weight in zip(tickers, weights):
        sector = _label(classifier.get_sector(ticker))
        sector_weights[sector] = sector_weights.get(sector, 0.0) + float(weight)
        sector_tickers.setdefault(sector, []).append(ticker)

    hhi = float(sum((w * 100.0) ** 2 for w in sector_weights.values()))
    level = diversification_level(hhi)

    ranked = sorted(sector_weights.items(), key=lambda item: item[1], reverse=True)
    highest_sector, highest_weight = ranked[0]

    suggestions = []
    if highest_weight > SECTOR_CONCENTRATION_LIMIT:
        suggestions.append(
            f"{highest_sector} weight is high ({highest_weight * 100:.1f}%); reduce it and add "
            f"other sectors to improve diversification."
        )

    missing = [s for s in MAJOR_SECTORS if sector_weights.get(s, 0.0) < MIN_MAJOR_SECTOR_WEIGHT]
    if missing:
        suggestions.append(
            f"The portfolio lacks meaningful exposure to {', '.join(missing)}; consider adding "
            f"holdings in these major sectors."
        )

    allocation = [
        SectorAllocation(sector=s, weight_pct=round(w * 100.0, 1), tickers=sector_tickers[s])
        for s, w in ranked
    ]

    logger.debug(f"Sector HHI {hhi:.1f} ({level.value}) across {len(allocation)} sectors")

    return SectorDiversification(
        allocation=allocation,
        hhi=hhi,
        level=level,
        highest_sector=highest_sector,
        missing_major_sectors=missing,
        suggestions=suggestions,
    )
