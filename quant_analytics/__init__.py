"""
Quant Analytics - Deterministic Quantitative Analytics Engine

A library of pure numeric computations for technical signals, multi-factor
scoring, pairs-trading relationships, portfolio optimization and risk
reporting, and strategy recommendation.
"""

__version__ = "1.0.0"
__author__ = "Quant Analytics Contributors"
