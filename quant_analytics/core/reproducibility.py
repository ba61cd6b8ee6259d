"""Reproducibility utilities for randomized searches.

The engine never draws from a process-wide random source. Callers pass
either a seed or a ready ``numpy.random.Generator`` and every randomized
computation derives its stream from that argument.
"""

from __future__ import annotations

import numpy as np

from .exceptions import InvalidParameterError


def make_generator(
    seed_or_rng: int | np.random.Generator,
) -> np.random.Generator:
    """Build the generator a randomized computation draws from.

    Args:
        seed_or_rng: Integer seed or an existing generator (used as-is).

    Returns:
        A ``numpy.random.Generator``.
    """
    if isinstance(seed_or_rng, np.random.Generator):
        return seed_or_rng
    if isinstance(seed_or_rng, bool) or not isinstance(seed_or_rng, (int, np.integer)):
        raise InvalidParameterError(
            "Seed must be an integer or numpy Generator",
            parameter="seed",
            value=seed_or_rng,
            expected="int | numpy.random.Generator",
        )
    if seed_or_rng < 0:
        raise InvalidParameterError(
            "Seed must be non-negative",
            parameter="seed",
            value=seed_or_rng,
            expected=">= 0",
        )
    return np.random.default_rng(int(seed_or_rng))
