"""
Configuration dataclass for the MMA optimizer.

Defaults follow Svanberg's reference MMA code ("MMA and GCMMA - two methods
for nonlinear optimization", 2007) as used in the finite-element MMA
implementation this package mirrors.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from mmaopt.utils.io_utils import load_yaml


PRINT_LEVELS = (0, 1, 2)


@dataclass
class MMAConfig:
    """MMA algorithm constants.

    Attributes
    ----------
    a0 : float
        Coefficient on the artificial variable z in the subproblem objective.
    a : float
        Coefficient a_i on z in every constraint (0 gives the standard NLP form).
    c : float
        Linear cost c_i on the elastic variables y_i ("reasonably large").
    d : float
        Quadratic weight d_i on y_i.
    epsimin : float
        Final barrier parameter of the interior-point subproblem solver.
    machine_epsilon : float
        Magnitude below which a Newton diagonal entry is treated as zero.
    raa0 : float
        Regularization added to p_ij, q_ij so the approximation stays strictly
        convex when a gradient component is exactly zero.
    albefa : float
        Fraction of the asymptote distance kept free in the alfa/beta box.
    move : float
        Move limit, relative to (xmax - xmin).
    asyinit : float
        Initial asymptote distance, relative to (xmax - xmin).
    asyincr : float
        Asymptote expansion factor on monotone progress (> 1).
    asydecr : float
        Asymptote contraction factor on oscillation (< 1).
    asy_min_factor, asy_max_factor : float
        Bounds of |x - asymptote| relative to (xmax - xmin) after an update.
    xmamieps : float
        Floor on (xmax - xmin) in the coefficient regularization.
    max_newton_iter : int
        Newton steps allowed per barrier level.
    max_line_search : int
        Step halvings allowed per Newton step.
    print_level : int
        0 silent (default), 1 warnings, 2 per-iteration convergence summaries.
    """
    a0: float = 1.0
    a: float = 0.0
    c: float = 1000.0
    d: float = 1.0
    epsimin: float = 1e-7
    machine_epsilon: float = 1e-10
    raa0: float = 1e-5
    albefa: float = 0.1
    move: float = 0.5
    asyinit: float = 0.5
    asyincr: float = 1.2
    asydecr: float = 0.7
    asy_min_factor: float = 0.01
    asy_max_factor: float = 10.0
    xmamieps: float = 1e-5
    max_newton_iter: int = 200
    max_line_search: int = 50
    print_level: int = 0

    def __post_init__(self) -> None:
        if self.print_level not in PRINT_LEVELS:
            raise ValueError(f"print_level must be one of {PRINT_LEVELS}, got {self.print_level}")
        if not 0.0 < self.asydecr < 1.0 < self.asyincr:
            raise ValueError("expected 0 < asydecr < 1 < asyincr")
        if not 0.0 < self.asyinit:
            raise ValueError("asyinit must be positive")
        if not 0.0 < self.move:
            raise ValueError("move must be positive")
        if not 0.0 < self.epsimin < 1.0:
            raise ValueError("epsimin must lie in (0, 1)")
        if self.max_newton_iter < 1 or self.max_line_search < 1:
            raise ValueError("iteration caps must be at least 1")

    def constraint_coefficients(self, m: int):
        """Return the (a, c, d) vectors of length m."""
        return (np.full(m, float(self.a)),
                np.full(m, float(self.c)),
                np.full(m, float(self.d)))

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> "MMAConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        values = dict(values or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown MMA config keys: {', '.join(unknown)}")
        return cls(**values)


def load_config(path: str | Path) -> MMAConfig:
    """Read an MMAConfig from YAML; the keys may sit under a top-level ``mma`` section."""
    raw = load_yaml(path)
    if "mma" in raw and isinstance(raw["mma"], dict):
        raw = raw["mma"]
    return MMAConfig.from_dict(raw)
