"""Outer optimization loop around the MMA controller.

The controller performs one iteration per call and leaves every continuation
decision to the caller; ``run_optimization`` is that caller for problems that
expose ``evaluate``, ``xmin``, ``xmax`` and ``x0``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from mmaopt.core import MMA
from mmaopt.utils.logging_utils import get_logger


logger = get_logger(__name__)


@dataclass
class OptimizationResult:
    x: np.ndarray
    f0: float
    gx: np.ndarray
    kkt_norm: float
    iterations: int
    status: str
    history: Dict[str, List[Any]] = field(default_factory=dict)


def run_optimization(
    problem,
    mma: Optional[MMA] = None,
    *,
    max_iter: int = 200,
    kkt_tol: float = 1e-6,
    step_tol: float = 0.0,
    feas_tol: float = 1e-6,
    callback: Optional[Callable[[int, Dict[str, Any]], None]] = None,
) -> OptimizationResult:
    """Iterate MMA on ``problem`` until the KKT norm or design change is small.

    Stops with status ``"kkt_converged"`` when ``kkt_norm <= kkt_tol`` and the
    constraints are satisfied to ``feas_tol``, ``"step_converged"`` when the
    design change falls below ``step_tol``, and ``"max_iter_reached"``
    otherwise. The objective and constraints reported are evaluated at the
    final design.
    """
    x = np.array(problem.x0, dtype=float)
    if mma is None:
        mma = MMA(problem.n, problem.m, x)
    history: Dict[str, List[Any]] = {"f0": [], "max_g": [], "kkt": [], "change": []}
    status = "max_iter_reached"
    k = 0

    for k in range(1, max_iter + 1):
        f0, dfdx, gx, dgdx = problem.evaluate(x)
        x_before = x.copy()
        mma.update(dfdx, gx, dgdx, problem.xmin, problem.xmax, x)
        change = float(np.max(np.abs(x - x_before)))

        f0_new, _, gx_new, _ = problem.evaluate(x)
        max_g = float(np.max(gx_new)) if gx_new.size else 0.0
        history["f0"].append(f0_new)
        history["max_g"].append(max_g)
        history["kkt"].append(mma.kkt_norm)
        history["change"].append(change)

        if callback is not None:
            callback(k, {"x": x.copy(), "f0": f0_new, "gx": gx_new.copy(),
                         "kkt": mma.kkt_norm, "change": change})

        if mma.kkt_norm <= kkt_tol and max_g <= feas_tol:
            status = "kkt_converged"
            break
        if change < step_tol:
            status = "step_converged"
            break

    f0, _, gx, _ = problem.evaluate(x)
    logger.info("MMA finished after %d iterations (%s): f0=%.6e kkt=%.3e",
                mma.iteration, status, f0, mma.kkt_norm)
    return OptimizationResult(x=x, f0=f0, gx=gx, kkt_norm=mma.kkt_norm,
                              iterations=k, status=status, history=history)
