"""KKT residual of the original problem at an MMA iterate.

For

    minimize   f_0(x) + a_0*z + sum(c_i*y_i + 0.5*d_i*y_i^2)
    subject to f_i(x) - a_i*z - y_i <= 0,   xmin <= x <= xmax,   y, z >= 0

the residual stacks stationarity in (x, y, z), constraint feasibility with
slacks, and the complementarity products. Parts indexed by design variables
are summed across participants; the rest is replicated.
"""

from __future__ import annotations
from typing import Tuple

import numpy as np

from .reduction import Reducer, SerialReducer
from .subproblem import SubproblemResult


def kkt_residual(
    sol: SubproblemResult,
    dfdx: np.ndarray,
    gx: np.ndarray,
    dgdx: np.ndarray,
    xmin: np.ndarray,
    xmax: np.ndarray,
    a0: float,
    a: np.ndarray,
    c: np.ndarray,
    d: np.ndarray,
    reducer: Reducer | None = None,
) -> Tuple[float, float]:
    """Return (2-norm, max-norm) of the KKT residual vector."""
    reducer = reducer if reducer is not None else SerialReducer()

    rex = dfdx + dgdx.T @ sol.lam - sol.xsi + sol.eta
    rexsi = sol.xsi * (sol.x - xmin)
    reeta = sol.eta * (xmax - sol.x)
    local = np.concatenate((rex, rexsi, reeta))

    rey = c + d * sol.y - sol.mu - sol.lam
    rez = a0 - sol.zet - float(a @ sol.lam)
    relam = gx - a * sol.z - sol.y + sol.s
    remu = sol.mu * sol.y
    rezet = sol.zet * sol.z
    res = sol.lam * sol.s
    shared = np.concatenate((rey, [rez], relam, remu, [rezet], res))

    norm2 = reducer.allreduce(float(local @ local), "sum") + float(shared @ shared)
    resmax = max(reducer.allreduce(float(np.max(np.abs(local))), "max"),
                 float(np.max(np.abs(shared))))
    return float(np.sqrt(norm2)), resmax
