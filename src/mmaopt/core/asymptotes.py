"""Moving asymptotes and the separable convex approximation of one MMA step.

Given the current point x, the two previous iterates and first-order
information, the manager

1. places (or adapts) the asymptotes ``low < x < upp``,
2. derives the move box ``[alfa, beta]`` inside the asymptotes and bounds,
3. builds the coefficients of

       f~_i(x) = r_i + sum_j [ p_ij / (upp_j - x_j) + q_ij / (x_j - low_j) ]

   for the objective (i = 0: p0, q0) and every constraint (rows of P, Q),
   together with the constraint right-hand sides b.

References: Svanberg (1987), Eqs. (3.6)-(3.14) of Svanberg (2007).
"""

from __future__ import annotations
from dataclasses import dataclass

import numpy as np

from .config import MMAConfig
from .reduction import Reducer, SerialReducer


Array = np.ndarray


@dataclass
class Approximation:
    """Input of the subproblem solver; arrays are views on manager buffers."""
    low: Array
    upp: Array
    alfa: Array
    beta: Array
    p0: Array
    q0: Array
    P: Array  # (m, n)
    Q: Array  # (m, n)
    b: Array  # (m,)


class AsymptoteManager:
    """Owns the asymptotes and the approximation buffers of one controller.

    Buffers are sized once (n local variables, m constraints) and refilled on
    every call.
    """

    def __init__(self, n: int, m: int, config: MMAConfig,
                 reducer: Reducer | None = None) -> None:
        self.n = int(n)
        self.m = int(m)
        self.config = config
        self.reducer = reducer if reducer is not None else SerialReducer()

        self.low = np.zeros(n)
        self.upp = np.zeros(n)
        self._factor = np.ones(n)
        self._alfa = np.zeros(n)
        self._beta = np.zeros(n)
        self._p0 = np.zeros(n)
        self._q0 = np.zeros(n)
        self._P = np.zeros((m, n))
        self._Q = np.zeros((m, n))

    # --------------------------- asymptotes ---------------------------
    def initialize(self, x: Array, xmin: Array, xmax: Array) -> None:
        """Fixed-fraction placement used on the first two iterations."""
        span = xmax - xmin
        np.subtract(x, self.config.asyinit * span, out=self.low)
        np.add(x, self.config.asyinit * span, out=self.upp)

    def adapt(self, x: Array, xo1: Array, xo2: Array, xmin: Array, xmax: Array) -> None:
        """Widen the asymptotes where the iterates move monotonically, narrow
        them where they oscillate, then clamp their distance to x."""
        cfg = self.config
        zzz = (x - xo1) * (xo1 - xo2)
        factor = self._factor
        factor.fill(1.0)
        factor[zzz > 0] = cfg.asyincr
        factor[zzz < 0] = cfg.asydecr

        low = x - factor * (xo1 - self.low)
        upp = x + factor * (self.upp - xo1)

        span = xmax - xmin
        lowmin = x - cfg.asy_max_factor * span
        lowmax = x - cfg.asy_min_factor * span
        uppmin = x + cfg.asy_min_factor * span
        uppmax = x + cfg.asy_max_factor * span
        np.minimum(np.maximum(low, lowmin), lowmax, out=self.low)
        np.maximum(np.minimum(upp, uppmax), uppmin, out=self.upp)

    # ------------------------- approximation --------------------------
    def move_limits(self, x: Array, xmin: Array, xmax: Array):
        cfg = self.config
        span = xmax - xmin
        alfa = np.maximum(self.low + cfg.albefa * (x - self.low), x - cfg.move * span)
        np.maximum(alfa, xmin, out=self._alfa)
        beta = np.minimum(self.upp - cfg.albefa * (self.upp - x), x + cfg.move * span)
        np.minimum(beta, xmax, out=self._beta)
        return self._alfa, self._beta

    def approximate(self, x: Array, dfdx: Array, gx: Array, dgdx: Array,
                    xmin: Array, xmax: Array) -> Approximation:
        """Build p0, q0, P, Q, b at x from the current asymptotes."""
        cfg = self.config
        alfa, beta = self.move_limits(x, xmin, xmax)

        xmami = np.maximum(xmax - xmin, cfg.xmamieps)
        xmamiinv = 1.0 / xmami
        ux1 = self.upp - x
        xl1 = x - self.low
        ux2 = ux1 * ux1
        xl2 = xl1 * xl1

        p0 = np.maximum(dfdx, 0.0)
        q0 = np.maximum(-dfdx, 0.0)
        pq0 = 0.001 * (p0 + q0) + cfg.raa0 * xmamiinv
        np.multiply(p0 + pq0, ux2, out=self._p0)
        np.multiply(q0 + pq0, xl2, out=self._q0)

        if self.m > 0:
            P = np.maximum(dgdx, 0.0)
            Q = np.maximum(-dgdx, 0.0)
            PQ = 0.001 * (P + Q) + cfg.raa0 * xmamiinv[None, :]
            np.multiply(P + PQ, ux2[None, :], out=self._P)
            np.multiply(Q + PQ, xl2[None, :], out=self._Q)
            local = self._P @ (1.0 / ux1) + self._Q @ (1.0 / xl1)
            b = self.reducer.allreduce(local, "sum") - gx
        else:
            b = np.zeros(0)

        return Approximation(
            low=self.low, upp=self.upp, alfa=alfa, beta=beta,
            p0=self._p0, q0=self._q0, P=self._P, Q=self._Q, b=b,
        )
