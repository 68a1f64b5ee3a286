"""Benchmark problems exposing the first-order callbacks MMA consumes.

Each problem provides ``evaluate(x) -> (f0, dfdx, gx, dgdx)`` together with
its bounds and starting point, so an outer loop can drive ``MMA.update``
without knowing where the numbers come from.
"""

import numpy as np
from typing import Optional, Tuple


Evaluation = Tuple[float, np.ndarray, np.ndarray, np.ndarray]


class QuadraticProblem:
    """Separable weighted least squares with an optional linear budget.

    Objective:  f0(x) = sum_j w_j (x_j - t_j)^2
    Constraint: g(x) = sum_j x_j - budget <= 0   (only when ``budget`` is set)
    """
    def __init__(self, target, xmin, xmax, x0, weights=None,
                 budget: Optional[float] = None) -> None:
        self.target = np.asarray(target, dtype=float)
        self.xmin = np.asarray(xmin, dtype=float)
        self.xmax = np.asarray(xmax, dtype=float)
        self.x0 = np.asarray(x0, dtype=float)
        self.weights = np.ones_like(self.target) if weights is None else np.asarray(weights, dtype=float)
        self.budget = budget

    @property
    def n(self) -> int:
        return self.target.size

    @property
    def m(self) -> int:
        return 0 if self.budget is None else 1

    def evaluate(self, x: np.ndarray) -> Evaluation:
        r = x - self.target
        f0 = float(np.sum(self.weights * r * r))
        dfdx = 2.0 * self.weights * r
        if self.budget is None:
            return f0, dfdx, np.zeros(0), np.zeros((0, self.n))
        gx = np.array([float(np.sum(x)) - self.budget])
        dgdx = np.ones((1, self.n))
        return f0, dfdx, gx, dgdx


class CantileverProblem:
    """Svanberg's five-segment cantilever beam (Svanberg 1987, Sec. 5.1).

    Minimize the weight C1 * sum(x) of a beam built from five hollow square
    segments with side lengths x_j, subject to a tip-displacement limit

        61/x1^3 + 37/x2^3 + 19/x3^3 + 7/x4^3 + 1/x5^3 - C2 <= 0.

    Known optimum: x ~ (6.016, 5.309, 4.494, 3.502, 2.153), f0 ~ 1.340.
    """
    C1 = 0.0624
    C2 = 1.0
    coefficients = np.array([61.0, 37.0, 19.0, 7.0, 1.0])
    x_opt = np.array([6.016, 5.309, 4.494, 3.502, 2.153])
    f_opt = 1.340
    n = 5
    m = 1

    def __init__(self, x0: float = 5.0, lower: float = 1.0, upper: float = 10.0) -> None:
        self.x0 = np.full(5, float(x0))
        self.xmin = np.full(5, float(lower))
        self.xmax = np.full(5, float(upper))

    def evaluate(self, x: np.ndarray) -> Evaluation:
        f0 = self.C1 * float(np.sum(x))
        dfdx = np.full(self.n, self.C1)
        gx = np.array([float(np.sum(self.coefficients / x**3)) - self.C2])
        dgdx = (-3.0 * self.coefficients / x**4).reshape(1, self.n)
        return f0, dfdx, gx, dgdx
