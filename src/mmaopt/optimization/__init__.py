"""Benchmark problems and the outer optimization loop.

Exports
-------
QuadraticProblem : Weighted least squares with an optional linear budget
CantileverProblem : Svanberg's five-segment cantilever beam
run_optimization : Outer loop driving MMA.update until convergence
"""

from .problems import QuadraticProblem, CantileverProblem
from .driver import OptimizationResult, run_optimization

__all__ = ["QuadraticProblem", "CantileverProblem", "OptimizationResult", "run_optimization"]
