"""MMA controller: persistent optimizer state and the per-iteration update.

A single-class front end to the Method of Moving Asymptotes following
Svanberg's "MMA and GCMMA - two methods for nonlinear optimization" (2007).

Problem form:

    minimize   F(x)
    subject to C_i(x) <= 0,  i = 1..m
               xmin <= x <= xmax

The caller evaluates values and gradients; ``MMA.update`` advances the design
by exactly one outer iteration and overwrites ``x`` in place.

Usage summary::

    mma = MMA(n, m, x)
    for k in range(max_iter):
        dfdx, gx, dgdx = evaluate(x)
        mma.update(dfdx, gx, dgdx, xmin, xmax, x)
        if mma.kkt_norm < tol:
            break

Distributed runs pass an mpi4py communicator (``MMA.distributed``) or any
reducer; each participant then holds a contiguous slice of x, the matching
columns of ``dgdx`` and the full vector ``gx``.
"""

from __future__ import annotations
import dataclasses
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .asymptotes import AsymptoteManager
from .config import MMAConfig, PRINT_LEVELS
from .kkt import kkt_residual
from .reduction import MPIReducer, Reducer, SerialReducer
from .subproblem import SubproblemResult, SubproblemSolver
from mmaopt.utils.logging_utils import get_logger


Array = np.ndarray

logger = get_logger(__name__)


@dataclass
class MMAState:
    """Checkpointable optimizer state of one participant.

    Attributes:
      iteration: number of completed updates.
      low, upp: current asymptotes.
      xo1, xo2: iterates one and two updates ago.
      kkt_norm: KKT residual norm of the last update.
      initialized: whether the asymptotes hold values from a previous update.
    """

    iteration: int
    low: Array
    upp: Array
    xo1: Array
    xo2: Array
    kkt_norm: float
    initialized: bool

    def to_array(self) -> Array:
        """Flatten into a rank-1 array: [low, upp, xo1, xo2, iteration, kkt, initialized]."""
        return np.concatenate([
            self.low, self.upp, self.xo1, self.xo2,
            [float(self.iteration), self.kkt_norm, float(self.initialized)],
        ])

    @classmethod
    def from_array(cls, state_array: Array, n: int) -> "MMAState":
        state_array = np.asarray(state_array, dtype=float)
        if state_array.shape != (4 * n + 3,):
            raise ValueError(
                f"state array of shape {state_array.shape} does not match n={n} "
                f"(expected ({4 * n + 3},))")
        return cls(
            iteration=int(state_array[4 * n]),
            low=state_array[0:n].copy(),
            upp=state_array[n:2 * n].copy(),
            xo1=state_array[2 * n:3 * n].copy(),
            xo2=state_array[3 * n:4 * n].copy(),
            kkt_norm=float(state_array[4 * n + 1]),
            initialized=bool(state_array[4 * n + 2]),
        )


class MMA:
    """
    Method of Moving Asymptotes with a primal-dual interior-point subproblem solver.

    Parameters
    ----------
    n : int
        Number of (local) design variables, > 0.
    m : int
        Number of constraints, >= 0 (0 selects the unconstrained path).
    x : (n,) array_like
        Initial design; seeds the iterate history.
    iteration : int, default 0
        Starting iteration number (restart support).
    config : MMAConfig, optional
        Algorithm constants; copied so later edits to the caller's object have
        no effect.
    reducer : Reducer, optional
        Reduction capability over the participants; defaults to serial.
    comm : mpi4py communicator, optional
        Shortcut for ``reducer=MPIReducer(comm)``.

    Notes
    -----
    The asymptotes use the fixed ``asyinit`` placement on iterations 0 and 1
    and adapt from iteration 2 on. An instance is not reentrant; independent
    optimizations need independent instances.
    """

    def __init__(
        self,
        n: int,
        m: int,
        x: Array,
        iteration: int = 0,
        *,
        config: Optional[MMAConfig] = None,
        reducer: Optional[Reducer] = None,
        comm=None,
    ) -> None:
        if int(n) <= 0:
            raise ValueError(f"MMA needs at least one design variable, got n={n}")
        if int(m) < 0:
            raise ValueError(f"Number of constraints must be >= 0, got m={m}")
        if int(iteration) < 0:
            raise ValueError(f"Iteration number must be >= 0, got {iteration}")
        if reducer is not None and comm is not None:
            raise ValueError("Pass either a reducer or a communicator, not both")
        x0 = np.asarray(x, dtype=float)
        if x0.shape != (int(n),):
            raise ValueError(f"x has shape {x0.shape}, expected ({int(n)},)")

        self.n = int(n)
        self.m = int(m)
        self.config = dataclasses.replace(config) if config is not None else MMAConfig()
        if comm is not None:
            reducer = MPIReducer(comm)
        self.reducer = reducer if reducer is not None else SerialReducer()

        self.iter = int(iteration)
        self.xo1 = x0.copy()
        self.xo2 = x0.copy()
        self.kkt_norm = float("inf")
        self.converged = False
        self.last_result: Optional[SubproblemResult] = None
        self._initialized = False

        self.asymptotes = AsymptoteManager(self.n, self.m, self.config, self.reducer)
        self.subproblem = SubproblemSolver(self.n, self.m, self.config, self.reducer)
        self.a, self.c, self.d = self.config.constraint_coefficients(self.m)

    @classmethod
    def distributed(cls, comm, n: int, m: int, x: Array, iteration: int = 0, **kwargs) -> "MMA":
        """Construct a participant of a distributed run over an mpi4py communicator."""
        return cls(n, m, x, iteration, comm=comm, **kwargs)

    @classmethod
    def unconstrained(cls, n: int, x: Array, iteration: int = 0, **kwargs) -> "MMA":
        return cls(n, 0, x, iteration, **kwargs)

    # --------------------------- Public API ---------------------------
    @property
    def n_global(self) -> int:
        return self.subproblem.n_global

    @property
    def low(self) -> Array:
        return self.asymptotes.low

    @property
    def upp(self) -> Array:
        return self.asymptotes.upp

    @property
    def iteration(self) -> int:
        return self.iter

    def get_iteration(self) -> int:
        return self.iter

    def set_iteration(self, iteration: int) -> None:
        if int(iteration) < 0:
            raise ValueError(f"Iteration number must be >= 0, got {iteration}")
        self.iter = int(iteration)

    def set_print_level(self, level: int) -> None:
        if level not in PRINT_LEVELS:
            raise ValueError(f"print level must be one of {PRINT_LEVELS}, got {level}")
        self.config.print_level = level

    def get_state(self) -> MMAState:
        return MMAState(
            iteration=self.iter,
            low=self.asymptotes.low.copy(),
            upp=self.asymptotes.upp.copy(),
            xo1=self.xo1.copy(),
            xo2=self.xo2.copy(),
            kkt_norm=self.kkt_norm,
            initialized=self._initialized,
        )

    def set_state(self, state: MMAState) -> None:
        for name in ("low", "upp", "xo1", "xo2"):
            if np.shape(getattr(state, name)) != (self.n,):
                raise ValueError(f"state.{name} does not have length n={self.n}")
        self.iter = int(state.iteration)
        self.asymptotes.low[:] = state.low
        self.asymptotes.upp[:] = state.upp
        self.xo1[:] = state.xo1
        self.xo2[:] = state.xo2
        self.kkt_norm = float(state.kkt_norm)
        self._initialized = bool(state.initialized)

    def update(self, dfdx: Array, gx: Array, dgdx: Array,
               xmin: Array, xmax: Array, x: Array) -> Array:
        """Advance the optimization by one MMA iteration.

        Parameters
        ----------
        dfdx : (n,) array_like
            Objective gradient at x.
        gx : (m,) array_like
            Constraint values at x (the full vector on every participant).
        dgdx : (m, n) array_like
            Constraint gradients, one row per constraint (a flat m*n array
            in row-major order is accepted).
        xmin, xmax : (n,) array_like
            Bounds, xmin < xmax.
        x : (n,) float ndarray or array_like
            Current design. An ndarray is overwritten with the new design and
            must have a floating dtype; other sequences are left untouched.

        Returns
        -------
        x_new : (n,) ndarray
            The new design, inside [xmin, xmax].
        """
        dfdx, gx, dgdx, xmin, xmax, xval = self._check_inputs(dfdx, gx, dgdx, xmin, xmax, x)

        if self.iter < 2 or not self._initialized:
            self.asymptotes.initialize(xval, xmin, xmax)
        else:
            self.asymptotes.adapt(xval, self.xo1, self.xo2, xmin, xmax)
        self._initialized = True

        approx = self.asymptotes.approximate(xval, dfdx, gx, dgdx, xmin, xmax)
        sol = self.subproblem.solve(approx)
        xnew = np.clip(sol.x, xmin, xmax)

        self.kkt_norm, _ = kkt_residual(sol, dfdx, gx, dgdx, xmin, xmax,
                                        self.config.a0, self.a, self.c, self.d,
                                        self.reducer)
        self.converged = sol.converged
        self.last_result = sol

        self.xo2[:] = self.xo1
        self.xo1[:] = xval
        self.iter += 1

        if self.config.print_level >= 2:
            logger.info("[MMA] it=%4d kkt=%.3e newton=%d epsi=%.1e residual=%.3e",
                        self.iter, self.kkt_norm, sol.iterations, sol.epsi, sol.residual_norm)

        if isinstance(x, np.ndarray):
            x[...] = xnew
            return x
        return xnew

    def update_unconstrained(self, dfdx: Array, xmin: Array, xmax: Array, x: Array) -> Array:
        """Unconstrained update (m == 0)."""
        if self.m != 0:
            raise ValueError(f"update_unconstrained requires m=0, this optimizer has m={self.m}")
        return self.update(dfdx, np.zeros(0), np.zeros((0, self.n)), xmin, xmax, x)

    # ----------------------- Input validation -----------------------
    def _check_inputs(self, dfdx, gx, dgdx, xmin, xmax, x):
        n, m = self.n, self.m
        if isinstance(x, np.ndarray) and not np.issubdtype(x.dtype, np.floating):
            raise ValueError(f"x is updated in place and must be a float array, got dtype {x.dtype}")
        dfdx = np.asarray(dfdx, dtype=float)
        gx = np.asarray(gx, dtype=float).reshape(-1)
        dgdx = np.asarray(dgdx, dtype=float)
        xmin = np.asarray(xmin, dtype=float)
        xmax = np.asarray(xmax, dtype=float)
        xval = np.asarray(x, dtype=float)

        for name, arr in (("dfdx", dfdx), ("xmin", xmin), ("xmax", xmax), ("x", xval)):
            if arr.shape != (n,):
                raise ValueError(f"{name} has shape {arr.shape}, expected ({n},)")
        if gx.shape != (m,):
            raise ValueError(f"gx has shape {gx.shape}, expected ({m},)")
        if dgdx.size != m * n:
            raise ValueError(f"dgdx has {dgdx.size} entries, expected m*n={m * n}")
        dgdx = dgdx.reshape(m, n)
        if not np.all(xmin < xmax):
            raise ValueError("xmin must be strictly smaller than xmax")
        if np.any(xval < xmin) or np.any(xval > xmax):
            raise ValueError("x lies outside [xmin, xmax]")
        return dfdx, gx, dgdx, xmin, xmax, xval
