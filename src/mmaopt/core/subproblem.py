"""Primal-dual interior-point solver for the MMA subproblem.

Solves

    minimize   sum_j [p0_j/(upp_j - x_j) + q0_j/(x_j - low_j)] + a0*z
               + sum_i (c_i*y_i + 0.5*d_i*y_i^2)
    subject to sum_j [P_ij/(upp_j - x_j) + Q_ij/(x_j - low_j)] - a_i*z - y_i <= b_i
               alfa_j <= x_j <= beta_j,  y_i >= 0,  z >= 0

following Section 5 of Svanberg (2007): a log-barrier parameter ``epsi`` is
driven from 1 down to ``epsimin`` by factors of 10; at each level Newton steps
are taken on the perturbed KKT system until its residual norm drops below
``0.9 * epsi``. The x-block of the Newton matrix is diagonal, so it is
eliminated and only the (m+1) x (m+1) system in (lam, z) is factorized.

The same code runs on one participant or on many. x-sized quantities (x, xsi,
eta, alfa, beta, columns of P and Q) are local; everything of size m and the
scalars z, zet are replicated, and every sum over variables goes through the
reducer.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .asymptotes import Approximation
from .config import MMAConfig
from .reduction import Reducer, SerialReducer
from mmaopt.utils.logging_utils import get_logger


Array = np.ndarray

logger = get_logger(__name__)

# Residual decrease a backtracking step must achieve, relative to the step.
_ARMIJO = 0.01
# Inverse fraction-to-the-boundary factor (steps stop at 1/1.01 of the way).
_BOUNDARY = 1.01
_BARRIER_DECREASE = 0.1
_NEWTON_TOL_FACTOR = 0.9


@dataclass
class SubproblemResult:
    x: Array
    y: Array
    z: float
    lam: Array
    xsi: Array
    eta: Array
    mu: Array
    zet: float
    s: Array
    # diagnostics
    iterations: int
    epsi: float
    residual_norm: float
    residual_max: float
    converged: bool
    degenerate_steps: int


@dataclass
class _Point:
    """Primal, dual and slack variables of the subproblem (or a direction)."""
    x: Array
    y: Array
    z: float
    lam: Array
    xsi: Array
    eta: Array
    mu: Array
    zet: float
    s: Array

    def moved(self, d: "_Point", step: float) -> "_Point":
        return _Point(
            x=self.x + step * d.x,
            y=self.y + step * d.y,
            z=self.z + step * d.z,
            lam=self.lam + step * d.lam,
            xsi=self.xsi + step * d.xsi,
            eta=self.eta + step * d.eta,
            mu=self.mu + step * d.mu,
            zet=self.zet + step * d.zet,
            s=self.s + step * d.s,
        )


class SubproblemSolver:
    """Interior-point solver parameterized by a reduction capability."""

    def __init__(self, n: int, m: int, config: MMAConfig,
                 reducer: Reducer | None = None) -> None:
        self.n = int(n)
        self.m = int(m)
        self.config = config
        self.reducer = reducer if reducer is not None else SerialReducer()
        self.n_global = int(round(self.reducer.allreduce(float(self.n), "sum")))
        self.a0 = float(config.a0)
        self.a, self.c, self.d = config.constraint_coefficients(self.m)

    # ------------------------------------------------------------------
    def initial_point(self, ap: Approximation) -> _Point:
        x = 0.5 * (ap.alfa + ap.beta)
        return _Point(
            x=x,
            y=np.ones(self.m),
            z=1.0,
            lam=np.ones(self.m),
            xsi=np.maximum(1.0 / (x - ap.alfa), 1.0),
            eta=np.maximum(1.0 / (ap.beta - x), 1.0),
            mu=np.maximum(np.ones(self.m), 0.5 * self.c),
            zet=1.0,
            s=np.ones(self.m),
        )

    def _constraint_sums(self, ap: Approximation, ux1: Array, xl1: Array) -> Array:
        if self.m == 0:
            return np.zeros(0)
        local = ap.P @ (1.0 / ux1) + ap.Q @ (1.0 / xl1)
        return self.reducer.allreduce(local, "sum")

    def residual(self, pt: _Point, ap: Approximation, epsi: float) -> Tuple[float, float]:
        """Global 2-norm and max-norm of the barrier-perturbed KKT residual."""
        ux1 = ap.upp - pt.x
        xl1 = pt.x - ap.low
        plam = ap.p0 + ap.P.T @ pt.lam
        qlam = ap.q0 + ap.Q.T @ pt.lam
        gvec = self._constraint_sums(ap, ux1, xl1)
        dpsidx = plam / (ux1 * ux1) - qlam / (xl1 * xl1)

        rex = dpsidx - pt.xsi + pt.eta
        rexsi = pt.xsi * (pt.x - ap.alfa) - epsi
        reeta = pt.eta * (ap.beta - pt.x) - epsi
        local = np.concatenate((rex, rexsi, reeta))

        rey = self.c + self.d * pt.y - pt.mu - pt.lam
        rez = self.a0 - pt.zet - float(self.a @ pt.lam)
        relam = gvec - self.a * pt.z - pt.y + pt.s - ap.b
        remu = pt.mu * pt.y - epsi
        rezet = pt.zet * pt.z - epsi
        res = pt.lam * pt.s - epsi
        shared = np.concatenate((rey, [rez], relam, remu, [rezet], res))

        norm2 = self.reducer.allreduce(float(local @ local), "sum") + float(shared @ shared)
        local_max = float(np.max(np.abs(local))) if local.size else 0.0
        resmax = max(self.reducer.allreduce(local_max, "max"), float(np.max(np.abs(shared))))
        return float(np.sqrt(norm2)), resmax

    def newton_direction(self, pt: _Point, ap: Approximation, epsi: float) -> Tuple[_Point, bool]:
        """Newton direction of the perturbed KKT system.

        Returns the direction and whether the reduced system was degenerate
        (in which case the (lam, z) components are zero).
        """
        cfg = self.config
        m = self.m
        x, y, z, lam = pt.x, pt.y, pt.z, pt.lam
        degenerate = False

        ux1 = ap.upp - x
        xl1 = x - ap.low
        ux2 = ux1 * ux1
        xl2 = xl1 * xl1
        xa = x - ap.alfa
        bx = ap.beta - x

        plam = ap.p0 + ap.P.T @ lam
        qlam = ap.q0 + ap.Q.T @ lam
        gvec = self._constraint_sums(ap, ux1, xl1)
        GG = ap.P / ux2 - ap.Q / xl2
        dpsidx = plam / ux2 - qlam / xl2

        delx = dpsidx - epsi / xa + epsi / bx
        dely = self.c + self.d * y - lam - epsi / y
        delz = self.a0 - float(self.a @ lam) - epsi / z
        dellam = gvec - self.a * z - y - ap.b + epsi / lam

        diagx = 2.0 * (plam / (ux2 * ux1) + qlam / (xl2 * xl1)) + pt.xsi / xa + pt.eta / bx
        small = np.abs(diagx) < cfg.machine_epsilon
        if np.any(small):
            diagx = np.where(small, cfg.epsimin, diagx)
            degenerate = True
        diagy = self.d + pt.mu / y
        diaglamyi = pt.s / lam + 1.0 / diagy

        AA = np.empty((m + 1, m + 1))
        bb = np.empty(m + 1)
        if m > 0:
            GGdiag = GG / diagx
            Alam = self.reducer.allreduce(GGdiag @ GG.T, "sum")
            Alam[np.diag_indices(m)] += diaglamyi
            AA[:m, :m] = Alam
            AA[:m, m] = self.a
            AA[m, :m] = self.a
            bb[:m] = dellam + dely / diagy - self.reducer.allreduce(GGdiag @ delx, "sum")
        AA[m, m] = -pt.zet / z
        bb[m] = delz

        try:
            solut = np.linalg.solve(AA, bb)
        except np.linalg.LinAlgError:
            solut = None
        if solut is None or not np.all(np.isfinite(solut)):
            solut = np.zeros(m + 1)
            degenerate = True
        dlam = solut[:m]
        dz = float(solut[m])

        dx = -delx / diagx - (GG.T @ dlam) / diagx
        dy = -dely / diagy + dlam / diagy
        direction = _Point(
            x=dx,
            y=dy,
            z=dz,
            lam=dlam,
            xsi=-pt.xsi + epsi / xa - (pt.xsi * dx) / xa,
            eta=-pt.eta + epsi / bx + (pt.eta * dx) / bx,
            mu=-pt.mu + epsi / y - (pt.mu * dy) / y,
            zet=-pt.zet + epsi / z - pt.zet * dz / z,
            s=-pt.s + epsi / lam - (pt.s * dlam) / lam,
        )
        return direction, degenerate

    def max_step(self, pt: _Point, d: _Point, ap: Approximation) -> float:
        """Largest step (<= 1) keeping positive variables positive and x inside
        [alfa, beta], agreed on by all participants."""
        local_xx = np.concatenate((pt.xsi, pt.eta))
        local_dxx = np.concatenate((d.xsi, d.eta))
        shared_xx = np.concatenate((pt.y, [pt.z], pt.lam, pt.mu, [pt.zet], pt.s))
        shared_dxx = np.concatenate((d.y, [d.z], d.lam, d.mu, [d.zet], d.s))
        stepxx = -_BOUNDARY * np.concatenate((local_dxx / local_xx, shared_dxx / shared_xx))
        stepalfa = -_BOUNDARY * d.x / (pt.x - ap.alfa)
        stepbeta = _BOUNDARY * d.x / (ap.beta - pt.x)

        caps = np.array([np.max(stepxx), np.max(stepalfa), np.max(stepbeta)])
        stmxx, stmalfa, stmbeta = self.reducer.allreduce(caps, "max")
        stminv = max(stmxx, stmalfa, stmbeta, 1.0)
        return 1.0 / stminv

    # ------------------------------------------------------------------
    def solve(self, ap: Approximation) -> SubproblemResult:
        cfg = self.config
        pt = self.initial_point(ap)
        epsi = 1.0
        last_epsi = epsi
        iterations = 0
        degenerate_steps = 0
        converged = True
        residunorm = residumax = float("inf")

        while epsi > cfg.epsimin:
            last_epsi = epsi
            residunorm, residumax = self.residual(pt, ap, epsi)
            ittt = 0
            while residunorm > _NEWTON_TOL_FACTOR * epsi and ittt < cfg.max_newton_iter:
                ittt += 1
                iterations += 1

                direction, degenerate = self.newton_direction(pt, ap, epsi)
                degenerate_steps += int(degenerate)
                steg = self.max_step(pt, direction, ap)

                for _ in range(cfg.max_line_search):
                    trial = pt.moved(direction, steg)
                    resinew, resimax = self.residual(trial, ap, epsi)
                    if resinew <= (1.0 - _ARMIJO * steg) * residunorm:
                        break
                    steg *= 0.5
                pt = trial
                residunorm, residumax = resinew, resimax

            converged = residunorm <= _NEWTON_TOL_FACTOR * epsi
            epsi *= _BARRIER_DECREASE

        if cfg.print_level >= 1:
            if degenerate_steps:
                logger.warning("MMA subproblem: %d degenerate Newton step(s) fell back to "
                               "the diagonal direction", degenerate_steps)
            if not converged:
                logger.warning("MMA subproblem stopped at epsi=%.1e with residual %.3e "
                               "(Newton budget exhausted)", last_epsi, residunorm)

        return SubproblemResult(
            x=pt.x, y=pt.y, z=float(pt.z), lam=pt.lam, xsi=pt.xsi, eta=pt.eta,
            mu=pt.mu, zet=float(pt.zet), s=pt.s,
            iterations=iterations, epsi=last_epsi,
            residual_norm=residunorm, residual_max=residumax,
            converged=bool(converged), degenerate_steps=degenerate_steps,
        )
