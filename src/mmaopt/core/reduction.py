"""Collective reductions over the participants that share one design vector.

The optimizer never talks to a process group directly; it receives a reducer
and calls ``allreduce(value, op)`` at fixed synchronization points. Values are
scalars or small dense arrays (length-m vectors, m x m matrices) and every
participant receives the same aggregated value.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, List, Optional, Union

import numpy as np


Value = Union[float, np.ndarray]

REDUCE_OPS = ("sum", "max", "min")


def _check_op(op: str) -> None:
    if op not in REDUCE_OPS:
        raise ValueError(f"Unknown reduction op {op!r}; expected one of {REDUCE_OPS}")


def _as_result(value: np.ndarray, scalar: bool) -> Value:
    return float(value) if scalar else value


class Reducer:
    """Interface of the reduction capability injected into the optimizer."""

    rank: int = 0
    size: int = 1

    def allreduce(self, value: Value, op: str = "sum") -> Value:
        raise NotImplementedError

    @property
    def is_distributed(self) -> bool:
        return self.size > 1


class SerialReducer(Reducer):
    """Single participant: every reduction is the identity."""

    def allreduce(self, value: Value, op: str = "sum") -> Value:
        _check_op(op)
        if np.ndim(value) == 0:
            return float(value)
        return np.array(value, dtype=float)


class ThreadGroup:
    """Rendezvous point for participants running in threads of one process.

    Each participant deposits its local value, waits for the others, and then
    combines all slots in rank order, so the result is bit-identical on every
    participant. A second barrier keeps a fast participant from overwriting
    its slot before the slow ones have read it.
    """

    def __init__(self, size: int, timeout: Optional[float] = 60.0) -> None:
        if size < 1:
            raise ValueError("ThreadGroup size must be at least 1")
        self.size = int(size)
        self.timeout = timeout
        self._barrier = threading.Barrier(self.size, timeout=timeout)
        self._slots: List[Optional[np.ndarray]] = [None] * self.size

    def reducer(self, rank: int) -> "ThreadGroupReducer":
        if not 0 <= rank < self.size:
            raise ValueError(f"rank {rank} outside group of size {self.size}")
        return ThreadGroupReducer(self, rank)

    def abort(self) -> None:
        """Release every waiting participant with BrokenBarrierError.

        The group cannot be used for further reductions afterwards.
        """
        self._barrier.abort()

    def run(self, func: Callable[[int], Any]) -> List[Any]:
        """Run ``func(rank)`` for every rank in its own thread.

        A participant that raises aborts the group so the others fail at their
        next reduction; the first error is re-raised here.
        """
        from mmaopt.utils.parallel import run_parallel

        return run_parallel(range(self.size), n_workers=self.size, func=func,
                            on_error=self.abort)

    def _exchange(self, rank: int, value: np.ndarray, op: str) -> np.ndarray:
        self._slots[rank] = value
        self._barrier.wait()
        result = self._slots[0].copy()
        for other in self._slots[1:]:
            if op == "sum":
                result = result + other
            elif op == "max":
                result = np.maximum(result, other)
            else:
                result = np.minimum(result, other)
        self._barrier.wait()
        return result


class ThreadGroupReducer(Reducer):
    """Reducer handle of one rank inside a ThreadGroup."""

    def __init__(self, group: ThreadGroup, rank: int) -> None:
        self.group = group
        self.rank = int(rank)
        self.size = group.size

    def allreduce(self, value: Value, op: str = "sum") -> Value:
        _check_op(op)
        scalar = np.ndim(value) == 0
        local = np.array(value, dtype=float)
        if self.size == 1:
            return _as_result(local, scalar)
        return _as_result(self.group._exchange(self.rank, local, op), scalar)


class MPIReducer(Reducer):
    """Reducer backed by an mpi4py communicator."""

    def __init__(self, comm) -> None:
        from mpi4py import MPI

        self.comm = comm
        self.rank = comm.Get_rank()
        self.size = comm.Get_size()
        self._ops = {"sum": MPI.SUM, "max": MPI.MAX, "min": MPI.MIN}

    def allreduce(self, value: Value, op: str = "sum") -> Value:
        _check_op(op)
        if np.ndim(value) == 0:
            return float(self.comm.allreduce(float(value), op=self._ops[op]))
        sendbuf = np.ascontiguousarray(value, dtype=float)
        recvbuf = np.empty_like(sendbuf)
        self.comm.Allreduce(sendbuf, recvbuf, op=self._ops[op])
        return recvbuf
