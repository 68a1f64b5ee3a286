import time

import numpy as np
import pytest

from mmaopt.core.reduction import SerialReducer, ThreadGroup, MPIReducer
from mmaopt.utils.parallel import run_parallel


def test_serial_reducer_is_identity():
    red = SerialReducer()
    assert red.allreduce(3.5, "sum") == 3.5
    assert isinstance(red.allreduce(np.float64(2.0), "max"), float)
    arr = np.array([1.0, -2.0])
    out = red.allreduce(arr, "min")
    assert np.array_equal(out, arr)
    assert out is not arr
    assert not red.is_distributed


def test_unknown_op_is_rejected():
    with pytest.raises(ValueError):
        SerialReducer().allreduce(1.0, "prod")
    with pytest.raises(ValueError):
        ThreadGroup(1).reducer(0).allreduce(1.0, "mean")


def test_thread_group_reduces_scalars_and_arrays():
    group = ThreadGroup(3, timeout=10.0)

    def participant(rank):
        red = group.reducer(rank)
        total = red.allreduce(float(rank + 1), "sum")
        largest = red.allreduce(float(rank + 1), "max")
        smallest = red.allreduce(float(rank + 1), "min")
        vec = red.allreduce(np.array([rank, 10.0 * rank]), "sum")
        return total, largest, smallest, vec

    results = run_parallel(range(3), n_workers=3, func=participant)
    for total, largest, smallest, vec in results:
        assert total == 6.0
        assert largest == 3.0
        assert smallest == 1.0
        assert np.array_equal(vec, [3.0, 30.0])


def test_thread_group_results_are_identical_on_every_rank():
    group = ThreadGroup(4, timeout=10.0)
    values = [0.1, 0.2, 0.3, 1e-17]

    def participant(rank):
        return group.reducer(rank).allreduce(values[rank], "sum")

    results = group.run(participant)
    assert len(set(results)) == 1


def test_thread_group_rank_must_be_in_range():
    group = ThreadGroup(2)
    with pytest.raises(ValueError):
        group.reducer(2)
    with pytest.raises(ValueError):
        ThreadGroup(0)


def test_run_parallel_sequential_vs_threads():
    data = list(range(5))

    def square(x):
        return x * x

    sequential = run_parallel(data, n_workers=1, func=square)
    threaded = run_parallel(data, n_workers=5, func=square)
    assert sequential == [x * x for x in data]
    assert threaded == sequential


def test_run_parallel_needs_a_thread_per_lockstep_task():
    with pytest.raises(ValueError):
        run_parallel(range(4), n_workers=2, func=lambda x: x)


def test_mpi_reducer_on_self_communicator():
    MPI = pytest.importorskip("mpi4py.MPI")
    red = MPIReducer(MPI.COMM_SELF)
    assert red.size == 1 and red.rank == 0
    assert red.allreduce(2.5, "sum") == 2.5
    assert np.array_equal(red.allreduce(np.array([1.0, 2.0]), "max"), [1.0, 2.0])


def test_failing_participant_releases_its_peers_promptly():
    group = ThreadGroup(3, timeout=30.0)

    def participant(rank):
        red = group.reducer(rank)
        red.allreduce(1.0, "sum")
        if rank == 1:
            raise ValueError("x lies outside [xmin, xmax]")
        return red.allreduce(2.0, "sum")

    start = time.monotonic()
    with pytest.raises(ValueError, match="outside"):
        group.run(participant)
    assert time.monotonic() - start < 5.0


def test_run_parallel_reports_the_first_error_and_calls_hook():
    calls = []

    def task(i):
        if i == 2:
            raise RuntimeError("boom")
        return i

    with pytest.raises(RuntimeError, match="boom"):
        run_parallel(range(3), n_workers=3, func=task, on_error=lambda: calls.append(1))
    assert calls == [1]
