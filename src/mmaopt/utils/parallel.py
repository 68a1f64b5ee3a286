"""
Run one callable per participant and collect the results in rank order.
"""

import threading
from typing import Iterable, Callable, Any, List, Optional


def run_parallel(tasks: Iterable, n_workers: int, func: Callable[[Any], Any],
                 on_error: Optional[Callable[[], None]] = None) -> List[Any]:
    """
    Run func over tasks with n_workers threads.
    - If n_workers==1, run sequentially.
    - If n_workers>1, every task gets its own thread at the same time, so tasks
      may block on each other (e.g. on a ThreadGroup barrier).
    on_error is called as soon as a task raises, so lockstep peers can be
    released instead of waiting for their timeout. The first exception raised
    (in time) is re-raised in the caller once all tasks have finished.
    """
    tasks = list(tasks)
    if n_workers <= 1:
        return [func(t) for t in tasks]
    if n_workers < len(tasks):
        raise ValueError(
            f"n_workers={n_workers} cannot run {len(tasks)} lockstep tasks concurrently"
        )

    failures: List[BaseException] = []
    lock = threading.Lock()

    def guarded(task):
        try:
            return func(task)
        except BaseException as exc:
            with lock:
                failures.append(exc)
            if on_error is not None:
                on_error()
            raise

    from concurrent.futures import ThreadPoolExecutor, wait
    with ThreadPoolExecutor(max_workers=n_workers) as pool:
        futures = [pool.submit(guarded, t) for t in tasks]
        wait(futures)
    if failures:
        raise failures[0]
    return [f.result() for f in futures]
