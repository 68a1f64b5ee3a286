"""Logging, IO and parallel-execution helpers."""

from .logging_utils import get_logger
from .io_utils import load_yaml
from .parallel import run_parallel

__all__ = ["get_logger", "load_yaml", "run_parallel"]
