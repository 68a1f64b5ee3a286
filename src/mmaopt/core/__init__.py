"""Core algorithms and data structures of the MMA optimizer."""

from .optimizer import MMA, MMAState
from .subproblem import SubproblemSolver, SubproblemResult
from .asymptotes import AsymptoteManager, Approximation
from .kkt import kkt_residual
from .config import MMAConfig, load_config
from .reduction import (
    Reducer,
    SerialReducer,
    ThreadGroup,
    ThreadGroupReducer,
    MPIReducer,
)

__all__ = [
    'MMA',
    'MMAState',
    'SubproblemSolver',
    'SubproblemResult',
    'AsymptoteManager',
    'Approximation',
    'kkt_residual',
    'MMAConfig',
    'load_config',
    'Reducer',
    'SerialReducer',
    'ThreadGroup',
    'ThreadGroupReducer',
    'MPIReducer',
]
