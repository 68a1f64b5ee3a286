"""
mmaopt - Method of Moving Asymptotes
====================================

First-order optimizer for smooth constrained problems

    minimize F(x)  subject to  C_i(x) <= 0,  xmin <= x <= xmax

with a primal-dual interior-point subproblem solver and an optional
distributed mode in which the design vector is split across participants.
"""

__version__ = "1.0.0"

from .core import MMA, MMAConfig, MMAState, SubproblemResult, load_config

__all__ = ["MMA", "MMAConfig", "MMAState", "SubproblemResult", "load_config", "__version__"]
