"""
Cantilever Example: Svanberg's five-segment beam with MMA
=========================================================

Workflow:
1. Load the MMA constants from configs/mma.yaml
2. Build the cantilever problem (n=5 side lengths, one displacement limit)
3. Drive MMA.update until the KKT residual is small
4. Compare the result with the known optimum

Run after ``pip install -e .`` from the repository root:

    python examples/cantilever_example.py
"""

from pathlib import Path

import numpy as np

from mmaopt import MMA, load_config
from mmaopt.optimization import CantileverProblem, run_optimization


CONFIG_PATH = Path(__file__).parent.parent / "configs" / "mma.yaml"


def main():
    print("\n" + "=" * 70)
    print("MMA - Cantilever Example")
    print("=" * 70)

    config = load_config(CONFIG_PATH)
    print(f"\nConfiguration: move={config.move}, asyinit={config.asyinit}, "
          f"epsimin={config.epsimin:g}")

    problem = CantileverProblem()
    mma = MMA(problem.n, problem.m, problem.x0.copy(), config=config)

    def report(k, info):
        print(f"  it {k:3d}  f0={info['f0']:.5f}  g={info['gx'][0]:+.2e}  "
              f"kkt={info['kkt']:.2e}")

    result = run_optimization(problem, mma, max_iter=100, kkt_tol=1e-5, callback=report)

    print("\n" + "=" * 70)
    print(f"Status: {result.status} after {result.iterations} iterations")
    print(f"x      = {np.array2string(result.x, precision=3)}")
    print(f"x_opt  = {np.array2string(problem.x_opt, precision=3)}")
    print(f"f0     = {result.f0:.4f} (known optimum {problem.f_opt:.3f})")
    print("=" * 70)


if __name__ == "__main__":
    main()
