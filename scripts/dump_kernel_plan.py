#!/usr/bin/env python3
"""
Build a small LayerNorm graph and print its generated OpenCL kernels.

Useful for eyeballing kernel source and launch geometry, or for diffing the
generator output between revisions.

Examples
--------
python scripts/dump_kernel_plan.py --rows 4 --features 48
python scripts/dump_kernel_plan.py --rows 2 --features 8 --eps 1e-6 --summary
"""

import argparse
import os
import sys

# Make repo_root/src importable when running this file directly
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")

if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

import numpy as np

from kerngraph import Graph, LayerNorm, compile_kernels


def build_graph(rows: int, features: int, eps: float, seed: int) -> Graph:
    rng = np.random.default_rng(seed)
    g = Graph()
    x = g.alloc_rand((rows, features), name="x", rng=rng)
    coeff = g.allocate(np.ones(features), name="coeff")
    bias = g.allocate(np.zeros(features), name="bias")
    g.call(LayerNorm(eps=eps), [x, coeff, bias])
    return g


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--rows", type=int, default=4)
    ap.add_argument("--features", type=int, default=16)
    ap.add_argument("--eps", type=float, default=1e-5)
    ap.add_argument("--seed", type=int, default=0, help="RNG seed.")
    ap.add_argument(
        "--summary",
        action="store_true",
        help="Print launch geometry only, without kernel source.",
    )
    args = ap.parse_args()

    graph = build_graph(args.rows, args.features, args.eps, args.seed)
    plan = compile_kernels(graph)

    for launch in plan.forward:
        k = launch.kernel
        print(
            f"[forward] {k.kernel_name} local={k.local_work_size} "
            f"global={k.global_work_size} args={launch.args}"
        )
        if not args.summary:
            print(k.source_code)

    for launch in plan.backward:
        print(
            f"[backward] output={launch.output_id} "
            f"shared={launch.group.shared_buffers} args={launch.args}"
        )
        for k in launch.group:
            print(
                f"  {k.kernel_name} local={k.local_work_size} "
                f"global={k.global_work_size}"
            )
            if not args.summary:
                print(k.source_code)

    print(f"shared buffer elements: {plan.shared_buffer_elements}")


if __name__ == "__main__":
    main()
