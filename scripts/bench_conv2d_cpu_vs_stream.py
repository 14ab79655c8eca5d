"""
scripts/bench_conv2d_cpu_vs_stream.py

CPU vs stream Conv2D microbenchmark (NOT a unit test) for gradscope.

Benchmarks, per case:
- forward: F.conv2d(x, w)
- forward + backward: engine.grads(lambda x, w: F.conv2d(x, w).sum())

Timing policy
-------------
- Inputs are uploaded once per case; uploads are not timed.
- Every timed call ends with a blocking read of its result, so stream timings
  include the wait for the worker thread.
- Each timed call runs inside an engine scope, so intermediates are released
  between repeats.
- Uses warmup iterations before timed repeats.

Usage
-----
python scripts/bench_conv2d_cpu_vs_stream.py --presets --sanity
python scripts/bench_conv2d_cpu_vs_stream.py --N 8 --Cin 16 --Cout 32 --H 32 --W 32 --K 3 --stride 1 --padding same
"""

from __future__ import annotations

import argparse
import os
import statistics
import sys
import time
from dataclasses import dataclass
from typing import Callable, Union

import numpy as np

# -------------------------
# Make repo_root/src importable
# -------------------------
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from gradscope import Engine, EngineConfig, functional as F


def _fmt_seconds(x: float) -> str:
    if x < 1e-6:
        return f"{x*1e9:.2f} ns"
    if x < 1e-3:
        return f"{x*1e6:.2f} µs"
    if x < 1:
        return f"{x*1e3:.2f} ms"
    return f"{x:.3f} s"


def _speedup(cpu_s: float, stream_s: float) -> float:
    return (cpu_s / stream_s) if stream_s > 0 else float("inf")


def _time_one(fn: Callable[[], None], *, warmup: int, repeats: int) -> list[float]:
    for _ in range(warmup):
        fn()
    ts: list[float] = []
    for _ in range(repeats):
        t0 = time.perf_counter()
        fn()
        t1 = time.perf_counter()
        ts.append(t1 - t0)
    return ts


@dataclass(frozen=True)
class Case:
    N: int
    Cin: int
    Cout: int
    H: int
    W: int
    K: int
    stride: int
    padding: Union[int, str]

    def label(self) -> str:
        return (
            f"N={self.N} Cin={self.Cin} Cout={self.Cout} H={self.H} W={self.W} "
            f"K={self.K} s={self.stride} p={self.padding}"
        )


PRESETS = [
    Case(1, 3, 8, 32, 32, 3, 1, "same"),
    Case(8, 16, 32, 32, 32, 3, 1, "same"),
    Case(8, 32, 64, 16, 16, 3, 2, 1),
    Case(4, 64, 64, 28, 28, 5, 1, "valid"),
]


def _run_case(case: Case, backend: str, *, warmup: int, repeats: int, seed: int):
    rng = np.random.default_rng(seed)
    x_np = rng.standard_normal((case.N, case.Cin, case.H, case.W)).astype(np.float32)
    w_np = rng.standard_normal((case.Cout, case.Cin, case.K, case.K)).astype(np.float32)

    with Engine(backend, config=EngineConfig(backend=backend)) as engine:
        x = engine.tensor(x_np)
        w = engine.tensor(w_np)
        kwargs = dict(stride=case.stride, padding=case.padding)
        dconv = engine.grads(lambda a, b: F.conv2d(a, b, **kwargs).sum())

        def fwd() -> None:
            engine.scope(lambda: F.conv2d(x, w, **kwargs).to_numpy())

        def fwd_bwd() -> None:
            engine.scope(lambda: [g.to_numpy() for g in dconv([x, w])])

        t_fwd = _time_one(fwd, warmup=warmup, repeats=repeats)
        t_bwd = _time_one(fwd_bwd, warmup=warmup, repeats=repeats)
        y = F.conv2d(x, w, **kwargs).to_numpy()
    return statistics.median(t_fwd), statistics.median(t_bwd), y


def main() -> None:
    p = argparse.ArgumentParser(description=__doc__.split("\n\n")[1])
    p.add_argument("--presets", action="store_true", help="run the preset cases")
    p.add_argument("--N", type=int, default=8)
    p.add_argument("--Cin", type=int, default=16)
    p.add_argument("--Cout", type=int, default=32)
    p.add_argument("--H", type=int, default=32)
    p.add_argument("--W", type=int, default=32)
    p.add_argument("--K", type=int, default=3)
    p.add_argument("--stride", type=int, default=1)
    p.add_argument("--padding", default="same")
    p.add_argument("--warmup", type=int, default=2)
    p.add_argument("--repeats", type=int, default=10)
    p.add_argument("--seed", type=int, default=0)
    p.add_argument("--sanity", action="store_true", help="compare CPU and stream outputs")
    args = p.parse_args()

    if args.presets:
        cases = PRESETS
    else:
        padding = int(args.padding) if args.padding.isdigit() else args.padding
        cases = [
            Case(args.N, args.Cin, args.Cout, args.H, args.W, args.K, args.stride, padding)
        ]

    print(f"{'case':<60} {'cpu fwd':>10} {'stream fwd':>11} {'x':>6} {'cpu f+b':>10} {'stream f+b':>11} {'x':>6}")
    for case in cases:
        cpu_f, cpu_b, y_cpu = _run_case(
            case, "cpu", warmup=args.warmup, repeats=args.repeats, seed=args.seed
        )
        st_f, st_b, y_st = _run_case(
            case, "stream", warmup=args.warmup, repeats=args.repeats, seed=args.seed
        )
        print(
            f"{case.label():<60} {_fmt_seconds(cpu_f):>10} {_fmt_seconds(st_f):>11} "
            f"{_speedup(cpu_f, st_f):>5.2f}x {_fmt_seconds(cpu_b):>10} "
            f"{_fmt_seconds(st_b):>11} {_speedup(cpu_b, st_b):>5.2f}x"
        )
        if args.sanity:
            err = float(np.max(np.abs(y_cpu - y_st)))
            status = "OK" if np.allclose(y_cpu, y_st, rtol=1e-4, atol=1e-4) else "MISMATCH"
            print(f"  sanity: max |cpu - stream| = {err:.3e} [{status}]")


if __name__ == "__main__":
    main()
