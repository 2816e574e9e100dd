# mpolar/methods/forward.py
"""
Forward mpolar transforms: Cartesian Fourier coefficients -> values at the nodes

Input:
  f_hat: complex ndarray, shape (N, N), DC at index (N/2, N/2)
  grid:  PolarGrid from mpolar_grid(T, S)
Output:
  Timed(samples, elapsed, peak_memory), samples complex ndarray of shape (M,)

Methods:
  mpolar_dft  exact sum, O(N^2 M), reference only
  mpolar_fft  NFFT (FINUFFT) with sigma = 2 and approximation order m

Only the transform itself is timed; planning (FINUFFT plans and
node setup) and cleanup are not.
"""

from __future__ import annotations
import numpy as np
import sigpy as sp
from mpolar.grid import PolarGrid
from mpolar.methods import engine
from mpolar.utils import EngineConfigs, Timed, start_tracking, stop_tracking


def check_inputs(f_hat: np.ndarray, grid: PolarGrid):
    # Data integrity assumptions
    if f_hat.ndim != 2 or f_hat.shape[0] != f_hat.shape[1]:
        raise ValueError(f"Expected square coefficient grid (N,N). Got {f_hat.shape}")
    if f_hat.shape[0] == 0:
        raise ValueError("N must be positive")
    if not np.iscomplexobj(f_hat):
        raise TypeError("f_hat must be complex. If data stores real/imag separately, combine first.")
    if grid.M == 0:
        raise ValueError(f"Grid T={grid.T}, S={grid.S} has no nodes")
    bound = 0.5 + 1.0 / grid.S
    if np.any(np.abs(grid.nodes) > bound):
        raise ValueError(f"Grid nodes must lie in [-{bound}, {bound}]^2")


def prepare_plan(grid: PolarGrid, N: int, m: int, engine_cfg: EngineConfigs) -> dict:
    if engine_cfg.sigpy_device != -1:
        raise ValueError(f"Only CPU execution is supported (sigpy_device=-1). Got {engine_cfg.sigpy_device}")
    state = {
        "N": N,
        "m": m,
        "device": sp.Device(engine_cfg.sigpy_device),
        "op": engine.nufft_linop(N, grid.nodes, m, engine_cfg),
    }
    return state


def cleanup(state: dict):
    # drop the operator and its FINUFFT plans before the next plan is built
    if state is not None:
        state.clear()


def mpolar_dft(f_hat: np.ndarray, grid: PolarGrid, engine_cfg: EngineConfigs | None = None,
               *, track_memory: bool = False) -> Timed[np.ndarray]:
    """Exact transform by direct summation."""
    engine_cfg = engine_cfg or EngineConfigs()
    check_inputs(f_hat, grid)

    # =========================== TIME/MEMORY TRACKING STARTS =======================
    t0 = start_tracking(track_memory)
    try:
        f = engine.ndft(f_hat, grid.nodes, chunk=engine_cfg.ndft_chunk)
    finally:
        time_elapsed, peak = stop_tracking(track_memory, t0)
    # =========================== TIME/MEMORY TRACKING ENDS =========================

    return Timed(f, time_elapsed, peak)


def mpolar_fft(f_hat: np.ndarray, grid: PolarGrid, m: int, engine_cfg: EngineConfigs | None = None,
               *, track_memory: bool = False) -> Timed[np.ndarray]:
    """NFFT-based transform of approximation order m."""
    engine_cfg = engine_cfg or EngineConfigs()
    check_inputs(f_hat, grid)
    N = f_hat.shape[0]

    state = None
    try:
        state = prepare_plan(grid, N, m, engine_cfg)

        # =========================== TIME/MEMORY TRACKING STARTS =======================
        t0 = start_tracking(track_memory)
        try:
            with state["device"]:
                f = engine.forward_transform(f_hat, state["op"])
        finally:
            time_elapsed, peak = stop_tracking(track_memory, t0)
        # =========================== TIME/MEMORY TRACKING ENDS =========================
    finally:
        cleanup(state)

    return Timed(f, time_elapsed, peak)
