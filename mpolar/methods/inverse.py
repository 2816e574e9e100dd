# mpolar/methods/inverse.py
"""
Inverse mpolar FFT: samples at the nodes -> Cartesian Fourier coefficients

Solves the weighted least squares problem
    min_f || y - A f ||_W,   W = diag(quadrature weights)
with a fixed number of CGNR steps from f_0 = 0, where A is the NFFT of
approximation order m on the same grid that produced y.

Damping (optional):
  w_hat[j,k] = 1 if sqrt((j - N/2)^2 + (k - N/2)^2) <= N/2 else 0
  frequencies outside the disk are never updated.
"""

from __future__ import annotations
import numpy as np
from mpolar.grid import PolarGrid
from mpolar.methods import engine
from mpolar.methods.forward import prepare_plan, cleanup
from mpolar.utils import EngineConfigs, Timed, start_tracking, stop_tracking


def damping_weights(N: int) -> np.ndarray:
    if N <= 0:
        raise ValueError(f"N must be positive. Got {N}")
    j = np.arange(N, dtype=np.float64) - N // 2
    dist = np.sqrt(j[:, None] ** 2 + j[None, :] ** 2)
    return np.where(dist > float(N // 2), 0.0, 1.0)


def inverse_mpolar_fft(observed: np.ndarray, grid: PolarGrid, N: int, max_iter: int, m: int,
                       engine_cfg: EngineConfigs | None = None, *, damping: bool = False,
                       track_memory: bool = False) -> Timed[np.ndarray]:
    """
    Args:
      observed: complex ndarray (M,), samples in the node order of 'grid'
      grid: PolarGrid, also supplies the least-squares weights
      N: side of the reconstructed (N, N) grid
      max_iter: number of solver steps; 0 returns the initial search direction
      m: approximation order of the NFFT used inside the solver
    Returns:
      Timed(f_hat (N, N) complex128, elapsed of the solve, peak memory)
    """
    engine_cfg = engine_cfg or EngineConfigs()
    observed = np.asarray(observed)

    # Data integrity assumptions
    if observed.ndim != 1 or observed.shape[0] != grid.M:
        raise ValueError(f"Expected {grid.M} samples for T={grid.T}, S={grid.S}. Got shape {observed.shape}")
    if grid.weights.shape != observed.shape:
        raise ValueError(f"Weights {grid.weights.shape} do not match samples {observed.shape}")
    if N <= 0:
        raise ValueError(f"N must be positive. Got {N}")
    if max_iter < 0:
        raise ValueError(f"max_iter must be >= 0. Got {max_iter}")
    y = observed.astype(np.complex128, copy=False)

    w_hat = damping_weights(N) if damping else None

    state = None
    try:
        state = prepare_plan(grid, N, m, engine_cfg)

        # =========================== TIME/MEMORY TRACKING STARTS =======================
        t0 = start_tracking(track_memory)
        try:
            with state["device"]:
                f_hat = engine.iterative_solve(state["op"], y, grid.weights, w_hat, max_iter)
        finally:
            time_elapsed, peak = stop_tracking(track_memory, t0)
        # =========================== TIME/MEMORY TRACKING ENDS =========================
    finally:
        cleanup(state)

    return Timed(f_hat, time_elapsed, peak)
