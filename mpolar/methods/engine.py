# mpolar/methods/engine.py
"""
Non-uniform transform engine (FINUFFT plans, SigPy solver)

Everything that touches the NUFFT library lives here. The rest of the package
sees two capabilities:
  forward_transform(coeffs, op)                    -> samples at the nodes
  iterative_solve(op, samples, weights, damping, n) -> coefficients

Conventions (NFFT style):
  f_j = sum_{k in [-N/2, N/2)^2} f_hat_k exp(-2 pi i k . x_j),  x_j in [-0.5, 0.5)^2
  f_hat is (N, N) row-major, row index k0 + N/2 pairs with x_j[0].

FINUFFT takes nodes in radians and centred modes (modeord=0), so nodes are
passed as 2 pi x. The forward is a type-2 plan with isign=-1 and its adjoint a
type-1 plan with isign=+1; neither is normalized. Nodes slightly outside
[-pi, pi) are folded periodically, which is what the +-1/S tolerance band of
the grid relies on.

The approximation order m is mapped to a requested tolerance
    eps = 10^-(width_per_order * m - 1)
which makes FINUFFT pick a kernel of width_per_order * m points at oversamp 2.
"""

from __future__ import annotations
import numpy as np
import finufft
import sigpy as sp
from mpolar.utils import EngineConfigs, ReconstructionFailure, TransformEngineFailure


def frequencies(N: int) -> np.ndarray:
    """(2, N*N) integer frequencies in row-major order of an (N, N) coefficient grid."""
    k = np.arange(-(N // 2), N - N // 2)
    k0, k1 = np.meshgrid(k, k, indexing="ij")
    return np.stack([k0.ravel(), k1.ravel()])


def ndft(coeffs: np.ndarray, nodes: np.ndarray, *, chunk: int = 1 << 22) -> np.ndarray:
    """
    Direct evaluation of the Fourier sum at every node, O(N^2 M).
    Nodes are processed in blocks so the phase matrix holds at most ~chunk entries.
    """
    N = coeffs.shape[0]
    freqs = frequencies(N).astype(np.float64)
    flat = np.ascontiguousarray(coeffs, dtype=np.complex128).ravel()
    M = nodes.shape[0]
    rows = max(1, chunk // (N * N))

    out = np.empty(M, dtype=np.complex128)
    for start in range(0, M, rows):
        stop = min(start + rows, M)
        phase = np.exp(-2j * np.pi * (nodes[start:stop] @ freqs))
        out[start:stop] = phase @ flat
    return out


def order_tolerance(order: int, cfg: EngineConfigs) -> float:
    """Requested relative accuracy of the order-m transform, never below cfg.min_eps."""
    if order < 1:
        raise ValueError(f"Approximation order must be >= 1. Got {order}")
    return max(10.0 ** -(cfg.width_per_order * order - 1), cfg.min_eps)


class NonuniformFFT(sp.linop.Linop):
    """
    (N, N) coefficients -> (M,) samples at 'nodes', FINUFFT type 2.

    Args:
      N: side of the coefficient grid
      nodes: (M, 2) float array in [-0.5, 0.5)^2 (+-1/S band allowed)
      eps: requested relative accuracy
      plans: (forward, adjoint) pair shared with the adjoint operator
    """

    def __init__(self, N: int, nodes: np.ndarray, eps: float, cfg: EngineConfigs, plans=None):
        self.n_modes = N
        self.nodes = nodes
        self.eps = eps
        self.cfg = cfg
        self.plans = plans if plans is not None else make_plans(N, nodes, eps, cfg)
        super().__init__([nodes.shape[0]], [N, N])

    def _apply(self, input):
        return self.plans[0].execute(np.ascontiguousarray(input, dtype=np.complex128))

    def _adjoint_linop(self):
        return NonuniformFFTAdjoint(self.n_modes, self.nodes, self.eps, self.cfg, self.plans)


class NonuniformFFTAdjoint(sp.linop.Linop):
    """(M,) samples -> (N, N) coefficients, FINUFFT type 1 with the opposite sign."""

    def __init__(self, N: int, nodes: np.ndarray, eps: float, cfg: EngineConfigs, plans=None):
        self.n_modes = N
        self.nodes = nodes
        self.eps = eps
        self.cfg = cfg
        self.plans = plans if plans is not None else make_plans(N, nodes, eps, cfg)
        super().__init__([N, N], [nodes.shape[0]])

    def _apply(self, input):
        return self.plans[1].execute(np.ascontiguousarray(input, dtype=np.complex128))

    def _adjoint_linop(self):
        return NonuniformFFT(self.n_modes, self.nodes, self.eps, self.cfg, self.plans)


def make_plans(N: int, nodes: np.ndarray, eps: float, cfg: EngineConfigs) -> tuple:
    # radians, one contiguous array per axis (the plans keep references to them)
    x = np.ascontiguousarray(2.0 * np.pi * nodes[:, 0], dtype=np.float64)
    y = np.ascontiguousarray(2.0 * np.pi * nodes[:, 1], dtype=np.float64)
    plans = []
    for nufft_type, isign in ((2, -1), (1, 1)):
        plan = finufft.Plan(
            nufft_type=nufft_type,
            n_modes_or_dim=(N, N),
            dtype="complex128",
            eps=eps,
            isign=isign,
            modeord=0,
            upsampfac=cfg.oversamp,
            nthreads=cfg.nthreads,
        )
        plan.setpts(x, y)
        plans.append(plan)
    return tuple(plans)


def nufft_linop(N: int, nodes: np.ndarray, order: int, cfg: EngineConfigs) -> NonuniformFFT:
    """
    Fast forward operator (N, N) -> (M,) of approximation order 'order'.
    The adjoint (op.H) reuses the same plans.
    """
    eps = order_tolerance(order, cfg)
    nodes = np.ascontiguousarray(nodes, dtype=np.float64)
    try:
        return NonuniformFFT(N, nodes, eps, cfg)
    except Exception as e:
        raise TransformEngineFailure("nufft_init", str(e)) from e


def forward_transform(coeffs: np.ndarray, op: sp.linop.Linop) -> np.ndarray:
    try:
        samples = op(np.ascontiguousarray(coeffs, dtype=np.complex128))
    except Exception as e:
        raise TransformEngineFailure("nufft_trafo", str(e)) from e
    if not np.all(np.isfinite(samples)):
        raise TransformEngineFailure("nufft_trafo", "non-finite samples")
    return samples


def iterative_solve(
    op: sp.linop.Linop,
    samples: np.ndarray,
    weights: np.ndarray,
    damping: np.ndarray | None,
    max_iter: int,
    ) -> np.ndarray:
    """
    Weighted least squares by CG on the normal equations (CGNR):
        A^H W A f = A^H W y,  f_0 = 0
    With 'damping' the (N, N) mask acts as preconditioner, so updates stay inside it.
    max_iter < 1 returns the initial search direction p_0 = (mask *) A^H W y.
    """
    W = sp.linop.Multiply(op.oshape, weights)
    try:
        AHA = op.H * W * op
        b = op.H(weights * samples)
    except Exception as e:
        raise TransformEngineFailure("nufft_adjoint", str(e)) from e

    x = np.zeros(op.ishape, dtype=np.complex128)
    P = None if damping is None else sp.linop.Multiply(op.ishape, damping)
    try:
        alg = sp.alg.ConjugateGradient(AHA, b, x, P=P, max_iter=max(max_iter, 0))
        if max_iter < 1:
            return np.array(alg.p, dtype=np.complex128, copy=True)

        while not alg.done():
            alg.update()
    except Exception as e:
        raise ReconstructionFailure("solver_loop_one_step", str(e)) from e

    if alg.not_positive_definite:
        raise ReconstructionFailure("solver_loop_one_step", f"normal operator not positive definite at step {alg.iter}")
    if not np.all(np.isfinite(alg.x)):
        raise ReconstructionFailure("solver_loop_one_step", f"non-finite iterate at step {alg.iter}")
    return alg.x
