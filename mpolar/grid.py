# mpolar/grid.py
"""
Modified polar grid

Nodes:
  x_{t,r} = (r/S) * (cos(pi t/T), sin(pi t/T)),  t in [-T/2, T/2), r in [-R2/2, R2/2)
  with R2 = 2*ceil(sqrt(2)*S/2), so the concentric circles reach the corners of
  the unit square. Only nodes inside [-0.5-1/S, 0.5+1/S]^2 are kept.

Weights:
  1/4 at the centre (r = 0), |r| elsewhere, normalised to sum 1.

Node count:
  M ~ (4/pi) log(1+sqrt(2)) T S ~ 1.12 T S, only known after the scan.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
import numpy as np
from mpolar.utils import AllocationFailure


@dataclass(frozen=True)
class PolarGrid:
    T: int
    S: int
    nodes: np.ndarray      # (M, 2) float64
    weights: np.ndarray    # (M,) float64, sums to 1

    @property
    def M(self) -> int:
        return self.nodes.shape[0]


def radial_extent(S: int) -> int:
    # even, so r runs symmetrically over [-R2/2, R2/2)
    return 2 * int(math.ceil(math.sqrt(2.0) * S / 2.0))


def candidate_count(T: int, S: int) -> int:
    return T * radial_extent(S)


def node_count_bound(T: int, S: int) -> int:
    # 4/pi*log(1+sqrt(2)) = 1.122... < 1.25
    return int(math.ceil(1.25 * T * S))


def _check_config(T: int, S: int):
    if not isinstance(T, (int, np.integer)) or not isinstance(S, (int, np.integer)):
        raise TypeError(f"T and S must be integers. Got T={T!r}, S={S!r}")
    if T <= 0 or T % 2 != 0:
        raise ValueError(f"T must be a positive even integer. Got {T}")
    if S <= 0:
        raise ValueError(f"S must be a positive integer. Got {S}")


def mpolar_grid(T: int, S: int) -> PolarGrid:
    """
    Build nodes and normalised quadrature weights of the modified polar grid.
    Node order is angle-major (t outer, r inner), identical on every call.
    """
    _check_config(T, S)
    R2 = radial_extent(S)
    bound = 0.5 + 1.0 / S

    try:
        t = np.arange(-T // 2, T // 2, dtype=np.float64)
        r = np.arange(-R2 // 2, R2 // 2, dtype=np.float64)
        tt, rr = np.meshgrid(t, r, indexing="ij")   # (T, R2), row = angle

        theta = np.pi * tt / T
        xx = rr / S * np.cos(theta)
        yy = rr / S * np.sin(theta)

        keep = (-bound <= xx) & (xx <= bound) & (-bound <= yy) & (yy <= bound)

        nodes = np.stack([xx[keep], yy[keep]], axis=-1)
        w = np.abs(rr[keep])
        w[rr[keep] == 0] = 0.25
    except MemoryError as e:
        raise AllocationFailure("mpolar_grid", f"no storage for T={T}, S={S}") from e

    w /= w.sum()

    nodes.setflags(write=False)
    w.setflags(write=False)
    return PolarGrid(T=T, S=S, nodes=nodes, weights=w)
