from __future__ import annotations
from enum import Enum
from dataclasses import dataclass, field, fields
from typing import Any, Generic, List, Optional, Type, TypeVar
import json
import time
import tracemalloc # peak memory of each timed step
import numpy as np
from pathlib import Path

# Generic type
T = TypeVar("T")

# DATAPATHS

ROOT = Path(__file__).resolve().parents[1]   # mpolar-bench/
RESULTS = ROOT / "results"

INPUT_REAL = "input_data_r.dat"
INPUT_IMAG = "input_data_i.dat"
COMPARISON_TABLE = "mpolar_comparison_fft.dat"
FFT_ERROR_TABLE = "mpolar_fft_error.dat"
IFFT_ERROR_TABLE = "mpolar_ifft_error{m}.dat"

# ENUMS / DICTIONARIES

class TransformMethod(str, Enum):
    NDFT = "mpolar_dft"
    NFFT = "mpolar_fft"
    INFFT = "inverse_mpolar_fft"

# EXCEPTIONS

class MpolarError(Exception):
    """
    Base class for unrecoverable failures. 'operation' names the step that failed
    so the driver can report it before exiting.
    """
    def __init__(self, operation: str, message: str = ""):
        self.operation = operation
        super().__init__(f"{operation}: {message}" if message else operation)

class AllocationFailure(MpolarError):
    pass

class FileAccessFailure(MpolarError):
    pass

class TransformEngineFailure(MpolarError):
    pass

class ReconstructionFailure(MpolarError):
    pass

# DATACLASSES

@dataclass
class EngineConfigs:
    oversamp: float = 2.0          # FINUFFT upsampfac (sigma = 2)
    width_per_order: int = 2       # kernel full-width on the oversampled grid = width_per_order * m
    min_eps: float = 1e-15         # FINUFFT tolerance floor, kernel width 16
    nthreads: int = 1
    ndft_chunk: int = 1 << 22      # max entries of the (nodes, N*N) phase matrix per block of the direct sum
    sigpy_device: int = -1         # -1 represents CPU

@dataclass
class Configs:
    sweep_sizes: list[int] = field(default_factory=lambda: [16, 32, 64, 128, 256])
    forward_orders: list[int] = field(default_factory=lambda: list(range(1, 13)))
    inverse_orders: list[int] = field(default_factory=lambda: [3, 6, 9])
    iteration_counts: list[int] = field(default_factory=lambda: list(range(0, 21, 2)))
    comparison_orders: list[int] = field(default_factory=lambda: [3, 6, 9])
    exact_limit: int = 256         # direct transform only runs for N below this in the sweep
    fft_budget: int = 65536        # plain FFT is repeated fft_budget // N times
    data_dir: str = "."
    output_dir: str = "."
    seed: Optional[int] = None     # synthetic input for the sweep, None = unseeded
    damping: bool = False          # low-pass disk mask in the inverse
    relative_error: bool = False   # divide the max error by max |reference|
    track_memory: bool = True      # tracemalloc peak around each timed step
    save_plots: bool = False
    plot_dir: str = str(RESULTS / "plots")
    engine: EngineConfigs = field(default_factory=EngineConfigs)

@dataclass(frozen=True)
class Timed(Generic[T]):
    value: T
    elapsed: float                 # seconds, execution step only
    peak_memory: int = 0           # bytes

@dataclass(frozen=True)
class ForwardErrorRecord:
    m: int
    error: float
    elapsed: float

@dataclass(frozen=True)
class InverseErrorRecord:
    m: int
    iterations: int
    error: float
    elapsed: float

@dataclass(frozen=True)
class ComparisonRow:
    N: int
    t_fft: float
    t_dft: Optional[float]                                    # None when N >= exact_limit
    orders: List[tuple[int, float, float]]                    # (m, t_mpolar, t_impolar)

# HELPER FUNCTIONS

def construct_dataclass_from_json(
    path: str | Path, datacls: Type[T]
    ) -> T:
    """
    Read JSON from 'path' and pull key-value pairs to construct dataclass of type 'T'.
    Unknown keys are dropped. A nested "engine" object becomes EngineConfigs.
    """
    data = json.loads(Path(path).read_text()) # builds dict
    return dataclass_from_dict(data, datacls)


def dataclass_from_dict(data: dict[str, Any], datacls: Type[T]) -> T:
    if datacls is Configs and isinstance(data.get("engine"), dict):
        data = dict(data)
        data["engine"] = dataclass_from_dict(data["engine"], EngineConfigs)

    # Only keep keys that exist in the dataclass
    valid_keys = {f.name for f in fields(datacls)}
    filtered = {k: v for k, v in data.items() if k in valid_keys}
    return datacls(**filtered)  # maintains defaults for missing keys


def error_l_infty(reference: np.ndarray, approx: np.ndarray, *, relative: bool = False) -> float:
    """
    Maximum absolute difference between corresponding entries.
    With relative=True the result is divided by max |reference|.
    """
    reference = np.asarray(reference).ravel()
    approx = np.asarray(approx).ravel()
    if reference.shape != approx.shape:
        raise ValueError(f"Cannot compare arrays of {reference.size} and {approx.size} entries")
    err = float(np.max(np.abs(reference - approx))) if reference.size else 0.0
    if relative:
        scale = float(np.max(np.abs(reference))) if reference.size else 0.0
        return err / scale if scale > 0 else err
    return err


# Time/memory tracking around the measured step only

def start_tracking(track_memory: bool) -> float:
    if track_memory:
        tracemalloc.start()
    return time.perf_counter()


def stop_tracking(track_memory: bool, t0: float) -> tuple[float, int]:
    time_elapsed = time.perf_counter() - t0
    peak = 0
    if track_memory and tracemalloc.is_tracing():
        _, peak = tracemalloc.get_traced_memory()
        tracemalloc.stop()
    return time_elapsed, peak
