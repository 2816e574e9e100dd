from __future__ import annotations
from pathlib import Path
import numpy as np
from mpolar.utils import INPUT_REAL, INPUT_IMAG, FileAccessFailure

def read_values(path: str | Path, count: int) -> np.ndarray:
    """
    Read the first 'count' whitespace/newline separated reals from a text file.
    """
    path = Path(path)
    try:
        tokens = path.read_text().split()
    except OSError as e:
        raise FileAccessFailure("load_input_data", f"cannot read {path}: {e.strerror or e}") from e
    if len(tokens) < count:
        raise FileAccessFailure("load_input_data", f"{path} holds {len(tokens)} values, expected {count}")
    try:
        return np.array(tokens[:count], dtype=np.float64)
    except ValueError as e:
        raise FileAccessFailure("load_input_data", f"{path} is not numeric: {e}") from e

def check_input_files(data_dir: str | Path) -> tuple[Path, Path]:
    data_dir = Path(data_dir)
    real_path, imag_path = data_dir / INPUT_REAL, data_dir / INPUT_IMAG
    missing = [p.name for p in (real_path, imag_path) if not p.is_file()]
    if missing:
        raise FileAccessFailure("load_input_data", f"missing {', '.join(missing)} in {data_dir.resolve()}")
    return real_path, imag_path

def load_input_data(data_dir: str | Path, N: int) -> np.ndarray:
    """
    Returns:
      f_hat: complex128 array with shape (N, N), row-major
      - real part from input_data_r.dat
      - imaginary part from input_data_i.dat
    """
    if N <= 0:
        raise ValueError(f"N must be positive. Got {N}")
    real_path, imag_path = check_input_files(data_dir)
    re = read_values(real_path, N * N)
    im = read_values(imag_path, N * N)
    return (re + 1j * im).reshape(N, N)

def write_input_data(data_dir: str | Path, f_hat: np.ndarray):
    """Write f_hat as the pair of text files read by load_input_data."""
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    flat = np.asarray(f_hat).ravel()
    np.savetxt(data_dir / INPUT_REAL, flat.real, fmt="%.17e")
    np.savetxt(data_dir / INPUT_IMAG, flat.imag, fmt="%.17e")
