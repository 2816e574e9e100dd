import numpy as np
import pytest

from mpolar.grid import mpolar_grid
from mpolar.methods.engine import ndft
from mpolar.utils import Configs, EngineConfigs


@pytest.fixture(scope="session")
def grid():
    # T = 3N, S = 3N/2 for N = 16
    return mpolar_grid(48, 24)


@pytest.fixture(scope="session")
def f_hat() -> np.ndarray:
    rng = np.random.default_rng(0)
    N = 16
    return rng.random((N, N)) + 1j * rng.random((N, N))


@pytest.fixture(scope="session")
def f_direct(f_hat, grid) -> np.ndarray:
    return ndft(f_hat, grid.nodes)


@pytest.fixture(scope="session")
def grid32():
    # T = 3N, S = 3N/2 for N = 32
    return mpolar_grid(96, 48)


@pytest.fixture(scope="session")
def f_hat32() -> np.ndarray:
    rng = np.random.default_rng(1)
    N = 32
    return rng.random((N, N)) + 1j * rng.random((N, N))


@pytest.fixture(scope="session")
def f_direct32(f_hat32, grid32) -> np.ndarray:
    return ndft(f_hat32, grid32.nodes)


@pytest.fixture
def engine_cfg() -> EngineConfigs:
    return EngineConfigs()


@pytest.fixture
def small_cfg(tmp_path) -> Configs:
    return Configs(
        sweep_sizes=[16],
        forward_orders=[1, 3, 6],
        inverse_orders=[3],
        iteration_counts=[0, 2, 10],
        comparison_orders=[3, 6],
        fft_budget=1024,
        data_dir=str(tmp_path),
        output_dir=str(tmp_path / "out"),
        seed=1,
        track_memory=False,
        plot_dir=str(tmp_path / "plots"),
    )
