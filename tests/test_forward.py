import numpy as np
import pytest

from mpolar.methods import engine, forward
from mpolar.methods.forward import mpolar_dft, mpolar_fft
from mpolar.utils import EngineConfigs, Timed, TransformEngineFailure, error_l_infty


class TestExactTransform:
    def test_dc_only_spectrum_is_constant(self, grid):
        N = 16
        f_hat = np.zeros((N, N), dtype=np.complex128)
        f_hat[N // 2, N // 2] = 1.0
        f = mpolar_dft(f_hat, grid).value
        assert f.shape == (grid.M,)
        assert np.max(np.abs(f - f[0])) < 1e-10
        assert np.allclose(f, 1.0, atol=1e-12)

    def test_single_frequency(self, grid):
        N = 8
        k0, k1 = 2, -3
        f_hat = np.zeros((N, N), dtype=np.complex128)
        f_hat[k0 + N // 2, k1 + N // 2] = 1.0
        f = mpolar_dft(f_hat, grid).value
        x, y = grid.nodes[:, 0], grid.nodes[:, 1]
        assert np.allclose(f, np.exp(-2j * np.pi * (k0 * x + k1 * y)), atol=1e-12)

    def test_chunking_does_not_change_result(self, f_hat, grid):
        a = engine.ndft(f_hat, grid.nodes, chunk=1)
        b = engine.ndft(f_hat, grid.nodes, chunk=1 << 30)
        assert np.allclose(a, b, rtol=0, atol=1e-11)

    def test_timed(self, f_hat, grid):
        out = mpolar_dft(f_hat, grid, track_memory=True)
        assert isinstance(out, Timed)
        assert out.elapsed >= 0
        assert out.peak_memory > 0


class TestFastTransform:
    def test_close_to_exact(self, f_hat, grid, f_direct):
        f = mpolar_fft(f_hat, grid, 6).value
        assert f.shape == f_direct.shape
        assert error_l_infty(f_direct, f, relative=True) < 1e-4

    @pytest.fixture(scope="class")
    def order_errors(self, f_hat32, grid32, f_direct32):
        return {m: error_l_infty(f_direct32, mpolar_fft(f_hat32, grid32, m).value) for m in range(1, 13)}

    @pytest.mark.parametrize("m", range(1, 12))
    def test_error_non_increasing_in_order(self, order_errors, f_direct32, m):
        # equal up to roundoff once the tolerance floor is reached
        roundoff = 1e-14 * np.max(np.abs(f_direct32))
        assert order_errors[m + 1] <= order_errors[m] + roundoff

    def test_order_range_spans_accuracy(self, order_errors, f_direct32):
        scale = np.max(np.abs(f_direct32))
        assert order_errors[1] > 1e-3 * scale
        assert order_errors[12] < 1e-12 * scale

    def test_dc_only_spectrum(self, grid):
        N = 16
        f_hat = np.zeros((N, N), dtype=np.complex128)
        f_hat[N // 2, N // 2] = 1.0
        f = mpolar_fft(f_hat, grid, 8).value
        assert np.allclose(f, 1.0, atol=1e-6)

    def test_elapsed_reported(self, f_hat, grid):
        out = mpolar_fft(f_hat, grid, 3)
        assert out.elapsed >= 0
        assert out.peak_memory == 0

    @pytest.mark.parametrize("m", [0, -1])
    def test_invalid_order(self, f_hat, grid, m):
        with pytest.raises(ValueError):
            mpolar_fft(f_hat, grid, m)

    def test_gpu_device_rejected(self, f_hat, grid):
        with pytest.raises(ValueError):
            mpolar_fft(f_hat, grid, 3, EngineConfigs(sigpy_device=0))


class TestInputChecks:
    @pytest.mark.parametrize("method", [mpolar_dft, lambda f, g: mpolar_fft(f, g, 3)])
    def test_non_square(self, grid, method):
        with pytest.raises(ValueError):
            method(np.zeros((8, 4), dtype=np.complex128), grid)

    @pytest.mark.parametrize("method", [mpolar_dft, lambda f, g: mpolar_fft(f, g, 3)])
    def test_real_input(self, grid, method):
        with pytest.raises(TypeError):
            method(np.zeros((8, 8)), grid)


class TestEngineFailures:
    def test_plan_failure_is_wrapped(self, f_hat, grid, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("bad plan")

        monkeypatch.setattr(engine.finufft, "Plan", broken)
        with pytest.raises(TransformEngineFailure) as info:
            mpolar_fft(f_hat, grid, 3)
        assert info.value.operation == "nufft_init"

    def test_execution_failure_releases_state(self, f_hat, grid, monkeypatch):
        def broken_op(coeffs):
            raise RuntimeError("bad trafo")

        released = []
        cleanup = forward.cleanup

        def spy(state):
            released.append(dict(state))
            cleanup(state)

        monkeypatch.setattr(engine, "nufft_linop", lambda *args, **kwargs: broken_op)
        monkeypatch.setattr(forward, "cleanup", spy)
        with pytest.raises(TransformEngineFailure) as info:
            mpolar_fft(f_hat, grid, 3)
        assert info.value.operation == "nufft_trafo"
        assert len(released) == 1
        assert released[0]["op"] is broken_op

    def test_non_finite_output(self, f_hat, grid):
        bad = f_hat.copy()
        bad[0, 0] = np.nan
        with pytest.raises(TransformEngineFailure):
            mpolar_fft(bad, grid, 3)
