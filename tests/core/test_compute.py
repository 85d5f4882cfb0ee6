"""
Tests for shared compute infrastructure: timing, QR kernels and the
backend protocol.
"""

import numpy as np
import pytest

from pyrandomization.core import Backend
from pyrandomization.core.compute import Timer, timed
from pyrandomization.core.compute.linalg import qr_cpu, qr_solve_cpu
from pyrandomization.core.exceptions import SingularMatrixError
from pyrandomization.randomization.backends import CPURandomizationBackend
from pyrandomization.regression.backends import CPUQRBackend


class TestTimer:

    def test_sections_accumulate(self):
        timer = Timer()
        timer.start()
        with timer.section('draws'):
            pass
        with timer.section('draws'):
            pass
        timer.stop()
        result = timer.result()
        assert result['total_seconds'] >= result['draws'] >= 0.0

    def test_result_before_stop(self):
        timer = Timer()
        timer.start()
        with pytest.raises(RuntimeError):
            timer.result()

    def test_stop_before_start(self):
        with pytest.raises(RuntimeError):
            Timer().stop()

    def test_timed(self):
        with timed() as timer:
            pass
        assert 'total_seconds' in timer.result()


class TestQR:

    def test_rank(self, collinear_data):
        X, _ = collinear_data
        assert qr_cpu(X).rank == 2

    def test_solve(self, simple_regression_data):
        X, y, _ = simple_regression_data
        beta, rank = qr_solve_cpu(X, y, check_rank=True)
        np.testing.assert_allclose(beta, np.linalg.lstsq(X, y, rcond=None)[0])
        assert rank == 3

    def test_wide_matrix(self):
        with pytest.raises(SingularMatrixError, match="fewer rows"):
            qr_solve_cpu(np.ones((2, 3)), np.ones(2), check_rank=True)

    def test_zero_matrix_rank(self):
        assert qr_cpu(np.zeros((3, 2))).rank == 0


class TestBackendProtocol:

    @pytest.mark.parametrize("backend, name", [
        (CPUQRBackend(), 'cpu_qr'),
        (CPURandomizationBackend(), 'cpu_randomization'),
    ])
    def test_backends_conform(self, backend, name):
        assert isinstance(backend, Backend)
        assert backend.name == name
