"""
Least-squares helper used only by the tests.

Estimation is not part of the package; the tests only need to check that
simulated datasets carry the structure the FOC implies.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class OLSFit:
    coef: NDArray[np.float64]  # slopes, in regressor order
    intercept: float
    r_squared: float


def ols(y: NDArray[np.float64], *regressors: NDArray[np.float64]) -> OLSFit:
    """Regress ``y`` on a constant and ``regressors``."""
    X = np.column_stack([np.ones_like(y), *regressors])
    beta, *_ = np.linalg.lstsq(X, y, rcond=None)
    resid = y - X @ beta
    tss = float(((y - y.mean()) ** 2).sum())
    r2 = 1.0 - float((resid**2).sum()) / tss if tss > 0 else 1.0
    return OLSFit(coef=beta[1:], intercept=float(beta[0]), r_squared=r2)
