"""
Type aliases for laborsim.

Agent state is stored as parallel NumPy arrays, one index per agent.
"""

from typing import TypeAlias

import numpy as np
from numpy.typing import NDArray

Float1D: TypeAlias = NDArray[np.float64]
Int1D: TypeAlias = NDArray[np.int64]
Bool1D: TypeAlias = NDArray[np.bool_]

FloatOrArray: TypeAlias = float | Float1D
"""A scalar parameter that may also be given per agent (broadcast)."""

__all__ = [
    "Float1D",
    "Int1D",
    "Bool1D",
    "FloatOrArray",
]
