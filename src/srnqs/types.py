from __future__ import annotations

from typing import TypeAlias

import numpy as np
import numpy.typing as npt

SpinArray: TypeAlias = npt.NDArray[np.int8]
SpinBatch: TypeAlias = npt.NDArray[np.int8]
FloatArray: TypeAlias = npt.NDArray[np.float64]
ComplexArray: TypeAlias = npt.NDArray[np.complex128]
ScalarArray: TypeAlias = npt.NDArray[np.float64] | npt.NDArray[np.complex128]
IntArray: TypeAlias = npt.NDArray[np.int64]
Sites: TypeAlias = tuple[int, ...]

EPS: float = 1.0e-12
