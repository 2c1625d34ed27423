from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from srnqs.types import ScalarArray


@dataclass(frozen=True)
class ParameterSlice:
    """Slice metadata for flatten/unflatten operations."""

    name: str
    start: int
    stop: int
    shape: tuple[int, ...]


@dataclass(frozen=True)
class FlatParameterLayout:
    """Deterministic layout mapping between tensors and flat SR vectors."""

    slices: tuple[ParameterSlice, ...]

    @property
    def size(self) -> int:
        return int(sum(s.stop - s.start for s in self.slices))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.slices)


def build_layout(named_shapes: dict[str, tuple[int, ...]]) -> FlatParameterLayout:
    """Create a flat-vector layout in the insertion order of ``named_shapes``.

    Tensors are flattened in C (row-major) order.
    """

    slices: list[ParameterSlice] = []
    cursor = 0
    for name, shape in named_shapes.items():
        length = int(np.prod(shape))
        slices.append(ParameterSlice(name=name, start=cursor, stop=cursor + length, shape=shape))
        cursor += length
    return FlatParameterLayout(tuple(slices))


def flatten_with_layout(
    named_arrays: dict[str, ScalarArray],
    layout: FlatParameterLayout,
    dtype: npt.DTypeLike = np.float64,
) -> ScalarArray:
    """Pack named parameter tensors into a single contiguous vector."""

    flat = np.zeros(layout.size, dtype=dtype)
    for sl in layout.slices:
        data = named_arrays[sl.name]
        if data.shape != sl.shape:
            raise ValueError(f"{sl.name} shape {data.shape} does not match layout {sl.shape}")
        flat[sl.start : sl.stop] = data.reshape(-1)
    return flat


def unflatten_with_layout(
    vector: ScalarArray,
    layout: FlatParameterLayout,
    dtype: npt.DTypeLike = np.float64,
) -> dict[str, ScalarArray]:
    """Unpack a flat vector back into tensor dictionary format."""

    if vector.ndim != 1:
        raise ValueError("vector must be rank-1")
    if vector.shape[0] != layout.size:
        raise ValueError(
            f"vector length {vector.shape[0]} does not match layout size {layout.size}"
        )

    out: dict[str, ScalarArray] = {}
    for sl in layout.slices:
        out[sl.name] = np.array(vector[sl.start : sl.stop].reshape(sl.shape), dtype=dtype)
    return out
