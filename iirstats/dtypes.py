from typing import Union

import torch

DTypeLike = Union[torch.dtype, str]


def resolve_dtype(dtype: DTypeLike) -> torch.dtype:
    """Map a torch dtype or its name ("float32", "torch.int16") to a torch.dtype."""
    if isinstance(dtype, torch.dtype):
        return dtype
    name = str(dtype).replace("torch.", "")
    resolved = getattr(torch, name, None)
    if not isinstance(resolved, torch.dtype):
        raise ValueError(f"Unknown torch dtype name: {dtype}")
    return resolved


def dtype_name(dtype: torch.dtype) -> str:
    return str(dtype).replace("torch.", "")


class Precision:
    """
    Arithmetic precision of a sample or accumulation type.

    State is kept in Python numbers; `cast` rounds a result into the dtype so that
    float32 or bfloat16 accumulation behaves like it would on the device.
    """

    def __init__(self, dtype: DTypeLike) -> None:
        self.dtype = resolve_dtype(dtype)
        if self.dtype.is_complex or self.dtype == torch.bool:
            raise ValueError(f"Unsupported dtype for statistics: {self.dtype}")

        self.is_floating_point = self.dtype.is_floating_point
        self._native = self.dtype == torch.float64

        if self.is_floating_point:
            self.positive_infinity = float("inf")
            self.negative_infinity = float("-inf")
            self.zero = 0.0
        else:
            info = torch.iinfo(self.dtype)
            self.positive_infinity = int(info.max)
            self.negative_infinity = int(info.min)
            self.zero = 0

    @property
    def name(self) -> str:
        return dtype_name(self.dtype)

    def cast(self, x):
        """Round x (number or 0-d tensor) to this precision."""
        if isinstance(x, torch.Tensor):
            x = x.item()
        if not self.is_floating_point:
            return int(x)
        if self._native:
            return float(x)
        return torch.tensor(float(x), dtype=self.dtype).item()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Precision):
            return self.dtype == other.dtype
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.dtype)

    def __repr__(self) -> str:
        return f"Precision({self.name})"


def as_precision(p: Union[Precision, DTypeLike]) -> Precision:
    return p if isinstance(p, Precision) else Precision(p)


FLOAT64 = Precision(torch.float64)
