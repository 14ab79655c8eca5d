"""
Element dtype definitions.

The engine supports a small closed set of element types. Floating computation
is always 32-bit, integers are 32-bit signed, and booleans occupy one byte per
element. This module is backend-agnostic; the NumPy mapping lives in the
infrastructure layer.
"""

from __future__ import annotations

from enum import Enum
from typing import Union


class DType(Enum):
    """
    Closed set of tensor element types.
    """

    FLOAT32 = "float32"
    INT32 = "int32"
    BOOL = "bool"

    @property
    def itemsize(self) -> int:
        """
        Width of one element in bytes.
        """
        return _ITEMSIZE[self]

    @property
    def is_floating(self) -> bool:
        return self is DType.FLOAT32

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union["DType", str]) -> "DType":
        """
        Normalize a dtype given as an enum member or its string name.

        Raises
        ------
        ValueError
            If the value does not name a supported dtype.
        """
        if isinstance(value, DType):
            return value
        try:
            return cls(str(value))
        except ValueError:
            raise ValueError(
                f"Unsupported dtype {value!r}. Expected one of "
                f"{[d.value for d in cls]}"
            ) from None


_ITEMSIZE = {DType.FLOAT32: 4, DType.INT32: 4, DType.BOOL: 1}

DTypeLike = Union[DType, str]
