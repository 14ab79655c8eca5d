"""
Device abstraction contracts for gradscope.

This module defines a duck-typed `DeviceLike` protocol that represents a
computation device descriptor (CPU or stream) without coupling to a specific
concrete class implementation.

Design notes
------------
- Uses `typing.Protocol` and `@runtime_checkable` to enable both static and
  runtime validation of device-like objects.
- Keeps higher layers backend-agnostic.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class DeviceLike(Protocol):
    """
    Duck-typed device contract.

    Any object that provides these members can be used as a computation device
    descriptor within the framework, regardless of its concrete class identity.
    """

    type: object
    index: Optional[int]

    def is_cpu(self) -> bool: ...
    def is_stream(self) -> bool: ...
    def __str__(self) -> str: ...
