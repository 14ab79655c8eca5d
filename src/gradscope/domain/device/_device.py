"""
Device abstraction utilities.

This module defines lightweight abstractions for representing the execution
target of a backend in a framework-agnostic way. It provides:

- `DeviceType`: an enumeration of supported device categories
- `Device`: a concrete device descriptor that validates and normalizes
  user-facing device strings such as "cpu" or "stream:0"

The design intentionally avoids backend-specific dependencies and is suitable
for use across domain and infrastructure layers.
"""

from enum import Enum
import re


class DeviceType(Enum):
    """
    Enumeration of supported device categories.

    Attributes
    ----------
    CPU : DeviceType
        Synchronous host execution (reference backend).
    STREAM : DeviceType
        Asynchronous command-stream execution (accelerated backend).
    """

    CPU = "cpu"
    STREAM = "stream"


class Device:
    """
    Concrete computation device descriptor.

    Parameters
    ----------
    device : str
        Device identifier string. Must be either:
        - "cpu"
        - "stream" or "stream:<index>", where <index> is a non-negative integer

    Raises
    ------
    ValueError
        If the provided device string does not match the supported formats.

    Notes
    -----
    - `__slots__` is used to prevent dynamic attribute creation.
    - This class does not allocate or manage any backend resources.
    """

    __slots__ = ("type", "index")

    _STREAM_PATTERN = re.compile(r"^stream(?::(\d+))?$")

    def __init__(self, device: str):
        if device == "cpu":
            self.type = DeviceType.CPU
            self.index = None
        else:
            m = self._STREAM_PATTERN.match(device)
            if not m:
                raise ValueError(
                    f"Invalid device '{device}'. Expected 'cpu' or 'stream:<index>'"
                )
            self.type = DeviceType.STREAM
            self.index = int(m.group(1) or 0)

    def __str__(self):
        """
        Return the canonical string representation of the device.

        Returns
        -------
        str
            "cpu" for CPU devices, or "stream:<index>" for stream devices.
        """
        return "cpu" if self.type is DeviceType.CPU else f"stream:{self.index}"

    def __repr__(self):
        return f"Device({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Device):
            return NotImplemented
        return self.type is other.type and self.index == other.index

    def __hash__(self) -> int:
        return hash((self.type, self.index))

    def is_cpu(self) -> bool:
        """
        Check whether this device represents synchronous host execution.
        """
        return self.type is DeviceType.CPU

    def is_stream(self) -> bool:
        """
        Check whether this device represents an asynchronous command stream.
        """
        return self.type is DeviceType.STREAM
