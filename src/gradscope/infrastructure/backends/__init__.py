"""
Backend implementations and the backend factory table.

Backends are created by name through `create_backend`. New backends can be
plugged in with `register_backend(name, factory)`; kernels for them are
registered under the same name in the kernel registry.
"""

from typing import Callable, Dict

from ._base import KernelBackend
from ._cpu import CPUBackend
from ._stream import StreamBackend

_FACTORIES: Dict[str, Callable[[], KernelBackend]] = {
    "cpu": CPUBackend,
    "stream": StreamBackend,
}


def register_backend(name: str, factory: Callable[[], KernelBackend]) -> None:
    _FACTORIES[name] = factory


def available_backends() -> list:
    return sorted(_FACTORIES)


def create_backend(name: str) -> KernelBackend:
    """
    Instantiate a backend by registry name.

    Raises
    ------
    ValueError
        If no backend is registered under `name`.
    """
    try:
        factory = _FACTORIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown backend {name!r}. Expected one of {available_backends()}"
        ) from None
    return factory()


__all__ = [
    "KernelBackend",
    "CPUBackend",
    "StreamBackend",
    "register_backend",
    "available_backends",
    "create_backend",
]
