"""
Keyed implementation registry via decorators.

This module provides a small mechanism for routing a logical operation to one
of several registered implementations based on a runtime state value (the
name of the backend that should run it).

Core idea
---------
- Every implementation is registered under a key:
    (OpName, StateVal)
- At runtime, the dispatcher resolves the key for the requested operation and
  the current state, and returns the matching implementation.

Important notes
---------------
- Registered implementations are stored in a closure-local mapping owned by
  `create_path_builder()`. Different builders do not share mappings.
- Registration happens at import time of the implementation modules, so the
  table is fully resolved once the package is imported.
- Registering the same key twice replaces the previous implementation; this
  is how tests and extensions override a kernel.
"""

from typing import Callable, Dict, Hashable, Iterator, NamedTuple, Optional, Union

from typing_extensions import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")


class PathKey(NamedTuple):
    """
    Tuple-like key used to uniquely identify a registered implementation.

    Fields
    ------
    OpName : str
        The logical operation name.
    StateVal : Hashable
        The state value that selects this implementation (backend name).
    """

    OpName: str
    StateVal: Hashable


class PathBuilder:
    """
    Registry of implementations keyed by ``(op_name, state)``.

    Instances are created through `create_path_builder()`.
    """

    def __init__(self, methods_map: Dict[PathKey, Callable]) -> None:
        self._methods_map = methods_map

    def register(
        self, op_name: str, state: Hashable
    ) -> Callable[[Callable[P, R]], Callable[P, R]]:
        """
        Build a decorator that registers an implementation.

        Parameters
        ----------
        op_name : str
            Logical operation name.
        state : Hashable
            The state value that selects the decorated implementation.

        Returns
        -------
        Callable[[Callable[P, R]], Callable[P, R]]
            A decorator returning the implementation unchanged, enabling
            stacking (one function registered for several states).

        Raises
        ------
        TypeError
            If `state` is not hashable.
        """
        try:
            hash(state)
        except TypeError:
            raise TypeError(
                f"The argument for 'state' must be hashable. Got {state!r}"
            ) from None

        key = PathKey(op_name, state)

        def decorator(sub_method: Callable[P, R]) -> Callable[P, R]:
            self._methods_map[key] = sub_method
            return sub_method

        return decorator

    def resolve(
        self,
        op_name: str,
        state: Hashable,
        trap_exception: Optional[
            Union[Exception, Callable[[str, Hashable], Exception]]
        ] = None,
    ) -> Callable:
        """
        Return the implementation registered for ``(op_name, state)``.

        Parameters
        ----------
        op_name : str
            Logical operation name.
        state : Hashable
            Current state value.
        trap_exception : optional
            Controls what happens when no implementation exists:

            - If `None`, raises `NotImplementedError`.
            - If an exception instance, raises it.
            - If a callable, raises ``trap_exception(op_name, state)``.
        """
        if sm := self._methods_map.get(PathKey(op_name, state)):
            return sm
        if not trap_exception:
            raise NotImplementedError(
                "Missing control path (state={}) for {}".format(
                    repr(state), repr(op_name)
                )
            )
        if isinstance(trap_exception, BaseException):
            raise trap_exception
        raise trap_exception(op_name, state)

    def has(self, op_name: str, state: Hashable) -> bool:
        return PathKey(op_name, state) in self._methods_map

    def ops_for(self, state: Hashable) -> Iterator[str]:
        """
        Iterate over operation names registered for a state.
        """
        for key in self._methods_map:
            if key.StateVal == state:
                yield key.OpName

    def unregister(self, op_name: str, state: Hashable) -> None:
        self._methods_map.pop(PathKey(op_name, state), None)


def create_path_builder() -> PathBuilder:
    """
    Create a registry with its own closure-local implementation map.

    Typical usage
    -------------
        kernels = create_path_builder()

        @kernels.register("add", "cpu")
        def add_cpu(a, b): ...

        fn = kernels.resolve("add", backend.name)
    """
    methods_map: Dict[PathKey, Callable] = {}
    return PathBuilder(methods_map)
