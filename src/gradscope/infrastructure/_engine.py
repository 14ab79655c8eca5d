"""
Engine context.

The `Engine` is the explicit context object that ties the subsystems
together:

- the memory engine (live tensor registry, buffer arena, scope stack);
- the active backend and the kernel registry it dispatches through;
- the stack of active gradient tapes and the gradient-recording switch;
- the registry of named variables.

Every tensor belongs to exactly one engine. Nothing here is global, so tests
create a fresh engine each and several engines can coexist in one process.

Dispatch (`execute`)
--------------------
1. Resolve the operation definition (unknown names raise
   `UnsupportedOperationError`).
2. Check every input is alive and lives on the active backend.
3. Run shape/dtype inference; mismatches raise before any device work.
4. Resolve the backend kernel and run it into fresh buffers (alias
   operations such as reshape reuse the input buffer instead).
5. Register the outputs in the innermost scope.
6. Append a record to every active tape unless recording is disabled.
"""

from __future__ import annotations

import itertools
import logging
import time
import warnings
from contextlib import contextmanager
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import numpy as np

from ..domain._dtype import DType, DTypeLike
from ..domain._errors import (
    DTypeMismatchError,
    DeviceMismatchError,
    NaNDetectedError,
    ShapeMismatchError,
    UnsupportedOperationError,
)
from ..domain._function import TensorSpec
from ..domain.device._device import Device
from ._config import EngineConfig
from ._dtypes import from_numpy_dtype, to_numpy_dtype
from ._gradients import backpropagate
from ._memory import MemoryEngine, MemoryInfo
from ._tape import GradientTape, OperationRecord
from .backends import KernelBackend, create_backend
from .functional import _creation, _transform
from .functional._op_table import get_op
from .functional._shape_utils import shape_size
from .ops import kernel_registry
from .tensor._tensor import Tensor, Variable

logger = logging.getLogger(__name__)

_VARIABLE_IDS = itertools.count()

TensorContainer = Union[Tensor, Sequence[Any], Mapping[Any, Any], None]


def _collect_tensors(obj: Any) -> List[Tensor]:
    """
    Flatten the tensors held by a (possibly nested) list, tuple or dict.
    """
    if obj is None:
        return []
    if isinstance(obj, Tensor):
        return [obj]
    if isinstance(obj, Mapping):
        obj = list(obj.values())
    if isinstance(obj, (list, tuple, set)):
        out: List[Tensor] = []
        for item in obj:
            out.extend(_collect_tensors(item))
        return out
    return []


class Engine:
    """
    Tensor engine context.

    Parameters
    ----------
    backend : str or KernelBackend, optional
        Backend to activate. Defaults to ``config.backend``.
    config : EngineConfig, optional
        Engine configuration. Defaults to `EngineConfig.from_env()`.

    Examples
    --------
    >>> engine = Engine("cpu")
    >>> x = engine.tensor([1.0, 2.0])
    >>> grads = engine.gradients(lambda: (x * x).sum(), [x])
    >>> grads[x.id].to_numpy()
    array([2., 4.], dtype=float32)
    """

    def __init__(
        self,
        backend: Union[str, KernelBackend, None] = None,
        *,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.config = config if config is not None else EngineConfig.from_env()
        self._memory = MemoryEngine()
        self._backends: Dict[str, KernelBackend] = {}
        self._backend: Optional[KernelBackend] = None
        self._tapes: List[GradientTape] = []
        self._grad_modes: List[bool] = []
        self._variables: Dict[str, Variable] = {}
        self.set_backend(backend if backend is not None else self.config.backend)

    # ------------------------------------------------------------------
    # backends
    # ------------------------------------------------------------------

    @property
    def backend(self) -> KernelBackend:
        return self._backend

    @property
    def backend_name(self) -> str:
        return self._backend.name

    def set_backend(self, backend: Union[str, KernelBackend]) -> KernelBackend:
        """
        Activate a backend by name (creating it on first use) or instance.

        Tensors living on the previously active backend stay readable but
        cannot be used as operation inputs until that backend is active
        again.
        """
        if isinstance(backend, str):
            inst = self._backends.get(backend) or create_backend(backend)
        else:
            inst = backend
        previous = self._backend
        if previous is not None and previous is not inst:
            live = sum(
                1
                for t in self._memory.live_tensors()
                if self._memory.buffer_backend(t.data_id) is previous
            )
            if live:
                warnings.warn(
                    f"Switching backend from '{previous.name}' to '{inst.name}' "
                    f"while {live} tensors are live on '{previous.name}'.",
                    RuntimeWarning,
                    stacklevel=2,
                )
        self._backends[inst.name] = inst
        self._backend = inst
        logger.debug("active backend: %s", inst.device)
        return inst

    def find_backend(self, name: str) -> Optional[KernelBackend]:
        return self._backends.get(name)

    def device_of(self, tensor: Tensor) -> Device:
        self._memory.check_alive(tensor, "inspect")
        return self._memory.buffer_backend(tensor.data_id).device

    def synchronize(self) -> None:
        """
        Wait for every queued kernel on every backend of this engine.
        """
        for b in self._backends.values():
            b.synchronize()

    def close(self) -> None:
        """
        Shut down backend resources (stream workers). Idempotent.
        """
        for b in self._backends.values():
            b.close()

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # dispatch
    # ------------------------------------------------------------------

    def execute(self, op_name: str, inputs: Sequence[Tensor] = (), **attrs: Any):
        """
        Run one operation on the active backend.

        Returns
        -------
        Tensor or tuple[Tensor, ...]
            The single output, or a tuple for multi-output operations.

        Raises
        ------
        UnsupportedOperationError
            Unknown operation, or no kernel for the active backend.
        DisposedTensorError
            An input was released.
        DeviceMismatchError
            An input lives on another backend.
        ShapeMismatchError, DTypeMismatchError
            Invalid operands (raised before any kernel runs).
        """
        backend = self._backend
        op = get_op(op_name)
        if op is None:
            raise UnsupportedOperationError(op_name, backend.name)

        inputs = tuple(inputs)
        for t in inputs:
            if not isinstance(t, Tensor):
                raise TypeError(
                    f"{op_name}: expected Tensor inputs, got {type(t).__name__}"
                )
            if t.engine is not self:
                raise ValueError(f"{op_name}: tensor {t.id} belongs to another engine")
            self._memory.check_alive(t)
            owner = self._memory.buffer_backend(t.data_id)
            if owner is not backend:
                raise DeviceMismatchError(str(owner.device), str(backend.device))

        specs = tuple(op.infer(inputs, attrs))

        if op.alias:
            outputs = tuple(self._wrap(inputs[0].data_id, s) for s in specs)
        else:
            kernel = kernel_registry.resolve(
                op_name, backend.name, trap_exception=UnsupportedOperationError
            )
            output_ids = [self._memory.new_data_id() for _ in specs]
            start = time.perf_counter()
            backend.run(
                kernel,
                [t.data_id for t in inputs],
                output_ids,
                specs,
                attrs,
                input_shapes=[t.shape for t in inputs],
            )
            for oid, s in zip(output_ids, specs):
                self._memory.add_buffer(oid, backend, s.nbytes)
            outputs = tuple(self._wrap(oid, s) for oid, s in zip(output_ids, specs))
            if self.config.debug:
                self._debug_check(op_name, outputs, start)

        self._record(op_name, inputs, outputs, attrs, op.backward)
        return outputs[0] if len(outputs) == 1 else outputs

    def _wrap(self, data_id: int, spec: TensorSpec, *, track: bool = True) -> Tensor:
        t = Tensor(self, spec.shape, spec.dtype, data_id)
        self._memory.register_tensor(t, track=track)
        return t

    def _debug_check(self, op_name: str, outputs: Sequence[Tensor], start: float) -> None:
        for t in outputs:
            if t.dtype.is_floating and np.isnan(self.read(t)).any():
                raise NaNDetectedError(op_name)
        logger.debug(
            "%s on %s: %.3f ms",
            op_name,
            self._backend.device,
            (time.perf_counter() - start) * 1e3,
        )

    def _record(
        self,
        op_name: str,
        inputs: Sequence[Tensor],
        outputs: Sequence[Tensor],
        attrs: Mapping[str, Any],
        backward,
    ) -> None:
        if not self._tapes or not self.grad_enabled:
            return
        rec = OperationRecord(
            name=op_name,
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            backward=backward,
            attrs=dict(attrs),
        )
        for tape in self._tapes:
            tape.record(rec)

    # ------------------------------------------------------------------
    # tensor factories
    # ------------------------------------------------------------------

    def tensor(
        self,
        values: Any,
        shape: Optional[Sequence[int]] = None,
        dtype: Optional[DTypeLike] = None,
    ) -> Tensor:
        """
        Create a tensor from host values (nested lists, scalars, arrays).

        The dtype is inferred when not given: floating values map to
        float32, integers to int32 and booleans to bool.

        Raises
        ------
        ShapeMismatchError
            If `shape` does not hold exactly as many elements as `values`.
        """
        if isinstance(values, Tensor):
            return _transform.cast(values, dtype) if dtype is not None else values.clone()
        arr = np.asarray(values)
        dt = DType.parse(dtype) if dtype is not None else from_numpy_dtype(arr.dtype)
        if shape is not None:
            shape = tuple(int(d) for d in shape)
            if arr.size != shape_size(shape):
                raise ShapeMismatchError(
                    "tensor", [arr.shape, shape], "value count does not match shape"
                )
            arr = arr.reshape(shape)
        return self._from_host(arr, dt)

    def _from_host(self, arr: np.ndarray, dtype: DType) -> Tensor:
        spec = TensorSpec(tuple(int(d) for d in arr.shape), dtype)
        data_id = self._new_buffer(arr, spec)
        return self._wrap(data_id, spec)

    def _new_buffer(self, arr: np.ndarray, spec: TensorSpec) -> int:
        data_id = self._memory.new_data_id()
        self._backend.write(data_id, arr, spec)
        self._memory.add_buffer(data_id, self._backend, spec.nbytes)
        return data_id

    def scalar(self, value: Any, dtype: Optional[DTypeLike] = None) -> Tensor:
        return self.tensor(value, shape=(), dtype=dtype)

    def fill(self, shape: Sequence[int], value: Any, dtype: DTypeLike = DType.FLOAT32) -> Tensor:
        return _creation.fill(self, shape, value, dtype)

    def zeros(self, shape: Sequence[int], dtype: DTypeLike = DType.FLOAT32) -> Tensor:
        return _creation.fill(self, shape, 0, dtype)

    def ones(self, shape: Sequence[int], dtype: DTypeLike = DType.FLOAT32) -> Tensor:
        return _creation.fill(self, shape, 1, dtype)

    def random_uniform(self, shape: Sequence[int], minval: float = 0.0, maxval: float = 1.0, dtype: DTypeLike = DType.FLOAT32, seed: Optional[int] = None) -> Tensor:
        return _creation.random_uniform(self, shape, minval, maxval, dtype, seed)

    def random_normal(self, shape: Sequence[int], mean: float = 0.0, stddev: float = 1.0, seed: Optional[int] = None) -> Tensor:
        return _creation.random_normal(self, shape, mean, stddev, seed)

    def from_bytes(
        self, buffer: bytes, shape: Sequence[int], dtype: DTypeLike = DType.FLOAT32
    ) -> Tensor:
        """
        Create a tensor from a little-endian row-major byte buffer.

        Raises
        ------
        ValueError
            If the buffer length does not equal ``size * itemsize``.
        """
        dt = DType.parse(dtype)
        shape = tuple(int(d) for d in shape)
        raw = bytes(buffer)
        expected = shape_size(shape) * dt.itemsize
        if len(raw) != expected:
            raise ValueError(
                f"from_bytes: expected {expected} bytes for shape {list(shape)} "
                f"and dtype {dt}, got {len(raw)}"
            )
        arr = np.frombuffer(raw, dtype=to_numpy_dtype(dt).newbyteorder("<"))
        return self._from_host(arr.reshape(shape), dt)

    # ------------------------------------------------------------------
    # variables
    # ------------------------------------------------------------------

    def variable(
        self,
        initial: Any,
        trainable: bool = True,
        name: Optional[str] = None,
        dtype: Optional[DTypeLike] = None,
    ) -> Variable:
        """
        Create a named variable from a tensor or host values.

        A tensor initial value is adopted without copying (the variable
        shares its buffer). Variables are not tracked by scopes.

        Raises
        ------
        ValueError
            If a variable with the same name is already registered.
        """
        if name is None:
            name = f"variable_{next(_VARIABLE_IDS)}"
        if name in self._variables:
            raise ValueError(f"Variable with name {name!r} was already registered")

        if isinstance(initial, Tensor):
            src = _transform.cast(initial, dtype) if dtype is not None else initial
            self._memory.check_alive(src, "read")
            owner = self._memory.buffer_backend(src.data_id)
            if owner is not self._backend:
                raise DeviceMismatchError(str(owner.device), str(self._backend.device))
            shape, dt, data_id = src.shape, src.dtype, src.data_id
        else:
            arr = np.asarray(initial)
            dt = DType.parse(dtype) if dtype is not None else from_numpy_dtype(arr.dtype)
            spec = TensorSpec(tuple(int(d) for d in arr.shape), dt)
            shape, data_id = spec.shape, self._new_buffer(arr, spec)

        v = Variable(self, shape, dt, data_id, name=name, trainable=trainable)
        self._memory.register_tensor(v, track=False)
        self._variables[name] = v
        return v

    def assign(self, variable: Variable, value: Tensor) -> None:
        """
        Rebind `variable` onto the buffer of `value`.

        Raises
        ------
        ShapeMismatchError, DTypeMismatchError
            If `value` does not match the variable.
        DeviceMismatchError
            If `value` lives on another backend than the variable.
        """
        if not isinstance(variable, Variable):
            raise TypeError(f"assign() expects a Variable, got {type(variable).__name__}")
        self._memory.check_alive(variable, "assign")
        self._memory.check_alive(value, "read")
        if tuple(variable.shape) != tuple(value.shape):
            raise ShapeMismatchError("assign", [variable.shape, value.shape])
        if variable.dtype is not value.dtype:
            raise DTypeMismatchError("assign", [variable.dtype, value.dtype])
        target = self._memory.buffer_backend(variable.data_id)
        owner = self._memory.buffer_backend(value.data_id)
        if owner is not target:
            raise DeviceMismatchError(str(owner.device), str(target.device))
        self._memory.rebind(variable, value.data_id)
        variable._rebind(value.data_id)

    @property
    def variables(self) -> Dict[str, Variable]:
        return dict(self._variables)

    @property
    def trainable_variables(self) -> List[Variable]:
        return [v for v in self._variables.values() if v.trainable]

    # ------------------------------------------------------------------
    # memory
    # ------------------------------------------------------------------

    @property
    def memory_engine(self) -> MemoryEngine:
        return self._memory

    def read(self, tensor: Tensor) -> np.ndarray:
        """
        Blocking read-back of a tensor's values.
        """
        self._memory.check_alive(tensor, "read")
        backend = self._memory.buffer_backend(tensor.data_id)
        return backend.read(tensor.data_id).reshape(tensor.shape)

    async def read_async(self, tensor: Tensor) -> np.ndarray:
        self._memory.check_alive(tensor, "read")
        backend = self._memory.buffer_backend(tensor.data_id)
        arr = await backend.read_async(tensor.data_id)
        return arr.reshape(tensor.shape)

    def dispose(self, container: TensorContainer) -> None:
        """
        Release a tensor, or every tensor in a list, tuple or dict.

        Raises
        ------
        DisposedTensorError
            If a tensor was already released.
        """
        if container is None:
            return
        if isinstance(container, Tensor):
            self._memory.dispose(container)
            if isinstance(container, Variable):
                if self._variables.get(container.name) is container:
                    del self._variables[container.name]
            return
        if isinstance(container, Mapping):
            container = list(container.values())
        if isinstance(container, (list, tuple, set)):
            for item in container:
                self.dispose(item)
            return
        raise TypeError(f"dispose() cannot release {type(container).__name__}")

    def keep(self, tensor: Tensor) -> Tensor:
        """
        Exempt a tensor from release by any scope.
        """
        return self._memory.keep(tensor)

    def memory(self) -> MemoryInfo:
        return self._memory.info()

    def num_live_tensors(self) -> int:
        return self._memory.num_live_tensors()

    def num_live_bytes(self) -> int:
        return self._memory.num_live_bytes()

    # ------------------------------------------------------------------
    # scopes
    # ------------------------------------------------------------------

    def start_scope(self, name: Optional[str] = None) -> None:
        self._memory.start_scope(name)

    def end_scope(self, result: Any = None) -> None:
        """
        Pop the innermost scope, keeping the tensors held by `result`.
        """
        self._memory.end_scope(_collect_tensors(result))

    def scope(self, fn: Callable[..., Any], *args: Any, name: Optional[str] = None, **kwargs: Any) -> Any:
        """
        Run ``fn(*args, **kwargs)`` in a new scope.

        Every tensor created inside is released when `fn` returns, except
        the tensors held by its return value (a tensor, or a list, tuple or
        dict of tensors). On error every tensor created inside is released
        and the error propagates.
        """
        self.start_scope(name)
        try:
            result = fn(*args, **kwargs)
        except BaseException:
            self.end_scope()
            raise
        self.end_scope(result)
        return result

    # ------------------------------------------------------------------
    # gradient recording
    # ------------------------------------------------------------------

    @property
    def grad_enabled(self) -> bool:
        return self._grad_modes[-1] if self._grad_modes else True

    @contextmanager
    def _grad_mode(self, enabled: bool) -> Iterator[None]:
        self._grad_modes.append(bool(enabled))
        try:
            yield
        finally:
            self._grad_modes.pop()

    def no_grad(self):
        """
        Context manager that disables tape recording (inference mode).
        """
        return self._grad_mode(False)

    # ------------------------------------------------------------------
    # differentiation
    # ------------------------------------------------------------------

    def _differentiate(
        self,
        f: Callable[[], Tensor],
        xs: Sequence[Tensor],
        dy: Optional[Tensor],
        *,
        allow_missing: bool,
        keep_value: bool,
    ) -> Tuple[Optional[Tensor], Dict[int, Tensor]]:
        xs = list(xs)
        if not xs:
            raise ValueError("gradients() requires at least one source tensor")
        for x in xs:
            self._memory.check_alive(x, "differentiate")

        tape = GradientTape(self._memory, name="gradients")
        kept: List[Tensor] = []
        self.start_scope("gradients")
        try:
            self._tapes.append(tape)
            try:
                with self._grad_mode(True):
                    y = f()
            finally:
                self._tapes.remove(tape)

            if not isinstance(y, Tensor):
                raise TypeError(
                    f"gradients() expects f to return a Tensor, got {type(y).__name__}"
                )
            if not y.dtype.is_floating:
                raise DTypeMismatchError("gradients", [y.dtype], "f must return float32")
            if dy is None:
                if y.rank != 0:
                    raise ShapeMismatchError(
                        "gradients",
                        [y.shape, ()],
                        "f must return a scalar when dy is not provided",
                    )
                seed = _creation.ones_like(y)
            else:
                self._memory.check_alive(dy, "read")
                if tuple(dy.shape) != tuple(y.shape):
                    raise ShapeMismatchError(
                        "gradients", [y.shape, dy.shape], "dy must match f's output"
                    )
                if dy.dtype is not y.dtype:
                    raise DTypeMismatchError("gradients", [y.dtype, dy.dtype])
                seed = dy

            logger.debug("gradients: replaying %d records", len(tape))
            grads = backpropagate(
                tape.records, y, seed, xs, allow_missing=allow_missing
            )
            kept = list(grads.values())
            if keep_value:
                kept.append(y)
        finally:
            tape.release()
            self.end_scope(kept)
        return (y if keep_value else None), grads

    def gradients(
        self,
        f: Callable[[], Tensor],
        xs: Sequence[Tensor],
        dy: Optional[Tensor] = None,
    ) -> Dict[int, Tensor]:
        """
        Gradients of ``f()`` with respect to each tensor in `xs`.

        Parameters
        ----------
        f : Callable[[], Tensor]
            Computation to differentiate. Must return a scalar unless `dy`
            is given.
        xs : Sequence[Tensor]
            Sources.
        dy : Tensor, optional
            Seed gradient with the shape of ``f()``. Defaults to ones.

        Returns
        -------
        dict[int, Tensor]
            Gradient per source, keyed by source id. Only these tensors
            survive the call.

        Raises
        ------
        MissingGradientError
            A source is not reachable from the output.
        NonDifferentiableError
            A source only flows through a non-differentiable input.
        GradientNotDefinedError
            An operation on the path has no gradient function.
        ShapeMismatchError
            ``f()`` is not scalar and `dy` is not given.
        """
        _, grads = self._differentiate(f, xs, dy, allow_missing=False, keep_value=False)
        return grads

    def value_and_gradients(
        self,
        f: Callable[[], Tensor],
        xs: Sequence[Tensor],
        dy: Optional[Tensor] = None,
    ) -> Tuple[Tensor, Dict[int, Tensor]]:
        """
        Like `gradients`, also returning the value of ``f()``.
        """
        return self._differentiate(f, xs, dy, allow_missing=False, keep_value=True)

    def variable_grads(
        self,
        f: Callable[[], Tensor],
        var_list: Optional[Sequence[Variable]] = None,
    ) -> Tuple[Tensor, Dict[str, Tensor]]:
        """
        Value of scalar ``f()`` and its gradients with respect to trainable
        variables (all registered ones by default), keyed by variable name.

        Variables that ``f`` does not depend on are left out of the result.

        Raises
        ------
        ValueError
            If none of the variables is trainable.
        """
        candidates = list(var_list) if var_list is not None else list(self._variables.values())
        trainable = [v for v in candidates if v.trainable]
        if not trainable:
            raise ValueError(
                "variable_grads() expects at least one of the input variables to "
                f"be trainable, but none of the {len(candidates)} variables is "
                "trainable."
            )
        value, grads = self._differentiate(
            f, trainable, None, allow_missing=True, keep_value=True
        )
        return value, {v.name: grads[v.id] for v in trainable if v.id in grads}

    def grad(self, f: Callable[[Tensor], Tensor]) -> Callable[..., Tensor]:
        """
        Transform ``f(x)`` into ``g(x, dy=None)`` returning ``df/dx``.
        """

        def g(x: Tensor, dy: Optional[Tensor] = None) -> Tensor:
            return self.gradients(lambda: f(x), [x], dy)[x.id]

        return g

    def grads(self, f: Callable[..., Tensor]) -> Callable[..., List[Tensor]]:
        """
        Transform ``f(*xs)`` into ``g(xs, dy=None)`` returning the list of
        gradients with respect to each argument.
        """

        def g(xs: Sequence[Tensor], dy: Optional[Tensor] = None) -> List[Tensor]:
            xs = list(xs)
            res = self.gradients(lambda: f(*xs), xs, dy)
            return [res[x.id] for x in xs]

        return g

    def value_and_grad(self, f: Callable[[Tensor], Tensor]):
        """
        Transform ``f(x)`` into ``g(x, dy=None)`` returning ``(f(x), df/dx)``.
        """

        def g(x: Tensor, dy: Optional[Tensor] = None) -> Tuple[Tensor, Tensor]:
            value, res = self.value_and_gradients(lambda: f(x), [x], dy)
            return value, res[x.id]

        return g

    def custom_grad(self, f: Callable[..., Tuple[Tensor, Callable]]) -> Callable[..., Tensor]:
        """
        Wrap ``f(*inputs) -> (value, grad_fn)`` into a function whose
        gradient is ``grad_fn(dy)`` (one gradient per input).

        The forward computation of `f` is not recorded; a single tape entry
        connects the inputs to the value.
        """

        def wrapped(*inputs: Tensor) -> Tensor:
            for t in inputs:
                if not isinstance(t, Tensor):
                    raise TypeError("custom_grad inputs must be Tensors")
            with self.no_grad():
                value, grad_fn = f(*inputs)
            if not isinstance(value, Tensor):
                raise TypeError("custom_grad function must return (Tensor, grad_fn)")

            def backward(rec: OperationRecord, dy: Tensor):
                grads = grad_fn(dy)
                if isinstance(grads, Tensor):
                    grads = (grads,)
                grads = tuple(grads)
                if len(grads) != len(rec.inputs):
                    raise ValueError(
                        f"custom gradient returned {len(grads)} gradients for "
                        f"{len(rec.inputs)} inputs"
                    )
                return grads

            self._record("custom_gradient", inputs, (value,), {}, backward)
            return value

        return wrapped
