"""
Operation table.

Maps operation names to their `OpDef` (shape inference + gradient function).
Modules of this package register their operations at import time; the engine
looks them up on every dispatch.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from ...domain._function import BackwardFn, InferFn, OpDef

_OPS: Dict[str, OpDef] = {}


def register_op(
    name: str,
    infer: InferFn,
    backward: Optional[BackwardFn] = None,
    *,
    alias: bool = False,
) -> OpDef:
    """
    Register (or replace) the definition of an operation kind.
    """
    op = OpDef(name=name, infer=infer, backward=backward, alias=alias)
    _OPS[name] = op
    return op


def get_op(name: str) -> Optional[OpDef]:
    return _OPS.get(name)


def op_names() -> List[str]:
    return sorted(_OPS)
