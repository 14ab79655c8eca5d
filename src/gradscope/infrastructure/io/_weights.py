"""
Weight-manifest decoding and loading.

A manifest is a list of groups::

    [
        {
            "paths": ["group1-shard1of2", "group1-shard2of2"],
            "weights": [
                {"name": "dense/kernel", "shape": [784, 32], "dtype": "float32"},
                {"name": "dense/bias", "shape": [32], "dtype": "float32"},
            ],
        },
    ]

The bytes of a group are the concatenation of its files in path order, and
each weight starts at the cumulative byte size of the weights listed before
it in the same group. Values are little-endian, row-major.

Only groups holding a requested weight are read.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..functional._shape_utils import shape_size

logger = logging.getLogger(__name__)

_DTYPE_SIZES = {"float32": 4, "int32": 4}

Manifest = Sequence[Mapping[str, Any]]
GroupBuffer = Union[bytes, bytearray, memoryview, Sequence[bytes]]


def _entry_bytes(entry: Mapping[str, Any]) -> int:
    dtype = entry.get("dtype", "float32")
    if dtype not in _DTYPE_SIZES:
        raise ValueError(f"Weight {entry.get('name')!r} has unknown dtype {dtype!r}.")
    return _DTYPE_SIZES[dtype] * shape_size(entry["shape"])


def _plan(
    manifest: Manifest, weight_names: Optional[Sequence[str]]
) -> Dict[int, List[Tuple[Mapping[str, Any], int, int]]]:
    """
    Map group index -> [(entry, offset, nbytes)] for the requested weights.
    """
    wanted = None if weight_names is None else list(weight_names)
    found = set()
    all_names: List[str] = []
    plan: Dict[int, List[Tuple[Mapping[str, Any], int, int]]] = {}

    for group_index, group in enumerate(manifest):
        offset = 0
        for entry in group["weights"]:
            nbytes = _entry_bytes(entry)
            name = entry["name"]
            if wanted is None or name in wanted:
                plan.setdefault(group_index, []).append((entry, offset, nbytes))
                found.add(name)
            all_names.append(name)
            offset += nbytes

    if wanted is not None:
        missing = [n for n in wanted if n not in found]
        if missing:
            raise ValueError(
                "Could not find weights in manifest with names: "
                f"{', '.join(missing)}. Manifest has weights with names: "
                f"{', '.join(all_names)}."
            )
    return plan


def _join(buffer: GroupBuffer) -> bytes:
    if isinstance(buffer, (bytes, bytearray, memoryview)):
        return bytes(buffer)
    return b"".join(bytes(b) for b in buffer)


def decode_weights(
    engine,
    manifest: Manifest,
    group_buffers: Sequence[Optional[GroupBuffer]],
    weight_names: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """
    Build named tensors from already-fetched group bytes.

    Parameters
    ----------
    engine : Engine
        Engine creating the tensors.
    manifest : Sequence[Mapping]
        Weight manifest.
    group_buffers : Sequence
        One entry per manifest group: the group bytes, or the list of its
        file contents in path order. Groups with no requested weight may be
        None.
    weight_names : Sequence[str], optional
        Names to decode. Defaults to every weight in the manifest.

    Returns
    -------
    dict[str, Tensor]
        Tensors keyed by weight name.

    Raises
    ------
    ValueError
        On an unknown name, unknown dtype, duplicate name, or a group whose
        bytes are too short.
    """
    if len(group_buffers) != len(manifest):
        raise ValueError(
            f"Expected {len(manifest)} group buffers, got {len(group_buffers)}"
        )
    plan = _plan(manifest, weight_names)

    # Every entry is checked before the first tensor is created.
    pending: Dict[str, Tuple[bytes, Mapping[str, Any]]] = {}
    for group_index, entries in plan.items():
        if group_buffers[group_index] is None:
            raise ValueError(f"Missing bytes for weight group {group_index}")
        data = _join(group_buffers[group_index])
        for entry, offset, nbytes in entries:
            name = entry["name"]
            if name in pending:
                raise ValueError(
                    f"Duplicate weight with name {name}. Weight names must be "
                    "unique in the manifest."
                )
            if offset + nbytes > len(data):
                raise ValueError(
                    f"Weight {name!r} needs bytes [{offset}, {offset + nbytes}) but "
                    f"group {group_index} holds {len(data)} bytes"
                )
            pending[name] = (data[offset : offset + nbytes], entry)

    return {
        name: engine.from_bytes(raw, entry["shape"], entry.get("dtype", "float32"))
        for name, (raw, entry) in pending.items()
    }


def read_manifest(path: Union[str, os.PathLike]) -> List[Dict[str, Any]]:
    """
    Read a JSON weight manifest from disk.
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_weights(
    engine,
    manifest: Manifest,
    path_prefix: Union[str, os.PathLike] = "",
    weight_names: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """
    Read the weight files named by a manifest and decode them.

    Parameters
    ----------
    engine : Engine
        Engine creating the tensors.
    manifest : Sequence[Mapping]
        Weight manifest.
    path_prefix : str or PathLike, optional
        Directory the manifest paths are relative to.
    weight_names : Sequence[str], optional
        Names to load. Defaults to every weight.

    Returns
    -------
    dict[str, Tensor]
        Tensors keyed by weight name.
    """
    plan = _plan(manifest, weight_names)
    buffers: List[Optional[List[bytes]]] = [None] * len(manifest)
    for group_index in plan:
        files = []
        for rel in manifest[group_index]["paths"]:
            full = os.path.join(os.fspath(path_prefix), rel)
            with open(full, "rb") as f:
                files.append(f.read())
        buffers[group_index] = files
        logger.debug("loaded weight group %d from %d files", group_index, len(files))
    return decode_weights(engine, manifest, buffers, weight_names)
