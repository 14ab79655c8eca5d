from ._weights import decode_weights, load_weights, read_manifest

__all__ = ["decode_weights", "load_weights", "read_manifest"]
