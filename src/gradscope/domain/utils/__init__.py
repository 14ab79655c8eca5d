from ._registry import PathBuilder, PathKey, create_path_builder

__all__ = [PathBuilder.__name__, PathKey.__name__, create_path_builder.__name__]
