"""
JSON Patch generation for mutating admission responses.
"""

from .generator import diff, filter_by_path_prefix, generate_patches_from, to_canonical

__all__ = [
    "diff",
    "filter_by_path_prefix",
    "generate_patches_from",
    "to_canonical",
]
