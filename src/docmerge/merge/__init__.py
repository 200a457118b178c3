"""Merge context resolution."""

from docmerge.merge.resolver import FieldValues, MergeContextResolver, is_truthy, normalize_value

__all__ = ["FieldValues", "MergeContextResolver", "is_truthy", "normalize_value"]
