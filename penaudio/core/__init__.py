"""
Core conversion engine.

The `MediaFileConverter` owns the per-file pipeline: cache lookup, stage
execution and atomic commit. The `BatchConverter` fans a list of sources
out over it with bounded concurrency.
"""

from .batch import BatchConverter
from .converter import MediaFileConverter

__all__ = ["BatchConverter", "MediaFileConverter"]
