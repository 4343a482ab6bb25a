"""
Data Models Layer.

This package contains the Pydantic configuration model and the dataclasses
that describe sources and conversion outcomes.
"""

from .config import ConverterConfig
from .source import SourceReference
from .stats import ConversionOutcome, ConversionState, ConversionStats

__all__ = [
    "ConverterConfig",
    "SourceReference",
    "ConversionOutcome",
    "ConversionState",
    "ConversionStats",
]
