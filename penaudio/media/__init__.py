"""
Media Processing Layer.

This package is responsible for running the external codec tools, planning
the conversion stages per source format and validating converted files.
"""

from .integrity import FileIntegrityChecker
from .stages import ConversionPlan, Stage, plan_stages
from .subprocess_runner import SubprocessRunner
from .tools import ToolPaths

__all__ = [
    "ConversionPlan",
    "FileIntegrityChecker",
    "Stage",
    "SubprocessRunner",
    "ToolPaths",
    "plan_stages",
]
