"""Cloud assembly loading and stack selection."""

from cdkdiff.assembly.manifest import load_assembly
from cdkdiff.assembly.models import CloudAssembly, Stage
from cdkdiff.assembly.selection import select_stages

__all__ = ["CloudAssembly", "Stage", "load_assembly", "select_stages"]
