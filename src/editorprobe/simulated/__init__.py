"""In-memory editor host and language backend for self-contained runs."""

from .backend import CodeLens, Location, SimulatedLanguageBackend
from .documents import SampleWorkspace, SimulatedDocument
from .workbench import SimulatedEditor, SimulatedWorkbench

__all__ = [
    "CodeLens",
    "Location",
    "SampleWorkspace",
    "SimulatedDocument",
    "SimulatedEditor",
    "SimulatedLanguageBackend",
    "SimulatedWorkbench",
]
