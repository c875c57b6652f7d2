"""IDEA module descriptor (.iml) generation and merge package."""

from .cli import generate, main
from .build_loader import load_build
from .descriptor_merger import generate_module, generate_project
from .iml_models import MergeHooks, ModuleDescriptor, ModuleSettings

__all__ = [
    "generate", "main", "load_build", "generate_module", "generate_project",
    "MergeHooks", "ModuleDescriptor", "ModuleSettings",
]
