"""Result table and region archive I/O."""

from .registry_io import load_registry, save_pivot, save_registry

__all__ = ["load_registry", "save_pivot", "save_registry"]
