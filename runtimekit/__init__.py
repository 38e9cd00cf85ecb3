"""runtimekit — detect, query, add, update and remove project packages across ecosystems."""

__version__ = "0.1.0"
