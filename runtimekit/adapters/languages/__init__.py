"""Language adapters — nodejs, python, go."""

from runtimekit.adapters.languages.go import GoAdapter
from runtimekit.adapters.languages.node import NodeAdapter
from runtimekit.adapters.languages.python import PythonAdapter

__all__ = ["GoAdapter", "NodeAdapter", "PythonAdapter"]
