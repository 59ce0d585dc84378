"""Filesystem-backed presence and messaging for agents living in tmux."""

from .node import Node

__version__ = "0.1.0"

__all__ = ["Node", "__version__"]
