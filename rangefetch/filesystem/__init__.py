"""Filesystem management package for rangefetch."""

from .file_manager import FileManager

__all__ = [
    "FileManager"
]
