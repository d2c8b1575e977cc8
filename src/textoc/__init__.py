"""
textoc - a personal note-taking workspace core.

Notes live in a SQLite store (the source of truth), are mirrored to one
markdown file per note, and the mirror directory is backed up with git.
The workspace layer keeps filtered views, selection and focus state in
memory on top of the store.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("textoc")
except PackageNotFoundError:
    __version__ = "0.3.0"
