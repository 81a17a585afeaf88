"""
notekeep - persistence core for a local note-taking application.

This package tracks in-memory edits to notes and their typed content records
(text bodies, call-log metadata) and commits them to a record store through
coalesced, atomic batch operations. It also provides bulk maintenance
operations (batch delete, batch move, visibility queries) that honour the
trash folder and the reserved system folders.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notekeep")
except PackageNotFoundError:
    __version__ = "0.3.0"
