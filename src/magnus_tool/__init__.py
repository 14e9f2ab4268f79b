"""Magnus Tool - run SQL against a remote application server over HTTP."""

from magnus_tool.__about__ import __version__

__all__ = ["__version__"]
