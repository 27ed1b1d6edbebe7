"""
framechunk: framework-aware chunking of TypeScript, JavaScript and Svelte
sources for embedding and retrieval.
"""

from .version import __version__

__all__ = ["__version__"]
