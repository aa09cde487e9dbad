"""Multi-tenant support chat backend with human handoff."""

from .__version__ import __version__

__all__ = ["__version__"]
