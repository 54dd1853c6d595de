"""Lock down macOS Remote Login and Screen Sharing from the Recovery environment."""

from .__version__ import __version__


__all__ = ["__version__"]
