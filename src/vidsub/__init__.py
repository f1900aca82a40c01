"""vidsub — offline video to subtitle generator."""

__version__ = "0.1.0"
