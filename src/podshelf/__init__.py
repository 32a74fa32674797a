"""podshelf - subscribe to podcast feeds and keep a portable local library."""

__version__ = "0.1.0"
