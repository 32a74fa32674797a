"""Media download module for podshelf."""

from podshelf.audio.downloader import MediaDownloader

__all__ = ["MediaDownloader"]
