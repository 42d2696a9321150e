"""
Transfer Layer.

This package is responsible for moving release files onto disk: streaming
downloads over HTTP and validating the integrity of cached files.
"""

from .downloader import DownloadedFile, Downloader, create_session
from .integrity import FileIntegrityChecker

__all__ = ["DownloadedFile", "Downloader", "FileIntegrityChecker", "create_session"]
