"""
Lychee Notes - a tagged note store served over the Model Context Protocol.

Short text notes carry zero or more tags. Notes can be listed, edited and
retrieved by exact multi-tag intersection; tags that no note references any
more are garbage-collected automatically.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("lychee-notes")
except PackageNotFoundError:
    __version__ = "0.3.0"
