"""
Version information for the sparse space-time heat package.
"""

# MAJOR.MINOR.PATCH
__version__ = "0.3.0"

VERSION_INFO = tuple(int(x) for x in __version__.split('.'))
