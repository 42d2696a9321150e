"""
launchsync: a self-updating, manifest-driven application launcher.
"""

__version__ = "1.0.0"
