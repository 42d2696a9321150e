"""
Command-line shell and terminal presentation for the launcher.
"""
