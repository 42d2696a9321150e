"""
Shared utilities: formatting helpers, the download circuit breaker, and the
structured event log.
"""
