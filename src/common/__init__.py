"""
Common utilities for keedrop.

Modules:
- mnemo: random mnemo (token) generation
- retry: bounded retry combinator
- settings: environment-driven configuration
- logging_setup: stdout logging configuration
"""

__all__ = [
    "logging_setup",
    "mnemo",
    "retry",
    "settings",
]
