"""
Command Line Interface for hostsync.

This package provides the ``hostsync`` command: named sync commands plus the
built-in ``bootstrap``, ``config`` and ``status`` subcommands.
"""

__all__ = []
