"""
errors.py — Configuration Errors
==================================
Exceptions raised while describing, merging and decoding node configuration.
"""


class ConfigError(Exception):
    """A configuration value is missing, unreadable or fails to decode."""


class AddrParseError(ValueError):
    """An RPC address string does not describe a known address variant."""


class UnsupportedAddrError(ValueError):
    """An RPC address variant cannot be used for the requested purpose."""
