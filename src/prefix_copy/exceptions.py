# src/prefix_copy/exceptions.py
"""Custom exceptions for the prefix-copy application."""


class PrefixCopyError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigError(PrefixCopyError):
    """Raised for configuration-related issues."""

    pass


class BucketAccessError(PrefixCopyError):
    """Raised when a source or destination bucket cannot be reached."""

    pass


class TransferError(PrefixCopyError):
    """Raised when an object copy fails permanently."""

    pass
