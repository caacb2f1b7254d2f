"""
Validation Exceptions

Author: System Architect
Date: 2026-01-12
"""

from badge_store.core.exceptions.base import BadgeStoreError


class ValidationError(BadgeStoreError):
    """
    Raised when caller input fails validation.

    This is the base class for all validation-related errors.
    """
    pass


class InvalidKeyError(ValidationError):
    """
    Raised when a storage key is empty or does not follow the key scheme.
    """
    pass


class UpstreamFetchError(BadgeStoreError):
    """
    Raised when an accessor cannot fetch fresh data from an external platform.
    """
    pass
