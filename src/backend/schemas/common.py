"""
Shared schema types.
"""

from enum import Enum


class CheckOutcome(str, Enum):
    """
    Classification of every check result.

    indeterminate means the store could not be reached; callers must not
    read it as either a pass or a denial.
    """

    ALLOWED = "allowed"
    DENIED = "denied"
    INDETERMINATE = "indeterminate"
