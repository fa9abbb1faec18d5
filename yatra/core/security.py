"""Security utilities (placeholder until the admin auth service is wired in)."""
from typing import Optional


def get_current_user() -> Optional[str]:
    """
    Get the operator performing the current action.

    Authentication lives in the admin portal; until its token is forwarded
    here every write is attributed to the system operator.
    """
    return "operator"
