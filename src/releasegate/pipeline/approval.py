from __future__ import annotations

from collections.abc import Mapping
from typing import Any

APPROVED_STATE = "approved"


def evaluate_approval(review: Any) -> bool:
    """
    True iff the submitted review's state is "approved".

    Never raises. Anything that is not a mapping with a string state
    (commented, changes_requested, dismissed, garbage) counts as not approved.
    """
    if not isinstance(review, Mapping):
        return False

    state = review.get("state")
    if not isinstance(state, str):
        return False

    return state.strip().lower() == APPROVED_STATE
