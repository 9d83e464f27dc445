"""Organizer review rules.

A flagged organizer's submissions always go to manual review, whatever the
hackathon's auto-approval setting says. The rule is recomputed from the
current flag on every evaluation.
"""

from __future__ import annotations


def requires_manual_review(is_flagged: bool, auto_approval_enabled: bool) -> bool:
    if is_flagged:
        return True
    return not auto_approval_enabled


def can_auto_approve_submission(is_flagged: bool, auto_approval_enabled: bool) -> bool:
    if is_flagged:
        return False
    return bool(auto_approval_enabled)


def is_valid_review_requirement(is_flagged: bool, requires_review: bool) -> bool:
    return not (is_flagged and not requires_review)


def calculate_approval_rate(approved: int, total: int) -> float:
    """Approved share as a percentage with two decimals; no hackathons counts as 100%."""
    if total <= 0:
        return 100.0
    return round(approved / total * 100, 2)
