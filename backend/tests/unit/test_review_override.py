from __future__ import annotations

import pytest

from hackadmin.moderation.domain.review import (
    calculate_approval_rate,
    can_auto_approve_submission,
    is_valid_review_requirement,
    requires_manual_review,
)


@pytest.mark.parametrize("auto_approval", [True, False])
def test_flagged_organizer_always_requires_review(auto_approval):
    assert requires_manual_review(True, auto_approval) is True
    assert can_auto_approve_submission(True, auto_approval) is False


@pytest.mark.parametrize("auto_approval", [True, False])
def test_unflagged_organizer_follows_hackathon_setting(auto_approval):
    assert requires_manual_review(False, auto_approval) is (not auto_approval)
    assert can_auto_approve_submission(False, auto_approval) is auto_approval


@pytest.mark.parametrize("flagged", [True, False])
@pytest.mark.parametrize("auto_approval", [True, False])
def test_rule_output_is_a_valid_requirement(flagged, auto_approval):
    assert is_valid_review_requirement(flagged, requires_manual_review(flagged, auto_approval))


def test_skipping_review_for_flagged_organizer_is_invalid():
    assert not is_valid_review_requirement(True, False)


@pytest.mark.parametrize(
    "approved, total, rate",
    [(0, 0, 100.0), (0, 5, 0.0), (5, 5, 100.0), (1, 3, 33.33), (2, 3, 66.67)],
)
def test_approval_rate(approved, total, rate):
    assert calculate_approval_rate(approved, total) == rate
