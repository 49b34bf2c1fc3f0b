"""
Tests for the subscription gate.
"""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from facility_access.services.subscription_gate import check_entitled

TODAY = date(2025, 3, 3)


def subscription(status="active", payment_due=False, next_payment_date=TODAY + timedelta(days=20)):
    return SimpleNamespace(status=status, payment_due=payment_due, next_payment_date=next_payment_date)


def test_active_paid_subscription_is_entitled():
    decision = check_entitled(subscription(), TODAY)
    assert decision.entitled
    assert decision.reason == "entitled"


def test_payment_due_flag_denies():
    decision = check_entitled(subscription(payment_due=True), TODAY)
    assert not decision.entitled
    assert decision.reason == "payment-overdue"


def test_passed_payment_date_denies_before_batch_job_flips_flag():
    decision = check_entitled(subscription(next_payment_date=TODAY - timedelta(days=1)), TODAY)
    assert decision.reason == "payment-overdue"


def test_payment_date_today_is_overdue():
    assert check_entitled(subscription(next_payment_date=TODAY), TODAY).reason == "payment-overdue"


def test_grace_days_extend_the_payment_date():
    sub = subscription(next_payment_date=TODAY - timedelta(days=2))
    assert check_entitled(sub, TODAY, grace_days=3).entitled
    assert not check_entitled(sub, TODAY, grace_days=2).entitled


def test_missing_payment_date_relies_on_flag():
    assert check_entitled(subscription(next_payment_date=None), TODAY).entitled


def test_no_subscription():
    assert check_entitled(None, TODAY).reason == "no-subscription"


@pytest.mark.parametrize("status", ["pending", "suspended", "cancelled", "expired"])
def test_inactive_status_denies_with_status_reason(status):
    decision = check_entitled(subscription(status=status), TODAY)
    assert not decision.entitled
    assert decision.reason == f"subscription-{status}"
