"""
Subscription gate: is the member's account entitled to check in today?

Source of truth for "overdue"
-----------------------------
The `payment_due` flag is flipped by a batch job some time after
`next_payment_date` passes, and cleared by the payment collaborator together
with advancing `next_payment_date`. The gate does not assume the batch job has
run recently. A subscription is overdue when EITHER:

  - `payment_due` is set, or
  - `next_payment_date` (plus the configured grace days) is today or earlier.

Both signals only ever lag towards "due", so taking the union never admits a
member that one of them already considers unpaid. Status flipping to
`suspended` stays the batch job's business.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

STATUS_ACTIVE = "active"


@dataclass(frozen=True)
class EntitlementDecision:
    entitled: bool
    reason: str


def is_payment_overdue(subscription, today: date, grace_days: int = 0) -> bool:
    if subscription.payment_due:
        return True
    due_on = subscription.next_payment_date
    if due_on is None:
        return False
    return due_on + timedelta(days=grace_days) <= today


def check_entitled(subscription: Optional[object], today: date, grace_days: int = 0) -> EntitlementDecision:
    if subscription is None:
        return EntitlementDecision(False, "no-subscription")

    if subscription.status != STATUS_ACTIVE:
        return EntitlementDecision(False, f"subscription-{subscription.status}")

    if is_payment_overdue(subscription, today, grace_days):
        return EntitlementDecision(False, "payment-overdue")

    return EntitlementDecision(True, "entitled")
