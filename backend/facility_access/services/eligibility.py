"""
Eligibility of a member for a restriction class.

One decision table, no I/O. Evaluated in precedence order:
  open        -> eligible
  privileged  -> member tier must be in the privileged set
  male/female -> member gender must match; an unset gender is reported
                 separately so the caller can ask for profile completion
Any other tag is a catalog fault and fails closed.
"""

from dataclasses import dataclass
from typing import Iterable

from facility_access.schemas.member import Gender, MemberProfile

RESTRICTION_OPEN = "open"
RESTRICTION_MALE = "male"
RESTRICTION_FEMALE = "female"
RESTRICTION_PRIVILEGED = "privileged"

GENDER_RESTRICTIONS = {
    RESTRICTION_MALE: Gender.MALE,
    RESTRICTION_FEMALE: Gender.FEMALE,
}

DEFAULT_PRIVILEGED_TIERS = frozenset({"faculty", "pg", "alumni"})


@dataclass(frozen=True)
class EligibilityDecision:
    eligible: bool
    reason: str


ELIGIBLE = EligibilityDecision(True, "eligible")


def is_eligible(
    member: MemberProfile,
    restriction: str,
    privileged_tiers: Iterable[str] = DEFAULT_PRIVILEGED_TIERS,
) -> EligibilityDecision:
    tag = (restriction or "").strip().lower()

    if tag == RESTRICTION_OPEN:
        return ELIGIBLE

    if tag == RESTRICTION_PRIVILEGED:
        allowed = {tier.strip().lower() for tier in privileged_tiers}
        if member.tier.lower() in allowed:
            return ELIGIBLE
        return EligibilityDecision(False, "privileged-tier-required")

    required = GENDER_RESTRICTIONS.get(tag)
    if required is None:
        return EligibilityDecision(False, "invalid-restriction")

    if member.gender == Gender.UNSPECIFIED:
        return EligibilityDecision(False, "gender-not-set")
    if member.gender != required:
        return EligibilityDecision(False, "gender-mismatch")
    return ELIGIBLE
