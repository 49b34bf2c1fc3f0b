"""
Token router: which facility does an entrance token open?

One registry (`entrance_tokens`) answers this; tokens are globally unique
there. Should the data still show one token under several active
facilities, the scan is refused and the fault is logged for an operator.
The router never picks one.
"""

from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.core.logging import get_logger
from facility_access.core.metrics import record_admission, record_configuration_fault
from facility_access.models.facility import EntranceToken, Facility
from facility_access.services.admission_service import AdmissionController
from facility_access.services.interfaces.notifier import Notifier
from facility_access.services.results import Denied, DenialKind
from facility_access.services.storage import run_with_retry

logger = get_logger(__name__)


@dataclass(frozen=True)
class FacilityHandle:
    facility: Facility
    notifier: Optional[Notifier] = None

    @property
    def code(self) -> str:
        return self.facility.code

    @property
    def ok(self) -> bool:
        return True

    def controller(self, **overrides) -> AdmissionController:
        return AdmissionController(self.facility, self.notifier, **overrides)


RouteResult = Union[FacilityHandle, Denied]


async def route(db: AsyncSession, token: str, notifier: Optional[Notifier] = None) -> RouteResult:
    """Resolve `token` to exactly one active facility."""

    async def attempt() -> RouteResult:
        result = await db.execute(
            select(Facility)
            .join(EntranceToken, EntranceToken.facility_id == Facility.id)
            .where(
                EntranceToken.token == token,
                EntranceToken.is_active.is_(True),
                Facility.is_active.is_(True),
            )
        )
        facilities = {facility.id: facility for facility in result.scalars().all()}
        # End the read transaction; a rollback would expire the loaded rows
        await db.commit()
        return _decide(token, list(facilities.values()), notifier)

    return await run_with_retry(db, "route", attempt)


def _decide(token: str, facilities: list[Facility], notifier: Optional[Notifier]) -> RouteResult:
    if not facilities:
        logger.info("token_unknown", token_suffix=token[-4:])
        record_admission("unrouted", DenialKind.UNKNOWN_TOKEN.value)
        return Denied(DenialKind.UNKNOWN_TOKEN)

    if len(facilities) > 1:
        codes = sorted(facility.code for facility in facilities)
        record_configuration_fault("ambiguous-token")
        record_admission("unrouted", DenialKind.AMBIGUOUS_TOKEN.value)
        logger.error("token_ambiguous", token_suffix=token[-4:], facilities=codes)
        return Denied(DenialKind.AMBIGUOUS_TOKEN)

    return FacilityHandle(facilities[0], notifier)


async def get_facility(db: AsyncSession, code: str) -> Optional[Facility]:
    async def attempt() -> Optional[Facility]:
        result = await db.execute(select(Facility).where(Facility.code == code, Facility.is_active.is_(True)))
        facility = result.scalar_one_or_none()
        await db.commit()
        return facility

    return await run_with_retry(db, "get_facility", attempt)
