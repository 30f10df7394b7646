"""Starter kit for new hires, handed out through quick assignment."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import ACTIVITY_ONBOARDING_COMPLETED, EMPLOYEE_STATUS_ACTIVE, ENTITY_EMPLOYEE
from resource_portal.core.config import settings
from resource_portal.models.employee import Employee
from resource_portal.request_context import RequestContext
from resource_portal.schemas.employee import OnboardingFailure, OnboardingResult
from resource_portal.schemas.user import UserContext
from resource_portal.services.assignment_service import quick_assign
from resource_portal.services.audit_service import write_audit_log
from resource_portal.services.timeline_service import log_timeline_activity

logger = logging.getLogger("portal.onboarding")

ONBOARDING_NOTE = "Assigned during onboarding"


def _failure(resource_id: int, exc: HTTPException) -> OnboardingFailure:
    if isinstance(exc.detail, dict):
        return OnboardingFailure(
            resource_id=resource_id,
            code=str(exc.detail.get("code")),
            message=exc.detail.get("message"),
        )
    return OnboardingFailure(resource_id=resource_id, code=str(exc.detail))


async def onboard_employee(
    session: AsyncSession,
    employee: Employee,
    resource_ids: list[int] | None,
    *,
    notes: str | None,
    actor: UserContext,
    context: RequestContext | None,
) -> OnboardingResult:
    """Quick-assign each starter resource; one that cannot be handed out is reported, not fatal.

    ``quick_assign`` raises before it writes anything, so a failed resource
    leaves nothing behind in the session.
    """
    if employee.status != EMPLOYEE_STATUS_ACTIVE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="employee_not_active")
    wanted = list(dict.fromkeys(resource_ids if resource_ids is not None else settings.onboarding_resource_ids))
    if not wanted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="onboarding_resources_not_configured")

    result = OnboardingResult(employee_id=employee.employee_id)
    for resource_id in wanted:
        try:
            outcome = await quick_assign(
                session,
                resource_id=resource_id,
                employee_id=employee.employee_id,
                notes=notes or ONBOARDING_NOTE,
                actor=actor,
                context=context,
            )
        except HTTPException as exc:
            result.failed.append(_failure(resource_id, exc))
            logger.warning(
                "onboarding_resource_skipped",
                extra={"employee_id": employee.employee_id, "resource_id": resource_id, "detail": exc.detail},
            )
            continue
        if outcome.created:
            result.assigned.append(resource_id)
        else:
            result.already_held.append(resource_id)

    await write_audit_log(
        session,
        actor=actor,
        action="EMPLOYEE_ONBOARD",
        entity_type=ENTITY_EMPLOYEE,
        entity_id=str(employee.employee_id),
        before=None,
        after=result.model_dump(),
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_EMPLOYEE,
        entity_id=employee.employee_id,
        activity_type=ACTIVITY_ONBOARDING_COMPLETED,
        title=f"Onboarding resources assigned to {employee.name}",
        description=f"{len(result.assigned)} assigned, {len(result.failed)} could not be assigned",
        metadata={
            "role": employee.role,
            "department": employee.department,
            "requested": wanted,
            "failed": [failure.model_dump() for failure in result.failed],
        },
        employee_id=employee.employee_id,
    )
    logger.info(
        "employee_onboarded",
        extra={
            "employee_id": employee.employee_id,
            "assigned": len(result.assigned),
            "failed": len(result.failed),
        },
    )
    return result
