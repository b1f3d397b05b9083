"""Per-trainee plan progress (the trainee's `active_plans` ledger).

These helpers only mutate ORM objects already attached to the caller's
session; committing is left to the lifecycle operation that invoked them so
the progress update lands in the same unit of work.
"""
from typing import Optional
import logging
from backend.school_service import models

logger = logging.getLogger(__name__)


def find_plan_entry(trainee: models.Trainee, plan_id: int) -> Optional[models.PlanProgress]:
    for entry in trainee.active_plans:
        if entry.plan_id == plan_id:
            return entry
    return None


def add_plan_sessions(trainee: models.Trainee, plan: models.Plan) -> models.PlanProgress:
    """Open a ledger entry for `plan`, or top up the existing one by the plan's session count."""
    entry = find_plan_entry(trainee, plan.id)
    if entry is None:
        entry = models.PlanProgress(
            plan_id=plan.id,
            completed_sessions=0,
            total_sessions=plan.number_of_sessions,
            start_date=models.utc_now(),
            status=models.PlanProgressStatus.active,
        )
        trainee.active_plans.append(entry)
        logger.info(f"Trainee {trainee.id} started plan {plan.id} with {plan.number_of_sessions} sessions")
    else:
        entry.total_sessions += plan.number_of_sessions
        logger.info(f"Trainee {trainee.id} topped up plan {plan.id} to {entry.total_sessions} sessions")
    return entry


def record_completed_session(trainee: Optional[models.Trainee], plan_id: int) -> Optional[models.PlanProgress]:
    """Count one completed session against the trainee's entry for `plan_id`.

    A missing trainee or ledger entry is logged and otherwise ignored.
    """
    if trainee is None:
        logger.warning(f"Progress not recorded for plan {plan_id}: trainee no longer exists")
        return None

    entry = find_plan_entry(trainee, plan_id)
    if entry is None:
        logger.warning(
            f"Progress not recorded: trainee {trainee.id} has no active_plans entry for plan {plan_id}"
        )
        return None

    if entry.completed_sessions < entry.total_sessions:
        entry.completed_sessions += 1
    else:
        logger.warning(
            f"Trainee {trainee.id} plan {plan_id} already at {entry.completed_sessions}/{entry.total_sessions}, not incremented"
        )

    if entry.completed_sessions >= entry.total_sessions and entry.status != models.PlanProgressStatus.completed:
        entry.status = models.PlanProgressStatus.completed
        entry.end_date = models.utc_now()
        logger.info(f"Trainee {trainee.id} completed plan {plan_id}")
    return entry
