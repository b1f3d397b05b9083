"""Booking lifecycle.

    pending -> confirmed -> completed
    pending | confirmed -> cancelled

Every operation that touches more than the booking row runs in a single
`unit_of_work`, so trainer/trainee/session side effects are written together
with the booking or not at all.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
import logging
from backend.school_service import models, schemas, crud
from backend.school_service.database import unit_of_work
from backend.school_service.errors import NotFound, InvalidArgument, InvalidState, PreconditionFailed, Forbidden

logger = logging.getLogger(__name__)

CANCELLABLE = (models.BookingStatus.pending, models.BookingStatus.confirmed)
RETARGETABLE_SESSIONS = (models.SessionStatus.scheduled, models.SessionStatus.rescheduled)
CANCELLED_ON_BOOKING_CANCEL = (models.SessionStatus.scheduled, models.SessionStatus.rescheduled)


async def get_booking(db: AsyncSession, booking_id: int) -> models.Booking:
    booking = await crud.get_booking_by_id(db, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    return booking

async def list_bookings(db: AsyncSession, status: Optional[str] = None):
    query = select(models.Booking)
    if status:
        query = query.filter(models.Booking.status == crud.parse_enum(models.BookingStatus, status, "booking status"))
    result = await db.execute(query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc()))
    return result.scalars().all()

async def get_active_trainer(db: AsyncSession, trainer_id: int) -> models.Trainer:
    trainer = await crud.get_trainer_by_id(db, trainer_id)
    if trainer is None:
        raise NotFound("Trainer not found")
    if trainer.status != models.TrainerStatus.active:
        raise PreconditionFailed("Selected trainer is not active")
    return trainer

def assign_trainee(trainer: models.Trainer, trainee_id: int):
    if any(m.trainee_id == trainee_id for m in trainer.trainee_mappings):
        return
    trainer.trainee_mappings.append(models.TrainerTraineeMap(trainee_id=trainee_id))

def unassign_trainee(trainer: models.Trainer, trainee_id: int):
    for mapping in list(trainer.trainee_mappings):
        if mapping.trainee_id == trainee_id:
            trainer.trainee_mappings.remove(mapping)

async def create_booking(db: AsyncSession, trainee: models.Trainee, booking_in: schemas.BookingCreate) -> models.Booking:
    plan = await crud.get_plan_by_id(db, booking_in.plan_id)
    if plan is None or not plan.is_active:
        raise NotFound("Plan not found or is not active")

    booking = models.Booking(
        trainee_id=trainee.id,
        plan_id=plan.id,
        preferred_start_date=booking_in.preferred_start_date.replace(tzinfo=None),
        preferred_times=[t.model_dump(mode="json") for t in booking_in.preferred_times],
        status=models.BookingStatus.pending,
        # Price is captured once here and never recalculated
        total_price=plan.price,
        notes=booking_in.notes or "",
        session_ids=[],
        trainer_change_request=None,
    )
    async with unit_of_work(db):
        db.add(booking)
    logger.info(f"Trainee {trainee.id} booked plan {plan.id} (booking {booking.id}, price {booking.total_price})")
    return booking

async def confirm_booking(db: AsyncSession, booking_id: int, trainer_id: Optional[int]) -> models.Booking:
    if not trainer_id:
        raise InvalidArgument("Please provide a trainer ID")

    booking = await get_booking(db, booking_id)
    if booking.status != models.BookingStatus.pending:
        raise InvalidState(f"Booking is already {booking.status.value}")

    trainer = await get_active_trainer(db, trainer_id)
    trainee = await crud.get_trainee_by_id(db, booking.trainee_id)

    async with unit_of_work(db):
        booking.trainer_id = trainer.id
        booking.status = models.BookingStatus.confirmed
        assign_trainee(trainer, booking.trainee_id)
        if trainee:
            trainee.assigned_trainer_id = trainer.id
    logger.info(f"Booking {booking.id} confirmed with trainer {trainer.id}")
    return booking

async def can_cancel(db: AsyncSession, booking: models.Booking, user: models.User) -> bool:
    if user.role == models.UserRole.admin:
        return True
    if user.role == models.UserRole.trainee:
        trainee = await crud.get_trainee_by_user_uid(db, user.uid)
        return trainee is not None and trainee.id == booking.trainee_id
    if user.role == models.UserRole.trainer:
        trainer = await crud.get_trainer_by_user_uid(db, user.uid)
        return trainer is not None and trainer.id == booking.trainer_id
    return False

async def cancel_booking(db: AsyncSession, booking_id: int, user: models.User) -> models.Booking:
    booking = await get_booking(db, booking_id)
    if not await can_cancel(db, booking, user):
        raise Forbidden("Not authorized to cancel this booking")
    if booking.status not in CANCELLABLE:
        raise InvalidState(f"Cannot cancel a booking that is {booking.status.value}")

    result = await db.execute(
        select(models.Session).filter(
            models.Session.booking_id == booking.id,
            models.Session.status.in_(CANCELLED_ON_BOOKING_CANCEL),
        )
    )
    sessions = result.scalars().all()

    async with unit_of_work(db):
        booking.status = models.BookingStatus.cancelled
        for session in sessions:
            session.status = models.SessionStatus.cancelled
    logger.info(f"Booking {booking.id} cancelled by {user.role.value} {user.uid}, {len(sessions)} sessions cancelled")
    return booking

async def request_trainer_change(db: AsyncSession, trainee: models.Trainee, booking_id: int, reason: Optional[str]) -> models.Booking:
    if not reason or not reason.strip():
        raise InvalidArgument("Please provide a reason for changing the trainer")

    booking = await crud.get_booking_by_id(db, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.trainee_id != trainee.id:
        raise Forbidden("Not authorized to access this booking")
    if booking.status != models.BookingStatus.confirmed:
        raise InvalidState("Can only request trainer change for confirmed bookings")

    async with unit_of_work(db):
        request = booking.trainer_change_request
        if request is None:
            booking.trainer_change_request = models.TrainerChangeRequest(reason=reason)
            request = booking.trainer_change_request
        # A new request replaces whatever was there before
        request.requested = True
        request.reason = reason
        request.date = models.utc_now()
        request.status = models.ChangeRequestStatus.pending
        # Bump the booking version so racing requests conflict
        booking.updated_at = models.utc_now()
    logger.info(f"Trainee {trainee.id} requested a trainer change on booking {booking.id}")
    return booking

async def resolve_trainer_change(
    db: AsyncSession,
    booking_id: int,
    status: Optional[str],
    new_trainer_id: Optional[int] = None,
) -> models.Booking:
    if status not in (models.ChangeRequestStatus.approved.value, models.ChangeRequestStatus.rejected.value):
        raise InvalidArgument("Please provide a valid status (approved or rejected)")
    decision = models.ChangeRequestStatus(status)

    booking = await get_booking(db, booking_id)
    request = booking.trainer_change_request
    if request is None or not request.requested:
        raise InvalidState("No trainer change request found for this booking")

    if decision == models.ChangeRequestStatus.rejected:
        async with unit_of_work(db):
            request.status = decision
            booking.updated_at = models.utc_now()
        logger.info(f"Trainer change request on booking {booking.id} rejected")
        return booking

    if not new_trainer_id:
        raise InvalidArgument("Please provide a new trainer ID when approving a change request")
    new_trainer = await get_active_trainer(db, new_trainer_id)
    old_trainer_id = booking.trainer_id
    old_trainer = None
    if old_trainer_id and old_trainer_id != new_trainer.id:
        old_trainer = await crud.get_trainer_by_id(db, old_trainer_id)
    trainee = await crud.get_trainee_by_id(db, booking.trainee_id)

    result = await db.execute(
        select(models.Session).filter(
            models.Session.booking_id == booking.id,
            models.Session.status.in_(RETARGETABLE_SESSIONS),
        )
    )
    sessions = result.scalars().all()

    async with unit_of_work(db):
        request.status = decision
        booking.trainer_id = new_trainer.id

        if trainee:
            if old_trainer_id:
                trainee.previous_trainers.append(models.TrainerHistory(
                    trainer_id=old_trainer_id,
                    reason=request.reason,
                    date=models.utc_now(),
                ))
            trainee.assigned_trainer_id = new_trainer.id

        if old_trainer:
            unassign_trainee(old_trainer, booking.trainee_id)
        assign_trainee(new_trainer, booking.trainee_id)

        for session in sessions:
            session.trainer_id = new_trainer.id

    logger.info(
        f"Trainer change on booking {booking.id} approved: {old_trainer_id} -> {new_trainer.id}, "
        f"{len(sessions)} sessions moved"
    )
    return booking

async def complete_booking(db: AsyncSession, booking_id: int) -> models.Booking:
    booking = await get_booking(db, booking_id)
    if booking.status != models.BookingStatus.confirmed:
        raise InvalidState(f"Cannot complete a booking that is {booking.status.value}")

    sessions = await crud.get_sessions_by_booking(db, booking.id)
    pending = [s.id for s in sessions if s.status != models.SessionStatus.completed]
    if pending:
        raise PreconditionFailed("Cannot complete booking until all sessions are completed")

    async with unit_of_work(db):
        booking.status = models.BookingStatus.completed
    logger.info(f"Booking {booking.id} completed")
    return booking
