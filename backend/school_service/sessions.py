"""Session lifecycle.

    scheduled | rescheduled -> in_progress -> completed
    scheduled -> rescheduled (any status, trainer reschedule)
    scheduled | rescheduled -> cancelled (booking cancellation only)

The admin status endpoint may set any status directly.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime
import logging
from backend.school_service import models, schemas, crud, progress
from backend.school_service.database import unit_of_work
from backend.school_service.errors import NotFound, InvalidArgument, InvalidState, Forbidden

logger = logging.getLogger(__name__)

STARTABLE = (models.SessionStatus.scheduled, models.SessionStatus.rescheduled)


async def get_session(db: AsyncSession, session_id: int) -> models.Session:
    session = await crud.get_session_by_id(db, session_id)
    if session is None:
        raise NotFound("Session not found")
    return session

def check_owner(session: models.Session, trainer: models.Trainer):
    if trainer is None or session.trainer_id != trainer.id:
        raise Forbidden("Not authorized to access this session")

async def bulk_create_sessions(
    db: AsyncSession,
    booking_id: Optional[int],
    slots: Optional[List[schemas.SessionSlot]],
) -> List[models.Session]:
    """Create one session per slot, numbered 1..N in input order.

    The booking's session list is replaced with the new ids and the plan's
    session count is added to the trainee's progress ledger.
    """
    if not booking_id or slots is None:
        raise InvalidArgument("Please provide booking ID and sessions array")

    booking = await crud.get_booking_by_id(db, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    plan = await crud.get_plan_by_id(db, booking.plan_id)
    if plan is None:
        raise NotFound("Plan not found")
    if booking.status != models.BookingStatus.confirmed or booking.trainer_id is None:
        raise InvalidState(f"Sessions can only be created for confirmed bookings, booking is {booking.status.value}")
    trainee = await crud.get_trainee_by_id(db, booking.trainee_id)

    created = []
    async with unit_of_work(db):
        for index, slot in enumerate(slots):
            session = models.Session(
                booking_id=booking.id,
                trainee_id=booking.trainee_id,
                trainer_id=booking.trainer_id,
                plan_id=booking.plan_id,
                scheduled_date=slot.scheduled_date.replace(tzinfo=None),
                start_time=slot.start_time,
                end_time=slot.end_time,
                duration=plan.duration,
                status=models.SessionStatus.scheduled,
                session_order=index + 1,
            )
            db.add(session)
            created.append(session)
        await db.flush()

        booking.session_ids = [session.id for session in created]
        if trainee:
            progress.add_plan_sessions(trainee, plan)
        else:
            logger.warning(f"Booking {booking.id} references missing trainee {booking.trainee_id}")

    logger.info(f"Created {len(created)} sessions for booking {booking.id}")
    return created

async def update_session_status(db: AsyncSession, session_id: int, status: Optional[str]) -> models.Session:
    new_status = crud.parse_enum(models.SessionStatus, status, "session status")
    session = await get_session(db, session_id)
    previous = session.status

    trainee = None
    if new_status == models.SessionStatus.completed and previous != models.SessionStatus.completed:
        trainee = await crud.get_trainee_by_id(db, session.trainee_id)

    async with unit_of_work(db):
        session.status = new_status
        if new_status == models.SessionStatus.in_progress:
            session.actual_start_time = models.utc_now()
        elif new_status == models.SessionStatus.completed:
            session.actual_end_time = models.utc_now()
            # Only a transition into completed counts towards progress
            if previous != models.SessionStatus.completed:
                progress.record_completed_session(trainee, session.plan_id)
    logger.info(f"Session {session.id} status {previous.value} -> {new_status.value}")
    return session

async def start_session(db: AsyncSession, trainer: models.Trainer, session_id: int) -> models.Session:
    session = await get_session(db, session_id)
    check_owner(session, trainer)
    if session.status not in STARTABLE:
        raise InvalidState(f"Cannot start a session that is already {session.status.value}")

    async with unit_of_work(db):
        session.status = models.SessionStatus.in_progress
        session.actual_start_time = models.utc_now()
    logger.info(f"Trainer {trainer.id} started session {session.id}")
    return session

async def complete_session(db: AsyncSession, trainer: models.Trainer, session_id: int, notes: Optional[str] = None) -> models.Session:
    session = await get_session(db, session_id)
    check_owner(session, trainer)
    if session.status != models.SessionStatus.in_progress:
        raise InvalidState("Can only complete sessions that are in progress")

    trainee = await crud.get_trainee_by_id(db, session.trainee_id)
    async with unit_of_work(db):
        session.status = models.SessionStatus.completed
        session.actual_end_time = models.utc_now()
        if notes:
            session.notes = notes
        progress.record_completed_session(trainee, session.plan_id)
    logger.info(f"Trainer {trainer.id} completed session {session.id}")
    return session

async def reschedule_session(
    db: AsyncSession,
    trainer: models.Trainer,
    session_id: int,
    scheduled_date: Optional[datetime],
    start_time: Optional[str],
    end_time: Optional[str],
) -> models.Session:
    if not scheduled_date or not start_time or not end_time:
        raise InvalidArgument("Please provide all required fields")

    session = await get_session(db, session_id)
    check_owner(session, trainer)

    async with unit_of_work(db):
        session.previous_date = session.scheduled_date
        session.previous_start_time = session.start_time
        session.previous_end_time = session.end_time
        session.scheduled_date = scheduled_date.replace(tzinfo=None)
        session.start_time = start_time
        session.end_time = end_time
        session.is_rescheduled = True
        session.status = models.SessionStatus.rescheduled
    logger.info(f"Trainer {trainer.id} rescheduled session {session.id} to {session.scheduled_date:%Y-%m-%d} {start_time}")
    return session

async def delete_session(db: AsyncSession, session_id: int):
    session = await get_session(db, session_id)
    if session.status != models.SessionStatus.scheduled:
        raise InvalidState("Cannot delete a session that has already started or completed")

    booking = await crud.get_booking_by_id(db, session.booking_id)
    async with unit_of_work(db):
        if booking:
            # Siblings keep their session_order
            booking.session_ids = [sid for sid in (booking.session_ids or []) if sid != session.id]
        await db.delete(session)
    logger.info(f"Deleted session {session_id}")

async def provide_feedback(
    db: AsyncSession,
    trainee: models.Trainee,
    session_id: int,
    rating: Optional[int],
    comment: Optional[str] = None,
) -> models.Session:
    if rating is None or rating < 1 or rating > 5:
        raise InvalidArgument("Please provide a valid rating (1-5)")

    session = await get_session(db, session_id)
    if session.trainee_id != trainee.id:
        raise Forbidden("Not authorized to access this session")

    trainer = await crud.get_trainer_by_id(db, session.trainer_id) if session.trainer_id else None
    async with unit_of_work(db):
        session.feedback_rating = rating
        session.feedback_comment = comment or ""
        session.feedback_date = models.utc_now()
        if trainer:
            total = trainer.rating * trainer.total_reviews
            trainer.total_reviews += 1
            trainer.rating = (total + rating) / trainer.total_reviews
    if trainer:
        logger.info(f"Trainer {trainer.id} rated {rating}, average now {trainer.rating:.2f} over {trainer.total_reviews} reviews")
    return session
