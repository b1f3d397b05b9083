from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, update, or_
from datetime import datetime, timedelta
from typing import Optional, Type
from enum import Enum
from backend.school_service import models, schemas
from backend.school_service.database import unit_of_work
from backend.school_service.errors import NotFound, InvalidArgument, InvalidState
import logging


logger = logging.getLogger(__name__)


def parse_enum(enum_cls: Type[Enum], value: Optional[str], label: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidArgument(f"Invalid {label} '{value}', expected one of: {allowed}")


def day_bounds(day: datetime):
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)

# Entity lookups

async def get_user_by_uid(db: AsyncSession, uid: str):
    result = await db.execute(select(models.User).filter(models.User.uid == uid))
    return result.scalar_one_or_none()

async def get_user_by_email(db: AsyncSession, email: str):
    result = await db.execute(select(models.User).filter(models.User.email == email))
    return result.scalar_one_or_none()

async def get_trainer_by_id(db: AsyncSession, trainer_id: int):
    result = await db.execute(select(models.Trainer).filter(models.Trainer.id == trainer_id))
    return result.unique().scalar_one_or_none()

async def get_trainer_by_user_uid(db: AsyncSession, uid: str):
    result = await db.execute(select(models.Trainer).filter(models.Trainer.user_uid == uid))
    return result.unique().scalar_one_or_none()

async def get_trainee_by_id(db: AsyncSession, trainee_id: int):
    result = await db.execute(select(models.Trainee).filter(models.Trainee.id == trainee_id))
    return result.unique().scalar_one_or_none()

async def get_trainee_by_user_uid(db: AsyncSession, uid: str):
    result = await db.execute(select(models.Trainee).filter(models.Trainee.user_uid == uid))
    return result.unique().scalar_one_or_none()

async def get_plan_by_id(db: AsyncSession, plan_id: int):
    result = await db.execute(select(models.Plan).filter(models.Plan.id == plan_id))
    return result.scalar_one_or_none()

async def get_booking_by_id(db: AsyncSession, booking_id: int):
    result = await db.execute(select(models.Booking).filter(models.Booking.id == booking_id))
    return result.scalar_one_or_none()

async def get_session_by_id(db: AsyncSession, session_id: int):
    result = await db.execute(select(models.Session).filter(models.Session.id == session_id))
    return result.scalar_one_or_none()

async def get_sessions_by_booking(db: AsyncSession, booking_id: int):
    result = await db.execute(
        select(models.Session)
        .filter(models.Session.booking_id == booking_id)
        .order_by(models.Session.session_order)
    )
    return result.scalars().all()

# Users

async def create_user(db: AsyncSession, user: schemas.UserCreate):
    if await get_user_by_uid(db, user.uid) or await get_user_by_email(db, user.email):
        raise InvalidState("User already exists")

    db_user = models.User(
        uid=user.uid,
        email=user.email,
        name=user.name,
        phone=user.phone,
        gender=user.gender,
        age=user.age,
        role=user.role,
        language=user.language,
    )
    async with unit_of_work(db):
        db.add(db_user)
        if user.role == models.UserRole.trainer:
            db.add(models.Trainer(
                user_uid=user.uid,
                user=db_user,
                trainee_mappings=[],
                status=models.TrainerStatus.pending,
                has_vehicle=user.has_vehicle,
                vehicle_type=user.vehicle_type,
                vehicle_model=user.vehicle_model,
                vehicle_year=user.vehicle_year,
            ))
        elif user.role == models.UserRole.trainee:
            db.add(models.Trainee(
                user_uid=user.uid,
                user=db_user,
                preferred_language=user.language,
                active_plans=[],
                previous_trainers=[],
            ))
    logger.info(f"Created {user.role.value} user {user.uid}")
    return db_user

async def get_users(db: AsyncSession, skip: int = 0, limit: int = 100):
    result = await db.execute(
        select(models.User).order_by(models.User.created_at.desc()).offset(skip).limit(limit)
    )
    return result.scalars().all()

async def get_user_detail(db: AsyncSession, uid: str):
    user = await get_user_by_uid(db, uid)
    if user is None:
        raise NotFound("User not found")

    profile = None
    if user.role == models.UserRole.trainer:
        trainer = await get_trainer_by_user_uid(db, uid)
        if trainer:
            profile = schemas.ProfileSummary(id=trainer.id, status=trainer.status, rating=trainer.rating)
    elif user.role == models.UserRole.trainee:
        trainee = await get_trainee_by_user_uid(db, uid)
        if trainee:
            profile = schemas.ProfileSummary(id=trainee.id, assigned_trainer_id=trainee.assigned_trainer_id)
    return schemas.UserDetail(**schemas.User.model_validate(user).model_dump(), profile=profile)

def _check_vehicle(trainer: models.Trainer):
    if trainer.has_vehicle and not (trainer.vehicle_type and trainer.vehicle_model and trainer.vehicle_year):
        raise InvalidArgument("vehicle_type, vehicle_model and vehicle_year are required when has_vehicle is set")

async def update_user(db: AsyncSession, uid: str, user_update: schemas.UserUpdate):
    user = await get_user_by_uid(db, uid)
    if user is None:
        raise NotFound("User not found")

    update_data = user_update.model_dump(exclude_unset=True, exclude={"trainer"})
    if update_data.get("email") and update_data["email"] != user.email:
        if await get_user_by_email(db, update_data["email"]):
            raise InvalidState("Email is already in use")

    async with unit_of_work(db):
        for key, value in update_data.items():
            if value is not None:
                setattr(user, key, value)

        if user.role == models.UserRole.trainer:
            trainer = await get_trainer_by_user_uid(db, uid)
            trainer_data = user_update.trainer.model_dump(exclude_unset=True) if user_update.trainer else {}
            if trainer is None:
                trainer = models.Trainer(
                    user_uid=uid, user=user, status=models.TrainerStatus.pending, has_vehicle=False, trainee_mappings=[],
                )
                db.add(trainer)
            for key, value in trainer_data.items():
                if value is not None:
                    setattr(trainer, key, value)
            _check_vehicle(trainer)
        elif user.role == models.UserRole.trainee:
            if await get_trainee_by_user_uid(db, uid) is None:
                db.add(models.Trainee(
                    user_uid=uid, user=user, preferred_language=user.language, active_plans=[], previous_trainers=[],
                ))
    logger.info(f"Updated user {uid}: {sorted(update_data)}")
    return user

async def delete_user(db: AsyncSession, uid: str):
    user = await get_user_by_uid(db, uid)
    if user is None:
        raise NotFound("User not found")

    trainer = await get_trainer_by_user_uid(db, uid)
    trainee = await get_trainee_by_user_uid(db, uid)
    filters = []
    if trainer:
        filters.append(models.Booking.trainer_id == trainer.id)
    if trainee:
        filters.append(models.Booking.trainee_id == trainee.id)
    if filters:
        result = await db.execute(select(models.Booking.id).filter(or_(*filters)).limit(1))
        if result.first() is not None:
            raise InvalidState("User has bookings and cannot be deleted")
    if trainer:
        result = await db.execute(
            select(models.TrainerHistory.id).filter(models.TrainerHistory.trainer_id == trainer.id).limit(1)
        )
        if result.first() is not None:
            raise InvalidState("Trainer appears in trainee history and cannot be deleted")

    async with unit_of_work(db):
        if trainer:
            await db.execute(
                update(models.Trainee)
                .where(models.Trainee.assigned_trainer_id == trainer.id)
                .values(assigned_trainer_id=None, version=models.Trainee.version + 1)
                .execution_options(synchronize_session=False)
            )
            await db.delete(trainer)
        if trainee:
            await db.execute(delete(models.TrainerTraineeMap).where(models.TrainerTraineeMap.trainee_id == trainee.id))
            await db.delete(trainee)
        await db.delete(user)
    logger.info(f"Deleted user {uid}")

# Trainers

async def get_trainers(db: AsyncSession, status: Optional[str] = None):
    query = select(models.Trainer).order_by(models.Trainer.id)
    if status:
        query = query.filter(models.Trainer.status == parse_enum(models.TrainerStatus, status, "trainer status"))
    result = await db.execute(query)
    return result.unique().scalars().all()

async def update_trainer_status(db: AsyncSession, trainer_id: int, status: Optional[str]):
    new_status = parse_enum(models.TrainerStatus, status, "trainer status")
    trainer = await get_trainer_by_id(db, trainer_id)
    if trainer is None:
        raise NotFound("Trainer not found")
    async with unit_of_work(db):
        trainer.status = new_status
    logger.info(f"Trainer {trainer_id} status set to {new_status.value}")
    return trainer

async def update_trainer_availability(db: AsyncSession, trainer: models.Trainer, availability: schemas.AvailabilityUpdate):
    async with unit_of_work(db):
        trainer.availability = [day.model_dump(mode="json") for day in availability.availability]
    return trainer

async def get_assigned_trainees(db: AsyncSession, trainer: models.Trainer):
    trainee_ids = [mapping.trainee_id for mapping in trainer.trainee_mappings]
    if not trainee_ids:
        return []
    result = await db.execute(
        select(models.Trainee).filter(models.Trainee.id.in_(trainee_ids)).order_by(models.Trainee.id)
    )
    return result.unique().scalars().all()

async def get_trainer_sessions(
    db: AsyncSession,
    trainer_id: int,
    status: Optional[str] = None,
    date: Optional[datetime] = None,
    trainee_id: Optional[int] = None,
):
    query = select(models.Session).filter(models.Session.trainer_id == trainer_id)
    if status:
        query = query.filter(models.Session.status == parse_enum(models.SessionStatus, status, "session status"))
    if date:
        start, end = day_bounds(date)
        query = query.filter(models.Session.scheduled_date >= start, models.Session.scheduled_date < end)
    if trainee_id:
        query = query.filter(models.Session.trainee_id == trainee_id)
    result = await db.execute(query.order_by(models.Session.scheduled_date, models.Session.start_time))
    return result.scalars().all()

# Trainees

async def get_trainee_sessions(db: AsyncSession, trainee_id: int, status: Optional[str] = None, date: Optional[datetime] = None):
    query = select(models.Session).filter(models.Session.trainee_id == trainee_id)
    if status:
        query = query.filter(models.Session.status == parse_enum(models.SessionStatus, status, "session status"))
    if date:
        start, end = day_bounds(date)
        query = query.filter(models.Session.scheduled_date >= start, models.Session.scheduled_date < end)
    result = await db.execute(query.order_by(models.Session.scheduled_date, models.Session.start_time))
    return result.scalars().all()

async def get_trainee_bookings(db: AsyncSession, trainee_id: int):
    result = await db.execute(
        select(models.Booking)
        .filter(models.Booking.trainee_id == trainee_id)
        .order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
    )
    return result.scalars().all()

# Plan catalog

async def get_plans(db: AsyncSession, active: Optional[bool] = None):
    query = select(models.Plan)
    if active is not None:
        query = query.filter(models.Plan.is_active == active)
    result = await db.execute(query.order_by(models.Plan.price, models.Plan.id))
    return result.scalars().all()

async def get_plan(db: AsyncSession, plan_id: int):
    plan = await get_plan_by_id(db, plan_id)
    if plan is None:
        raise NotFound("Plan not found")
    return plan

async def create_plan(db: AsyncSession, plan: schemas.PlanCreate):
    db_plan = models.Plan(
        **plan.model_dump(exclude={"features"}),
        features=[feature.model_dump() for feature in plan.features],
        is_active=True,
    )
    async with unit_of_work(db):
        db.add(db_plan)
    logger.info(f"Created plan {db_plan.id} ({db_plan.name_en})")
    return db_plan

async def update_plan(db: AsyncSession, plan_id: int, plan_update: schemas.PlanUpdate):
    plan = await get_plan(db, plan_id)
    update_data = plan_update.model_dump(exclude_unset=True)
    async with unit_of_work(db):
        for key, value in update_data.items():
            if value is None:
                continue
            if key == "features":
                value = [feature.model_dump() for feature in plan_update.features]
            setattr(plan, key, value)
    logger.info(f"Updated plan {plan_id}: {sorted(update_data)}")
    return plan

async def deactivate_plan(db: AsyncSession, plan_id: int):
    plan = await get_plan(db, plan_id)
    async with unit_of_work(db):
        plan.is_active = False
    logger.info(f"Deactivated plan {plan_id}")
    return plan
