import logging
import os
import asyncio
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional
from fastapi import FastAPI, APIRouter, Depends, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from firebase_admin import auth
from sqlalchemy.ext.asyncio import AsyncSession
from . import crud, models, schemas, utils, bookings, sessions
from .database import get_db, create_tables
from .localization import localize_plan
from firebase_admin_init import initialize_firebase

initialize_firebase()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

# Log to file
logging.basicConfig(
    level=LOG_LEVEL,
    format=LOG_FORMAT,
    filename=os.getenv("LOG_FILE", "app.log"),
    filemode='a'
)
logger = logging.getLogger(__name__)

# And to the console
console = logging.StreamHandler()
console.setLevel(LOG_LEVEL)
console.setFormatter(logging.Formatter(LOG_FORMAT))
logging.getLogger('').addHandler(console)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true":
        await create_tables()
        logger.info("Database tables created")
    yield

app = FastAPI(title="Driving School Service API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter(prefix="/api")

@router.get("/health")
def health_check():
    return {"status": "healthy"}

# Users

@router.post("/users/", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
async def create_user(user: schemas.UserCreate, db: AsyncSession = Depends(get_db)):
    logger.info(f"Received request to create user: {user.uid} ({user.role.value})")
    if user.role == models.UserRole.admin:
        raise HTTPException(status_code=403, detail="Admin accounts cannot be self-registered")
    try:
        db_user = await crud.create_user(db, user)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error in create_user: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create user")

    # The Firebase account may not be visible yet right after client sign-up
    max_retries = 3
    for attempt in range(max_retries):
        try:
            utils.set_role_claim(db_user.uid, db_user.role)
            break
        except auth.UserNotFoundError:
            if attempt == max_retries - 1:
                logger.error(f"User {db_user.uid} not found in Firebase, role claim not set")
            else:
                await asyncio.sleep(1)
        except Exception as e:
            logger.error(f"Error setting role claim for {db_user.uid}: {str(e)}")
            break
    return schemas.User.model_validate(db_user)

@router.get("/users/", response_model=List[schemas.User])
async def read_users(
    skip: int = 0,
    limit: int = 100,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await crud.get_users(db, skip=skip, limit=limit)
    return [schemas.User.model_validate(u) for u in users]

@router.get("/users/me", response_model=schemas.User)
async def read_users_me(user: models.User = Depends(utils.get_current_user)):
    return schemas.User.model_validate(user)

@router.get("/users/trainers", response_model=List[schemas.Trainer])
async def read_trainers(
    status: Optional[str] = None,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    trainers = await crud.get_trainers(db, status)
    return [schemas.Trainer.from_trainer(t) for t in trainers]

@router.put("/users/trainers/{trainer_id}/status", response_model=schemas.Trainer)
async def update_trainer_status(
    trainer_id: int,
    status_update: schemas.TrainerStatusUpdate,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        trainer = await crud.update_trainer_status(db, trainer_id, status_update.status)
        return schemas.Trainer.from_trainer(trainer)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating trainer status: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while updating the trainer status")

@router.get("/users/{uid}", response_model=schemas.UserDetail)
async def read_user(uid: str, admin: models.User = Depends(utils.require_admin), db: AsyncSession = Depends(get_db)):
    return await crud.get_user_detail(db, uid)

@router.put("/users/{uid}", response_model=schemas.User)
async def update_user(
    uid: str,
    user_update: schemas.UserUpdate,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await crud.update_user(db, uid, user_update)
        return schemas.User.model_validate(user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating user {uid}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while updating the user")

@router.delete("/users/{uid}", response_model=schemas.Message)
async def delete_user(uid: str, admin: models.User = Depends(utils.require_admin), db: AsyncSession = Depends(get_db)):
    try:
        await crud.delete_user(db, uid)
        return {"message": "User removed"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting user {uid}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while deleting the user")

# Plans

@router.get("/plans", response_model=List[schemas.LocalizedPlan])
async def read_plans(
    active: Optional[bool] = None,
    language: models.LanguageCode = Depends(utils.get_language),
    db: AsyncSession = Depends(get_db),
):
    plans = await crud.get_plans(db, active=active)
    return [localize_plan(p, language) for p in plans]

@router.get("/plans/{plan_id}", response_model=schemas.LocalizedPlan)
async def read_plan(
    plan_id: int,
    language: models.LanguageCode = Depends(utils.get_language),
    db: AsyncSession = Depends(get_db),
):
    plan = await crud.get_plan(db, plan_id)
    return localize_plan(plan, language)

@router.post("/plans", response_model=schemas.Plan, status_code=status.HTTP_201_CREATED)
async def create_plan(plan: schemas.PlanCreate, admin: models.User = Depends(utils.require_admin), db: AsyncSession = Depends(get_db)):
    try:
        db_plan = await crud.create_plan(db, plan)
        return schemas.Plan.model_validate(db_plan)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating plan: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while creating the plan")

@router.put("/plans/{plan_id}", response_model=schemas.Plan)
async def update_plan(
    plan_id: int,
    plan_update: schemas.PlanUpdate,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        plan = await crud.update_plan(db, plan_id, plan_update)
        return schemas.Plan.model_validate(plan)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating plan {plan_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while updating the plan")

@router.delete("/plans/{plan_id}", response_model=schemas.Message)
async def delete_plan(plan_id: int, admin: models.User = Depends(utils.require_admin), db: AsyncSession = Depends(get_db)):
    await crud.deactivate_plan(db, plan_id)
    return {"message": "Plan deactivated"}

# Bookings

@router.get("/bookings", response_model=List[schemas.Booking])
async def read_bookings(
    status: Optional[str] = None,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await bookings.list_bookings(db, status)
    return [schemas.Booking.model_validate(b) for b in result]

@router.get("/bookings/{booking_id}", response_model=schemas.Booking)
async def read_booking(
    booking_id: int,
    user: models.User = Depends(utils.require_admin_or_trainer),
    db: AsyncSession = Depends(get_db),
):
    booking = await bookings.get_booking(db, booking_id)
    return schemas.Booking.model_validate(booking)

@router.put("/bookings/{booking_id}/confirm", response_model=schemas.Booking)
async def confirm_booking(
    booking_id: int,
    body: schemas.BookingConfirm,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        booking = await bookings.confirm_booking(db, booking_id, body.trainer_id)
        return schemas.Booking.model_validate(booking)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error confirming booking {booking_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while confirming the booking")

@router.put("/bookings/{booking_id}/cancel", response_model=schemas.Booking)
async def cancel_booking(
    booking_id: int,
    user: models.User = Depends(utils.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        booking = await bookings.cancel_booking(db, booking_id, user)
        return schemas.Booking.model_validate(booking)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error cancelling booking {booking_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while cancelling the booking")

@router.put("/bookings/{booking_id}/trainer-change", response_model=schemas.Booking)
async def process_trainer_change(
    booking_id: int,
    decision: schemas.TrainerChangeDecision,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        booking = await bookings.resolve_trainer_change(db, booking_id, decision.status, decision.new_trainer_id)
        return schemas.Booking.model_validate(booking)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing trainer change on booking {booking_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while processing the trainer change")

@router.put("/bookings/{booking_id}/complete", response_model=schemas.Booking)
async def complete_booking(
    booking_id: int,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        booking = await bookings.complete_booking(db, booking_id)
        return schemas.Booking.model_validate(booking)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error completing booking {booking_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while completing the booking")

# Sessions (admin)

@router.post("/sessions/bulk", response_model=List[schemas.Session], status_code=status.HTTP_201_CREATED)
async def create_sessions_bulk(
    body: schemas.SessionBulkCreate,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        created = await sessions.bulk_create_sessions(db, body.booking_id, body.sessions)
        return [schemas.Session.model_validate(s) for s in created]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating sessions for booking {body.booking_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while creating the sessions")

@router.get("/sessions/{session_id}", response_model=schemas.Session)
async def read_session(
    session_id: int,
    user: models.User = Depends(utils.require_admin_or_trainer),
    db: AsyncSession = Depends(get_db),
):
    session = await sessions.get_session(db, session_id)
    return schemas.Session.model_validate(session)

@router.put("/sessions/{session_id}/status", response_model=schemas.Session)
async def update_session_status(
    session_id: int,
    body: schemas.SessionStatusUpdate,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        session = await sessions.update_session_status(db, session_id, body.status)
        return schemas.Session.model_validate(session)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating session {session_id} status: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while updating the session status")

@router.delete("/sessions/{session_id}", response_model=schemas.Message)
async def delete_session(
    session_id: int,
    admin: models.User = Depends(utils.require_admin),
    db: AsyncSession = Depends(get_db),
):
    await sessions.delete_session(db, session_id)
    return {"message": "Session removed"}

# Trainers

@router.get("/trainers/profile", response_model=schemas.Trainer)
async def read_trainer_profile(trainer: models.Trainer = Depends(utils.get_current_trainer)):
    return schemas.Trainer.from_trainer(trainer)

@router.get("/trainers/trainees", response_model=List[schemas.Trainee])
async def read_assigned_trainees(
    trainer: models.Trainer = Depends(utils.get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    trainees = await crud.get_assigned_trainees(db, trainer)
    return [schemas.Trainee.from_trainee(t) for t in trainees]

@router.put("/trainers/availability", response_model=schemas.Availability)
async def update_availability(
    body: schemas.AvailabilityUpdate,
    trainer: models.Trainer = Depends(utils.get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    trainer = await crud.update_trainer_availability(db, trainer, body)
    return {"id": trainer.id, "availability": trainer.availability}

@router.get("/trainers/sessions", response_model=List[schemas.Session])
async def read_trainer_sessions(
    status: Optional[str] = None,
    day: Optional[date] = Query(None, alias="date"),
    trainee_id: Optional[int] = None,
    trainer: models.Trainer = Depends(utils.get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    result = await crud.get_trainer_sessions(db, trainer.id, status=status, date=day, trainee_id=trainee_id)
    return [schemas.Session.model_validate(s) for s in result]

@router.put("/trainers/sessions/{session_id}/start", response_model=schemas.Session)
async def start_session(
    session_id: int,
    trainer: models.Trainer = Depends(utils.get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    session = await sessions.start_session(db, trainer, session_id)
    return schemas.Session.model_validate(session)

@router.put("/trainers/sessions/{session_id}/complete", response_model=schemas.Session)
async def complete_session(
    session_id: int,
    body: Optional[schemas.SessionComplete] = None,
    trainer: models.Trainer = Depends(utils.get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    try:
        session = await sessions.complete_session(db, trainer, session_id, body.notes if body else None)
        return schemas.Session.model_validate(session)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error completing session {session_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while completing the session")

@router.put("/trainers/sessions/{session_id}/reschedule", response_model=schemas.Session)
async def reschedule_session(
    session_id: int,
    body: schemas.SessionReschedule,
    trainer: models.Trainer = Depends(utils.get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    session = await sessions.reschedule_session(
        db, trainer, session_id, body.scheduled_date, body.start_time, body.end_time
    )
    return schemas.Session.model_validate(session)

# Trainees

@router.get("/trainees/profile", response_model=schemas.Trainee)
async def read_trainee_profile(trainee: models.Trainee = Depends(utils.get_current_trainee)):
    return schemas.Trainee.from_trainee(trainee)

@router.get("/trainees/plans", response_model=List[schemas.LocalizedPlan])
async def read_available_plans(
    trainee: models.Trainee = Depends(utils.get_current_trainee),
    language: models.LanguageCode = Depends(utils.get_language),
    db: AsyncSession = Depends(get_db),
):
    plans = await crud.get_plans(db, active=True)
    return [localize_plan(p, language) for p in plans]

@router.get("/trainees/sessions", response_model=List[schemas.Session])
async def read_trainee_sessions(
    status: Optional[str] = None,
    day: Optional[date] = Query(None, alias="date"),
    trainee: models.Trainee = Depends(utils.get_current_trainee),
    db: AsyncSession = Depends(get_db),
):
    result = await crud.get_trainee_sessions(db, trainee.id, status=status, date=day)
    return [schemas.Session.model_validate(s) for s in result]

@router.post("/trainees/sessions/{session_id}/feedback", response_model=schemas.Session)
async def provide_session_feedback(
    session_id: int,
    body: schemas.FeedbackCreate,
    trainee: models.Trainee = Depends(utils.get_current_trainee),
    db: AsyncSession = Depends(get_db),
):
    try:
        session = await sessions.provide_feedback(db, trainee, session_id, body.rating, body.comment)
        return schemas.Session.model_validate(session)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error saving feedback for session {session_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while saving the feedback")

@router.post("/trainees/bookings", response_model=schemas.Booking, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: schemas.BookingCreate,
    trainee: models.Trainee = Depends(utils.get_current_trainee),
    db: AsyncSession = Depends(get_db),
):
    try:
        booking = await bookings.create_booking(db, trainee, body)
        return schemas.Booking.model_validate(booking)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating booking: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while creating the booking")

@router.get("/trainees/bookings", response_model=List[schemas.Booking])
async def read_trainee_bookings(
    trainee: models.Trainee = Depends(utils.get_current_trainee),
    db: AsyncSession = Depends(get_db),
):
    result = await crud.get_trainee_bookings(db, trainee.id)
    return [schemas.Booking.model_validate(b) for b in result]

@router.post("/trainees/bookings/{booking_id}/change-trainer", response_model=schemas.Booking)
async def request_trainer_change(
    booking_id: int,
    body: schemas.TrainerChangeRequestCreate,
    trainee: models.Trainee = Depends(utils.get_current_trainee),
    db: AsyncSession = Depends(get_db),
):
    booking = await bookings.request_trainer_change(db, trainee, booking_id, body.reason)
    return schemas.Booking.model_validate(booking)

app.include_router(router)
