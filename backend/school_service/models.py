from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint, Enum as SQLAlchemyEnum
from sqlalchemy.orm import relationship, declarative_base
from sqlalchemy.ext.asyncio import AsyncAttrs
from enum import Enum as PyEnum
from datetime import datetime, timezone


Base = declarative_base()

DEFAULT_SESSION_DURATION = 50  # minutes


def utc_now() -> datetime:
    # Naive UTC, stored as-is by every backend we run on
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(str, PyEnum):
    admin = "admin"
    trainer = "trainer"
    trainee = "trainee"

class Gender(str, PyEnum):
    male = "male"
    female = "female"

class LanguageCode(str, PyEnum):
    en = "en"
    ar = "ar"

class TrainerStatus(str, PyEnum):
    pending = "pending"
    active = "active"
    rejected = "rejected"

class BookingStatus(str, PyEnum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"

class SessionStatus(str, PyEnum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"
    rescheduled = "rescheduled"

class PlanProgressStatus(str, PyEnum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"

class ChangeRequestStatus(str, PyEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"

class PlanCategory(str, PyEnum):
    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"
    specialist = "specialist"


class User(Base, AsyncAttrs):
    __tablename__ = "users"
    uid = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    gender = Column(SQLAlchemyEnum(Gender), nullable=True)
    age = Column(Integer, nullable=True)
    role = Column(SQLAlchemyEnum(UserRole), default=UserRole.trainee, nullable=False)
    language = Column(SQLAlchemyEnum(LanguageCode), default=LanguageCode.en, nullable=False)
    avatar = Column(String, default="")
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

class Trainer(Base, AsyncAttrs):
    __tablename__ = "trainers"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_uid = Column(String, ForeignKey("users.uid"), unique=True, nullable=False)
    status = Column(SQLAlchemyEnum(TrainerStatus), default=TrainerStatus.pending, nullable=False)
    has_vehicle = Column(Boolean, default=False, nullable=False)
    vehicle_type = Column(String, nullable=True)
    vehicle_model = Column(String, nullable=True)
    vehicle_year = Column(Integer, nullable=True)
    rating = Column(Float, default=0.0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)
    specializations = Column(JSON, default=list)
    # [{"day": "Sunday", "slots": [{"start_time", "end_time", "is_booked"}]}], advisory only
    availability = Column(JSON, default=list)
    profile_image = Column(String, default="")
    vehicle_image = Column(String, default="")
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utc_now)
    user = relationship("User", lazy="joined")
    trainee_mappings = relationship("TrainerTraineeMap", back_populates="trainer", lazy="selectin", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

class Trainee(Base, AsyncAttrs):
    __tablename__ = "trainees"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_uid = Column(String, ForeignKey("users.uid"), unique=True, nullable=False)
    assigned_trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=True)
    preferred_language = Column(SQLAlchemyEnum(LanguageCode), default=LanguageCode.en, nullable=False)
    notes = Column(String, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utc_now)
    user = relationship("User", lazy="joined")
    active_plans = relationship("PlanProgress", back_populates="trainee", lazy="selectin", order_by="PlanProgress.id", cascade="all, delete-orphan")
    previous_trainers = relationship("TrainerHistory", back_populates="trainee", lazy="selectin", order_by="TrainerHistory.id", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

class TrainerTraineeMap(Base):
    __tablename__ = "trainer_trainee_mapping"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=False)
    trainee_id = Column(Integer, ForeignKey("trainees.id"), nullable=False)
    assigned_at = Column(DateTime, default=utc_now)
    trainer = relationship("Trainer", back_populates="trainee_mappings")

    __table_args__ = (UniqueConstraint("trainer_id", "trainee_id", name="uq_trainer_trainee"),)

class PlanProgress(Base):
    __tablename__ = "trainee_plan_progress"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trainee_id = Column(Integer, ForeignKey("trainees.id"), nullable=False)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    completed_sessions = Column(Integer, default=0, nullable=False)
    total_sessions = Column(Integer, default=0, nullable=False)
    start_date = Column(DateTime, default=utc_now)
    end_date = Column(DateTime, nullable=True)
    status = Column(SQLAlchemyEnum(PlanProgressStatus), default=PlanProgressStatus.active, nullable=False)
    version = Column(Integer, nullable=False)
    trainee = relationship("Trainee", back_populates="active_plans")

    __mapper_args__ = {"version_id_col": version}

class TrainerHistory(Base):
    __tablename__ = "trainee_trainer_history"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trainee_id = Column(Integer, ForeignKey("trainees.id"), nullable=False)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=False)
    reason = Column(String, nullable=True)
    date = Column(DateTime, default=utc_now)
    trainee = relationship("Trainee", back_populates="previous_trainers")

class Plan(Base, AsyncAttrs):
    __tablename__ = "plans"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name_ar = Column(String, nullable=False)
    name_en = Column(String, nullable=False)
    description_ar = Column(String, nullable=False)
    description_en = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    number_of_sessions = Column(Integer, nullable=False)
    duration = Column(Integer, default=DEFAULT_SESSION_DURATION, nullable=False)
    # [{"text_ar": ..., "text_en": ...}]
    features = Column(JSON, default=list)
    category = Column(SQLAlchemyEnum(PlanCategory), default=PlanCategory.beginner, nullable=False)
    image = Column(String, default="")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

class Booking(Base, AsyncAttrs):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trainee_id = Column(Integer, ForeignKey("trainees.id"), nullable=False, index=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    preferred_start_date = Column(DateTime, nullable=False)
    # [{"day": "Monday", "time": "10:00"}]
    preferred_times = Column(JSON, default=list)
    status = Column(SQLAlchemyEnum(BookingStatus), default=BookingStatus.pending, nullable=False)
    total_price = Column(Float, nullable=False)
    notes = Column(String, default="")
    # Ids of the sessions generated for this booking, in generation order
    session_ids = Column(JSON, default=list)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
    trainer_change_request = relationship("TrainerChangeRequest", back_populates="booking", uselist=False, lazy="selectin", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

class TrainerChangeRequest(Base):
    __tablename__ = "trainer_change_requests"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    requested = Column(Boolean, default=True, nullable=False)
    reason = Column(String, nullable=False)
    date = Column(DateTime, default=utc_now)
    status = Column(SQLAlchemyEnum(ChangeRequestStatus), default=ChangeRequestStatus.pending, nullable=False)
    booking = relationship("Booking", back_populates="trainer_change_request")

class Session(Base, AsyncAttrs):
    __tablename__ = "sessions"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    trainee_id = Column(Integer, ForeignKey("trainees.id"), nullable=False, index=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    scheduled_date = Column(DateTime, nullable=False)
    start_time = Column(String, nullable=False)
    end_time = Column(String, nullable=False)
    duration = Column(Integer, default=DEFAULT_SESSION_DURATION, nullable=False)
    status = Column(SQLAlchemyEnum(SessionStatus), default=SessionStatus.scheduled, nullable=False)
    actual_start_time = Column(DateTime, nullable=True)
    actual_end_time = Column(DateTime, nullable=True)
    notes = Column(String, nullable=True)
    feedback_rating = Column(Integer, nullable=True)
    feedback_comment = Column(String, nullable=True)
    feedback_date = Column(DateTime, nullable=True)
    is_rescheduled = Column(Boolean, default=False, nullable=False)
    previous_date = Column(DateTime, nullable=True)
    previous_start_time = Column(String, nullable=True)
    previous_end_time = Column(String, nullable=True)
    session_order = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __mapper_args__ = {"version_id_col": version}
