from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, AliasChoices, model_validator
from enum import Enum
from datetime import datetime
from .models import (
    UserRole, Gender, LanguageCode, TrainerStatus, BookingStatus, SessionStatus,
    PlanProgressStatus, ChangeRequestStatus, PlanCategory, DEFAULT_SESSION_DURATION,
)

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

class Weekday(str, Enum):
    sunday = "Sunday"
    monday = "Monday"
    tuesday = "Tuesday"
    wednesday = "Wednesday"
    thursday = "Thursday"
    friday = "Friday"
    saturday = "Saturday"

class Message(BaseModel):
    message: str

# Users

class UserCreate(BaseModel):
    uid: str
    email: str
    name: str
    phone: Optional[str] = None
    gender: Optional[Gender] = None
    age: Optional[int] = Field(default=None, ge=16, le=100)
    role: UserRole = UserRole.trainee
    language: LanguageCode = LanguageCode.en
    # Trainer registrations only
    has_vehicle: bool = False
    vehicle_type: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_year: Optional[int] = Field(default=None, ge=1950, le=2100)

    @model_validator(mode="after")
    def check_vehicle(self):
        if self.role == UserRole.trainer and self.has_vehicle:
            if not (self.vehicle_type and self.vehicle_model and self.vehicle_year):
                raise ValueError("vehicle_type, vehicle_model and vehicle_year are required when has_vehicle is set")
        return self

class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uid: str
    email: str
    name: str
    phone: Optional[str] = None
    gender: Optional[Gender] = None
    age: Optional[int] = None
    role: UserRole
    language: LanguageCode
    avatar: Optional[str] = ""

class TrainerProfileUpdate(BaseModel):
    status: Optional[TrainerStatus] = None
    has_vehicle: Optional[bool] = None
    vehicle_type: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_year: Optional[int] = Field(default=None, ge=1950, le=2100)

class UserUpdate(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[Gender] = None
    age: Optional[int] = Field(default=None, ge=16, le=100)
    role: Optional[UserRole] = None
    language: Optional[LanguageCode] = None
    trainer: Optional[TrainerProfileUpdate] = None

class ProfileSummary(BaseModel):
    id: int
    status: Optional[TrainerStatus] = None
    rating: Optional[float] = None
    assigned_trainer_id: Optional[int] = None

class UserDetail(User):
    profile: Optional[ProfileSummary] = None

class TrainerStatusUpdate(BaseModel):
    status: Optional[str] = None

# Trainers

class TimeSlot(BaseModel):
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    is_booked: bool = False

class DayAvailability(BaseModel):
    day: Weekday
    slots: List[TimeSlot] = []

class AvailabilityUpdate(BaseModel):
    availability: List[DayAvailability]

class Availability(BaseModel):
    id: int
    availability: List[DayAvailability]

class Trainer(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_uid: str
    name: Optional[str] = None
    phone: Optional[str] = None
    status: TrainerStatus
    has_vehicle: bool
    vehicle_type: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_year: Optional[int] = None
    rating: float
    total_reviews: int
    specializations: List[str] = []
    availability: List[DayAvailability] = []
    profile_image: Optional[str] = ""
    vehicle_image: Optional[str] = ""
    assigned_trainees: List[int] = []

    @classmethod
    def from_trainer(cls, trainer) -> "Trainer":
        return cls(
            id=trainer.id,
            user_uid=trainer.user_uid,
            name=trainer.user.name if trainer.user else None,
            phone=trainer.user.phone if trainer.user else None,
            status=trainer.status,
            has_vehicle=trainer.has_vehicle,
            vehicle_type=trainer.vehicle_type,
            vehicle_model=trainer.vehicle_model,
            vehicle_year=trainer.vehicle_year,
            rating=trainer.rating,
            total_reviews=trainer.total_reviews,
            specializations=trainer.specializations or [],
            availability=trainer.availability or [],
            profile_image=trainer.profile_image,
            vehicle_image=trainer.vehicle_image,
            assigned_trainees=[m.trainee_id for m in trainer.trainee_mappings],
        )

# Trainees

class PlanProgress(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    plan_id: int
    completed_sessions: int
    total_sessions: int
    start_date: datetime
    end_date: Optional[datetime] = None
    status: PlanProgressStatus

class TrainerHistory(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    trainer_id: int
    reason: Optional[str] = None
    date: datetime

class Trainee(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_uid: str
    name: Optional[str] = None
    phone: Optional[str] = None
    assigned_trainer_id: Optional[int] = None
    preferred_language: LanguageCode
    active_plans: List[PlanProgress] = []
    previous_trainers: List[TrainerHistory] = []

    @classmethod
    def from_trainee(cls, trainee) -> "Trainee":
        return cls(
            id=trainee.id,
            user_uid=trainee.user_uid,
            name=trainee.user.name if trainee.user else None,
            phone=trainee.user.phone if trainee.user else None,
            assigned_trainer_id=trainee.assigned_trainer_id,
            preferred_language=trainee.preferred_language,
            active_plans=[PlanProgress.model_validate(p) for p in trainee.active_plans],
            previous_trainers=[TrainerHistory.model_validate(h) for h in trainee.previous_trainers],
        )

# Plans

class PlanFeature(BaseModel):
    text_ar: str
    text_en: str

class PlanCreate(BaseModel):
    name_ar: str
    name_en: str
    description_ar: str
    description_en: str
    price: float = Field(ge=0)
    number_of_sessions: int = Field(gt=0)
    duration: int = Field(default=DEFAULT_SESSION_DURATION, gt=0)
    features: List[PlanFeature] = []
    category: PlanCategory = PlanCategory.beginner
    image: str = ""

class PlanUpdate(BaseModel):
    name_ar: Optional[str] = None
    name_en: Optional[str] = None
    description_ar: Optional[str] = None
    description_en: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    number_of_sessions: Optional[int] = Field(default=None, gt=0)
    duration: Optional[int] = Field(default=None, gt=0)
    features: Optional[List[PlanFeature]] = None
    category: Optional[PlanCategory] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None

class Plan(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name_ar: str
    name_en: str
    description_ar: str
    description_en: str
    price: float
    number_of_sessions: int
    duration: int
    features: List[PlanFeature] = []
    category: PlanCategory
    image: Optional[str] = ""
    is_active: bool

class LocalizedPlan(BaseModel):
    id: int
    language: LanguageCode
    name: str
    description: str
    price: float
    number_of_sessions: int
    duration: int
    features: List[str] = []
    category: PlanCategory
    image: Optional[str] = ""
    is_active: bool

# Bookings

class PreferredTime(BaseModel):
    day: Weekday
    time: str = Field(pattern=TIME_PATTERN)

class BookingCreate(BaseModel):
    plan_id: int
    preferred_start_date: datetime
    preferred_times: List[PreferredTime] = []
    notes: Optional[str] = None

class BookingConfirm(BaseModel):
    trainer_id: Optional[int] = None

class TrainerChangeRequestCreate(BaseModel):
    reason: Optional[str] = None

class TrainerChangeDecision(BaseModel):
    status: Optional[str] = None
    new_trainer_id: Optional[int] = None

class TrainerChangeRequest(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    requested: bool
    reason: Optional[str] = None
    date: Optional[datetime] = None
    status: ChangeRequestStatus

class Booking(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    trainee_id: int
    trainer_id: Optional[int] = None
    plan_id: int
    preferred_start_date: datetime
    preferred_times: List[PreferredTime] = []
    status: BookingStatus
    total_price: float
    notes: Optional[str] = ""
    trainer_change_request: Optional[TrainerChangeRequest] = None
    sessions: List[int] = Field(default=[], validation_alias=AliasChoices("session_ids", "sessions"))
    created_at: Optional[datetime] = None

# Sessions

class SessionSlot(BaseModel):
    scheduled_date: datetime
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)

class SessionBulkCreate(BaseModel):
    booking_id: Optional[int] = None
    sessions: Optional[List[SessionSlot]] = None

class SessionStatusUpdate(BaseModel):
    status: Optional[str] = None

class SessionComplete(BaseModel):
    notes: Optional[str] = None

class SessionReschedule(BaseModel):
    scheduled_date: Optional[datetime] = None
    start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)

class FeedbackCreate(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None

class Feedback(BaseModel):
    rating: int
    comment: Optional[str] = ""
    date: datetime

class PreviousSchedule(BaseModel):
    date: datetime
    start_time: str
    end_time: str

class Session(BaseModel):
    id: int
    booking_id: int
    trainee_id: int
    trainer_id: Optional[int] = None
    plan_id: int
    scheduled_date: datetime
    start_time: str
    end_time: str
    duration: int
    status: SessionStatus
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    notes: Optional[str] = None
    feedback: Optional[Feedback] = None
    is_rescheduled: bool = False
    previous_schedule: Optional[PreviousSchedule] = None
    session_order: int

    @model_validator(mode="before")
    @classmethod
    def flatten_orm(cls, data):
        if isinstance(data, dict):
            return data
        # ORM row: fold the flat feedback / previous-schedule columns into sub-records
        values = {name: getattr(data, name) for name in cls.model_fields if hasattr(data, name)}
        if data.feedback_rating is not None:
            values["feedback"] = {
                "rating": data.feedback_rating,
                "comment": data.feedback_comment,
                "date": data.feedback_date,
            }
        if data.previous_date is not None:
            values["previous_schedule"] = {
                "date": data.previous_date,
                "start_time": data.previous_start_time,
                "end_time": data.previous_end_time,
            }
        return values
