import pytest
from datetime import datetime
from backend.school_service import models, bookings, sessions, crud, progress
from backend.school_service.errors import NotFound, InvalidArgument, InvalidState, Forbidden, Conflict


class TestBulkCreate:
    @pytest.mark.asyncio
    async def test_sessions_are_numbered_in_input_order(self, db_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=3, duration=45)
        booking, trainer, created = await scheduled_booking(plan=plan)

        assert [s.session_order for s in created] == [1, 2, 3]
        assert booking.session_ids == [s.id for s in created]
        for session in created:
            assert session.status == models.SessionStatus.scheduled
            assert session.trainer_id == trainer.id
            assert session.trainee_id == booking.trainee_id
            assert session.plan_id == plan.id
            assert session.duration == 45

    @pytest.mark.asyncio
    async def test_opens_progress_entry(self, db_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=3)
        booking, _, _ = await scheduled_booking(plan=plan)

        trainee = await crud.get_trainee_by_id(db_session, booking.trainee_id)
        entry = progress.find_plan_entry(trainee, plan.id)
        assert entry.total_sessions == 3
        assert entry.completed_sessions == 0
        assert entry.status == models.PlanProgressStatus.active

    @pytest.mark.asyncio
    async def test_second_booking_tops_up_progress(self, db_session, make_trainee, make_plan, scheduled_booking):
        trainee = await make_trainee()
        plan = await make_plan(number_of_sessions=2)
        await scheduled_booking(trainee=trainee, plan=plan)
        await scheduled_booking(trainee=trainee, plan=plan)

        assert len(trainee.active_plans) == 1
        assert trainee.active_plans[0].total_sessions == 4

    @pytest.mark.asyncio
    async def test_requires_booking_and_slots(self, db_session, make_slots):
        with pytest.raises(InvalidArgument):
            await sessions.bulk_create_sessions(db_session, None, make_slots(1))
        with pytest.raises(InvalidArgument):
            await sessions.bulk_create_sessions(db_session, 1, None)

    @pytest.mark.asyncio
    async def test_empty_slot_list_clears_sessions(self, db_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=2)
        booking, _, created = await scheduled_booking(plan=plan)
        assert booking.session_ids == [s.id for s in created]

        assert await sessions.bulk_create_sessions(db_session, booking.id, []) == []

        assert booking.session_ids == []
        trainee = await crud.get_trainee_by_id(db_session, booking.trainee_id)
        assert progress.find_plan_entry(trainee, plan.id).total_sessions == 4

    @pytest.mark.asyncio
    async def test_unknown_booking(self, db_session, make_slots):
        with pytest.raises(NotFound):
            await sessions.bulk_create_sessions(db_session, 404, make_slots(1))

    @pytest.mark.asyncio
    async def test_pending_booking_is_rejected(self, db_session, make_booking, make_slots):
        booking = await make_booking()
        with pytest.raises(InvalidState):
            await sessions.bulk_create_sessions(db_session, booking.id, make_slots(2))
        assert booking.session_ids == []


class TestTrainerOperations:
    @pytest.mark.asyncio
    async def test_start_then_complete_counts_progress(self, db_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=2)
        booking, trainer, created = await scheduled_booking(plan=plan)
        first = created[0]

        started = await sessions.start_session(db_session, trainer, first.id)
        assert started.status == models.SessionStatus.in_progress
        assert started.actual_start_time is not None

        completed = await sessions.complete_session(db_session, trainer, first.id, "Good parking")
        assert completed.status == models.SessionStatus.completed
        assert completed.actual_end_time is not None
        assert completed.notes == "Good parking"

        trainee = await crud.get_trainee_by_id(db_session, booking.trainee_id)
        entry = progress.find_plan_entry(trainee, plan.id)
        assert entry.completed_sessions == 1
        assert entry.status == models.PlanProgressStatus.active

    @pytest.mark.asyncio
    async def test_plan_completes_with_last_session(self, db_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=2)
        booking, trainer, created = await scheduled_booking(plan=plan)
        for session in created:
            await sessions.start_session(db_session, trainer, session.id)
            await sessions.complete_session(db_session, trainer, session.id)

        trainee = await crud.get_trainee_by_id(db_session, booking.trainee_id)
        entry = progress.find_plan_entry(trainee, plan.id)
        assert entry.completed_sessions == 2
        assert entry.status == models.PlanProgressStatus.completed
        assert entry.end_date is not None

    @pytest.mark.asyncio
    async def test_complete_requires_in_progress(self, db_session, scheduled_booking):
        _, trainer, created = await scheduled_booking()
        with pytest.raises(InvalidState):
            await sessions.complete_session(db_session, trainer, created[0].id)
        assert created[0].status == models.SessionStatus.scheduled

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self, db_session, scheduled_booking):
        _, trainer, created = await scheduled_booking()
        await sessions.start_session(db_session, trainer, created[0].id)
        with pytest.raises(InvalidState):
            await sessions.start_session(db_session, trainer, created[0].id)

    @pytest.mark.asyncio
    async def test_other_trainer_is_forbidden(self, db_session, make_trainer, scheduled_booking):
        _, _, created = await scheduled_booking()
        stranger = await make_trainer()
        with pytest.raises(Forbidden):
            await sessions.start_session(db_session, stranger, created[0].id)
        with pytest.raises(Forbidden):
            await sessions.reschedule_session(db_session, stranger, created[0].id, datetime(2030, 2, 1), "09:00", "09:50")

    @pytest.mark.asyncio
    async def test_reschedule_keeps_previous_slot(self, db_session, scheduled_booking):
        _, trainer, created = await scheduled_booking()
        session = created[0]
        old_date, old_start, old_end = session.scheduled_date, session.start_time, session.end_time

        moved = await sessions.reschedule_session(db_session, trainer, session.id, datetime(2030, 2, 1), "09:00", "09:50")

        assert moved.status == models.SessionStatus.rescheduled
        assert moved.is_rescheduled is True
        assert moved.scheduled_date == datetime(2030, 2, 1)
        assert (moved.start_time, moved.end_time) == ("09:00", "09:50")
        assert moved.previous_date == old_date
        assert (moved.previous_start_time, moved.previous_end_time) == (old_start, old_end)

    @pytest.mark.asyncio
    async def test_rescheduled_session_can_start(self, db_session, scheduled_booking):
        _, trainer, created = await scheduled_booking()
        await sessions.reschedule_session(db_session, trainer, created[0].id, datetime(2030, 2, 1), "09:00", "09:50")
        started = await sessions.start_session(db_session, trainer, created[0].id)
        assert started.status == models.SessionStatus.in_progress

    @pytest.mark.asyncio
    async def test_reschedule_requires_every_field(self, db_session, scheduled_booking):
        _, trainer, created = await scheduled_booking()
        with pytest.raises(InvalidArgument):
            await sessions.reschedule_session(db_session, trainer, created[0].id, datetime(2030, 2, 1), None, "09:50")


class TestAdminStatusUpdate:
    @pytest.mark.asyncio
    async def test_invalid_status(self, db_session, scheduled_booking):
        _, _, created = await scheduled_booking()
        with pytest.raises(InvalidArgument):
            await sessions.update_session_status(db_session, created[0].id, "finished")

    @pytest.mark.asyncio
    async def test_repeated_completion_counts_once(self, db_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=3)
        booking, _, created = await scheduled_booking(plan=plan)

        await sessions.update_session_status(db_session, created[0].id, "completed")
        await sessions.update_session_status(db_session, created[0].id, "completed")

        trainee = await crud.get_trainee_by_id(db_session, booking.trainee_id)
        assert progress.find_plan_entry(trainee, plan.id).completed_sessions == 1

    @pytest.mark.asyncio
    async def test_in_progress_stamps_start(self, db_session, scheduled_booking):
        _, _, created = await scheduled_booking()
        session = await sessions.update_session_status(db_session, created[0].id, "in_progress")
        assert session.actual_start_time is not None

    @pytest.mark.asyncio
    async def test_progress_never_exceeds_total(self, db_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=1)
        booking, trainer, created = await scheduled_booking(plan=plan)
        await sessions.update_session_status(db_session, created[0].id, "completed")
        # Back to scheduled and completed again through the trainer path
        await sessions.update_session_status(db_session, created[0].id, "scheduled")
        await sessions.start_session(db_session, trainer, created[0].id)
        await sessions.complete_session(db_session, trainer, created[0].id)

        trainee = await crud.get_trainee_by_id(db_session, booking.trainee_id)
        entry = progress.find_plan_entry(trainee, plan.id)
        assert entry.completed_sessions == entry.total_sessions == 1
        assert entry.status == models.PlanProgressStatus.completed


class TestDeleteSession:
    @pytest.mark.asyncio
    async def test_delete_scheduled_session(self, db_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=3)
        booking, _, created = await scheduled_booking(plan=plan)

        await sessions.delete_session(db_session, created[1].id)

        assert booking.session_ids == [created[0].id, created[2].id]
        assert await crud.get_session_by_id(db_session, created[1].id) is None
        remaining = await crud.get_sessions_by_booking(db_session, booking.id)
        assert [s.session_order for s in remaining] == [1, 3]

    @pytest.mark.asyncio
    async def test_started_session_cannot_be_deleted(self, db_session, scheduled_booking):
        _, trainer, created = await scheduled_booking()
        await sessions.start_session(db_session, trainer, created[0].id)
        with pytest.raises(InvalidState):
            await sessions.delete_session(db_session, created[0].id)

    @pytest.mark.asyncio
    async def test_unknown_session(self, db_session):
        with pytest.raises(NotFound):
            await sessions.delete_session(db_session, 999)


class TestFeedback:
    @pytest.mark.asyncio
    async def test_rating_updates_trainer_average(self, db_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=2)
        booking, trainer, created = await scheduled_booking(plan=plan)
        trainee = await crud.get_trainee_by_id(db_session, booking.trainee_id)

        session = await sessions.provide_feedback(db_session, trainee, created[0].id, 4, "Very patient")
        assert session.feedback_rating == 4
        assert session.feedback_comment == "Very patient"
        assert session.feedback_date is not None
        assert trainer.total_reviews == 1
        assert trainer.rating == pytest.approx(4.0)

        await sessions.provide_feedback(db_session, trainee, created[1].id, 5)
        assert trainer.total_reviews == 2
        assert trainer.rating == pytest.approx(4.5)

    @pytest.mark.asyncio
    async def test_rating_out_of_range(self, db_session, scheduled_booking):
        booking, trainer, created = await scheduled_booking()
        trainee = await crud.get_trainee_by_id(db_session, booking.trainee_id)
        for rating in (None, 0, 6):
            with pytest.raises(InvalidArgument):
                await sessions.provide_feedback(db_session, trainee, created[0].id, rating)
        assert trainer.total_reviews == 0
        assert trainer.rating == 0.0

    @pytest.mark.asyncio
    async def test_other_trainee_is_forbidden(self, db_session, make_trainee, scheduled_booking):
        _, trainer, created = await scheduled_booking()
        stranger = await make_trainee()
        with pytest.raises(Forbidden):
            await sessions.provide_feedback(db_session, stranger, created[0].id, 5)
        assert trainer.total_reviews == 0

    @pytest.mark.asyncio
    async def test_concurrent_rating_conflicts(self, db_session, other_session, make_plan, scheduled_booking):
        plan = await make_plan(number_of_sessions=2)
        booking, trainer, created = await scheduled_booking(plan=plan)
        trainee = await crud.get_trainee_by_id(db_session, booking.trainee_id)
        # The second request holds the trainer as it was before the first rating
        stale_trainee = await crud.get_trainee_by_id(other_session, booking.trainee_id)
        await crud.get_trainer_by_id(other_session, trainer.id)

        await sessions.provide_feedback(db_session, trainee, created[0].id, 5)

        with pytest.raises(Conflict):
            await sessions.provide_feedback(other_session, stale_trainee, created[1].id, 1)

        await db_session.refresh(trainer)
        assert trainer.total_reviews == 1
        assert trainer.rating == pytest.approx(5.0)
        await db_session.refresh(created[1])
        assert created[1].feedback_rating is None


class TestCancelledBookingSessions:
    @pytest.mark.asyncio
    async def test_cancelled_session_cannot_start(self, db_session, make_user, scheduled_booking):
        admin = await make_user(models.UserRole.admin)
        booking, trainer, created = await scheduled_booking()
        await bookings.cancel_booking(db_session, booking.id, admin)

        with pytest.raises(InvalidState):
            await sessions.start_session(db_session, trainer, created[0].id)
