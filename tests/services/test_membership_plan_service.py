"""
Tests para MembershipPlanService: nombres únicos, campos congelados por uso y retiro.
"""
import pytest

from app.core.exceptions import DuplicateName, PlanInUse, PlanNotFound
from app.models.membership import DurationType
from app.schemas.membership import MembershipPlanCreate, MembershipPlanUpdate
from app.schemas.student import StudentUpdate


class TestMembershipPlanService:

    def test_create_plan(self, db, gym, plan_service):
        plan = plan_service.create_plan(
            db,
            gym.id,
            MembershipPlanCreate(name="Pase 10 días", price_cents=500000, duration=10, duration_type=DurationType.DAYS),
        )
        assert plan.id is not None
        assert plan.gym_id == gym.id
        assert plan.is_active is True
        assert plan.students_count == 0
        assert plan.duration_type == "days"
        assert plan.price_amount == 5000.0

    def test_duplicate_name_in_same_gym(self, db, gym, make_plan):
        make_plan(gym, name="Mensual")
        with pytest.raises(DuplicateName):
            make_plan(gym, name="Mensual")

    def test_same_name_in_other_gym_is_allowed(self, db, gym, make_gym, make_plan):
        other = make_gym(name="Gym Norte")
        make_plan(gym, name="Mensual")
        plan = make_plan(other, name="Mensual")
        assert plan.gym_id == other.id

    def test_update_price_blocked_when_in_use(self, db, gym, monthly_plan, make_student, plan_service):
        make_student(gym, monthly_plan)
        with pytest.raises(PlanInUse):
            plan_service.update_plan(db, gym.id, monthly_plan.id, MembershipPlanUpdate(price_cents=2000000))
        with pytest.raises(PlanInUse):
            plan_service.update_plan(db, gym.id, monthly_plan.id, MembershipPlanUpdate(duration=3))

    def test_update_description_allowed_when_in_use(self, db, gym, monthly_plan, make_student, plan_service):
        make_student(gym, monthly_plan)
        updated = plan_service.update_plan(
            db, gym.id, monthly_plan.id,
            MembershipPlanUpdate(description="Acceso libre", features=["Musculación"]),
        )
        assert updated.description == "Acceso libre"
        assert updated.features == ["Musculación"]

    def test_update_price_allowed_without_students(self, db, gym, monthly_plan, plan_service):
        updated = plan_service.update_plan(db, gym.id, monthly_plan.id, MembershipPlanUpdate(price_cents=1800000))
        assert updated.price_cents == 1800000

    def test_retire_plan_in_use(self, db, gym, monthly_plan, make_student, plan_service):
        make_student(gym, monthly_plan)
        with pytest.raises(PlanInUse):
            plan_service.retire_plan(db, gym.id, monthly_plan.id)
        db.refresh(monthly_plan)
        assert monthly_plan.is_active is True

    def test_retire_plan_without_students(self, db, gym, monthly_plan, plan_service):
        retired = plan_service.retire_plan(db, gym.id, monthly_plan.id)
        assert retired.is_active is False
        assert plan_service.list_plans(db, gym.id, active_only=True) == []
        assert len(plan_service.list_plans(db, gym.id, active_only=False)) == 1

    def test_retire_after_reassigning_students(
        self, db, gym, monthly_plan, make_plan, make_student, student_service, plan_service
    ):
        students = [make_student(gym, monthly_plan, dni=dni) for dni in ("1", "2", "3")]
        db.refresh(monthly_plan)
        assert monthly_plan.students_count == 3
        with pytest.raises(PlanInUse):
            plan_service.retire_plan(db, gym.id, monthly_plan.id)

        quarterly = make_plan(gym, name="Trimestral", price_cents=4000000, duration=3)
        for student in students:
            student_service.update_student(
                db, gym.id, student.id, StudentUpdate(membership_plan_id=quarterly.id)
            )

        db.refresh(monthly_plan)
        assert monthly_plan.students_count == 0
        retired = plan_service.retire_plan(db, gym.id, monthly_plan.id)
        assert retired.is_active is False

    def test_retired_plan_cannot_be_assigned(self, db, gym, monthly_plan, plan_service, make_student):
        plan_service.retire_plan(db, gym.id, monthly_plan.id)
        with pytest.raises(PlanNotFound):
            make_student(gym, monthly_plan)

    def test_plan_of_other_gym_not_found(self, db, gym, make_gym, monthly_plan, plan_service):
        other = make_gym(name="Gym Norte")
        with pytest.raises(PlanNotFound):
            plan_service.get_plan(db, other.id, monthly_plan.id)

    def test_plan_stats_and_popular(self, db, gym, monthly_plan, make_plan, make_student, plan_service):
        quarterly = make_plan(gym, name="Trimestral", price_cents=4000000, duration=3)
        make_student(gym, monthly_plan, dni="1")
        make_student(gym, monthly_plan, dni="2")
        make_student(gym, quarterly, dni="3")

        stats = plan_service.get_plan_stats(db, gym.id, monthly_plan.id)
        assert stats.total_students == 2
        assert stats.active_students == 2
        assert stats.new_students_last_30_days == 2
        assert stats.revenue_cents == 3000000

        popular = plan_service.get_popular_plans(db, gym.id)
        assert [p.plan_id for p in popular] == [monthly_plan.id, quarterly.id]
        assert popular[0].students_count == 2

    def test_rename_to_active_plan_name(self, db, gym, monthly_plan, make_plan, plan_service):
        quarterly = make_plan(gym, name="Trimestral", price_cents=4000000, duration=3)
        with pytest.raises(DuplicateName):
            plan_service.update_plan(db, gym.id, quarterly.id, MembershipPlanUpdate(name="Mensual"))

    def test_rename_to_retired_plan_name(self, db, gym, monthly_plan, make_plan, plan_service):
        plan_service.retire_plan(db, gym.id, monthly_plan.id)
        quarterly = make_plan(gym, name="Trimestral", price_cents=4000000, duration=3)

        with pytest.raises(DuplicateName):
            plan_service.update_plan(db, gym.id, quarterly.id, MembershipPlanUpdate(name="Mensual"))
        db.refresh(quarterly)
        assert quarterly.name == "Trimestral"

    def test_usage_counter_never_below_zero(self, db, gym, monthly_plan, make_student, plan_service):
        make_student(gym, monthly_plan)

        plan_service.increment_usage(db, monthly_plan.id, -5)
        db.commit()

        db.refresh(monthly_plan)
        assert monthly_plan.students_count == 0
