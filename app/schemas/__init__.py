from app.schemas.common import Page, SweepResult, to_page
from app.schemas.gym import Gym, GymCreate, GymUpdate, SubscriptionPlan, TenantLimitStatus, GymStats
from app.schemas.membership import (
    MembershipPlan,
    MembershipPlanCreate,
    MembershipPlanUpdate,
    MembershipPlanStats,
    PopularPlan,
)
from app.schemas.student import Student, StudentCreate, StudentUpdate, RenewMembership, MembershipStatusInfo
from app.schemas.check_in import CheckIn, CheckInCreate, PeakHour, MethodStats, TodayAttendee
from app.schemas.analytics import AnalyticsReport, AnalyticsSnapshot, SnapshotRequest
