from app.models.gym import Gym, SubscriptionPlan, SubscriptionStatus
from app.models.membership import MembershipPlan, DurationType
from app.models.student import Student, MembershipStatus
from app.models.check_in import CheckIn, CheckInMethod
from app.models.analytics import AnalyticsSnapshot, PeriodType
