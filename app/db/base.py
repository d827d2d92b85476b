# Importar todos los modelos para que Alembic y create_all los detecten
from app.db.base_class import Base  # noqa
from app.models.gym import Gym, SubscriptionPlan  # noqa
from app.models.membership import MembershipPlan  # noqa
from app.models.student import Student  # noqa
from app.models.check_in import CheckIn  # noqa
from app.models.analytics import AnalyticsSnapshot  # noqa
