from fastapi import APIRouter

# Import routers from modules
from app.api.v1.endpoints import analytics, check_ins, gyms, maintenance, membership_plans, students

api_router = APIRouter()

# Gyms module
api_router.include_router(gyms.router, prefix="/gyms", tags=["gyms"])

# Membership plans module
api_router.include_router(membership_plans.router, prefix="/membership-plans", tags=["membership-plans"])

# Students module
api_router.include_router(students.router, prefix="/students", tags=["students"])

# Attendance module
api_router.include_router(check_ins.router, prefix="/check-ins", tags=["check-ins"])

# Analytics module
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])

# Maintenance endpoints (scheduler externo)
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])
