from routers.jobs import router as jobs_router
from routers.notifications import router as notifications_router
from routers.push_subscriptions import router as push_subscriptions_router
from routers.preferences import router as preferences_router
from routers.intake import router as intake_router
from routers.treatments import router as treatments_router

__all__ = [
    "jobs_router",
    "notifications_router",
    "push_subscriptions_router",
    "preferences_router",
    "intake_router",
    "treatments_router",
]
