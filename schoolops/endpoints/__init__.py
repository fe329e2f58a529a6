"""API endpoints for the School Operations Dashboard."""

from fastapi import APIRouter

from schoolops.schemas.base import ErrorResponse

from .health import router as health_router
from .users import router as users_router
from .categories import router as categories_router
from .activities import router as activities_router
from .assignments import router as assignments_router
from .llm_configurations import router as llm_configurations_router
from .ai import router as ai_router
from .events import router as events_router
from .presence import router as presence_router
from .whatsapp_messages import router as whatsapp_messages_router
from .twilio_webhook import router as twilio_router

# Documented error envelope for every route
ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 403, 404, 409, 422, 500)
}

api_router = APIRouter(responses=ERROR_RESPONSES)

api_router.include_router(health_router, prefix="/health", tags=["Health"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])
api_router.include_router(categories_router, prefix="/categories", tags=["Categories"])
api_router.include_router(activities_router, prefix="/activities", tags=["Activities"])
api_router.include_router(
    assignments_router,
    prefix="/activities/{activity_id}/assignments",
    tags=["Assignments"],
)
api_router.include_router(
    llm_configurations_router,
    prefix="/llm-configurations",
    tags=["LLM Configurations"],
)
api_router.include_router(ai_router, prefix="/ai", tags=["AI"])
api_router.include_router(events_router, prefix="/events", tags=["Events"])
api_router.include_router(presence_router, prefix="/presence", tags=["Presence"])
api_router.include_router(whatsapp_messages_router, prefix="/whatsapp-messages", tags=["WhatsApp"])
api_router.include_router(twilio_router, prefix="/twilio", tags=["WhatsApp"])

__all__ = ["api_router"]
