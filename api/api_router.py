from fastapi                        import APIRouter
from .activities.activities         import router as activities_router
from .challenges.challenges         import router as challenges_router
from .users.users                   import router as users_router


api_router = APIRouter(prefix="/api/v1")

api_router.include_router(activities_router)
api_router.include_router(challenges_router)
api_router.include_router(users_router)
