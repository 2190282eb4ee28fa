from fastapi import APIRouter

from app.api.api_v1.endpoints import auth, referral, courses, resell, purchase, progress, partner

api_router = APIRouter()

# Health check endpoint for the API
@api_router.get("/health")
async def api_health_check():
    return {"status": "healthy", "api_version": "v1"}

# Include all endpoint routers
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(referral.router, prefix="/referral", tags=["referral"])
api_router.include_router(courses.router, prefix="/courses", tags=["courses"])
api_router.include_router(resell.router, prefix="/resell", tags=["resell"])
api_router.include_router(purchase.router, prefix="/purchase", tags=["purchase"])
api_router.include_router(progress.router, prefix="/progress", tags=["progress"])
api_router.include_router(partner.router, prefix="/partner", tags=["partner"])
