from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
import logging

from app.core.config import settings
from app.api.api_v1.api import api_router
from app.database import get_db, init_db
from app.services.expiry_scheduler import start_expiry_scheduler, stop_expiry_scheduler
from app.services.referral_service import ReferralService
from app.api.api_v1.common import set_pending_cookie

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Alife Stable Academy API",
    description="Referral attribution, partner pricing, sales ledger and progress sync",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware - must be added before any routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix="/api/v1")

@app.on_event("startup")
async def startup_event():
    """Create database tables on startup and start the expiry scheduler"""
    try:
        init_db()
        logger.info("Database initialization completed")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        # Don't exit, let the app start anyway

    if settings.EXPIRY_SCHEDULER_ENABLED:
        await start_expiry_scheduler()
    else:
        logger.info("EXPIRY_SCHEDULER_ENABLED is false; scheduler will not start.")

@app.on_event("shutdown")
async def shutdown_event():
    """Stop expiry scheduler on shutdown"""
    await stop_expiry_scheduler()

@app.get("/r/{ref_code}")
async def referral_link(ref_code: str, db: Session = Depends(get_db)):
    """Referral link: remember the code and send the visitor to signup"""
    pending = ReferralService(db).capture(ref_code)
    if pending is None:
        return RedirectResponse(url=settings.FRONTEND_URL, status_code=302)

    response = RedirectResponse(url=f"{settings.FRONTEND_URL}/signup?ref={pending.code}", status_code=302)
    set_pending_cookie(response, pending)
    return response

@app.get("/")
async def root():
    return {
        "message": "Alife Stable Academy API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "authentication": "/api/v1/auth",
            "referral": "/api/v1/referral",
            "courses": "/api/v1/courses",
            "resell": "/api/v1/resell",
            "purchase": "/api/v1/purchase",
            "progress": "/api/v1/progress",
            "partner": "/api/v1/partner",
            "referral-link": "/r/{code}",
            "health": "/health"
        }
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        port=8000,
        reload=True
    )
