# FastAPI Server for the Reachstakes escrow & approval API

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
from dotenv import load_dotenv

from database.config import init_db, SessionLocal
from database.models import User, UserType
from auth.utils import get_password_hash
from config import app_config
from core.exceptions import MarketplaceError
from services.approval_service import run_approval_sweep
from routers import (
    auth_router,
    brands_router,
    collaborations_router,
    managed_approvals_router,
    concierge_router,
    payments_router,
    escrow_router,
    documents_router,
    notifications_router,
    social_router,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Reachstakes API",
    description="Influencer campaign escrow, content approval and payouts",
    version="1.0.0"
)


def seed_admin():
    """Create the Campaign Manager account from ADMIN_USER / ADMIN_PASS if missing."""
    db = SessionLocal()
    try:
        admin_email = os.getenv("ADMIN_USER", "admin@reachstakes.com")
        admin_pass = os.getenv("ADMIN_PASS", "changeme")

        admin = db.query(User).filter(User.email == admin_email).first()
        if not admin:
            logger.info(f"Seeding admin user: {admin_email}")
            db.add(User(
                email=admin_email,
                password_hash=get_password_hash(admin_pass),
                name="Reachstakes Campaign Manager",
                user_type=UserType.ADMIN,
            ))
            db.commit()
    except Exception as e:
        logger.warning(f"Seeding failed: {e}")
        db.rollback()
    finally:
        db.close()


def scheduled_approval_sweep():
    try:
        result = run_approval_sweep(SessionLocal)
        if result["escalated"] or result["warned"]:
            logger.info(f"Approval sweep: {result['escalated']} escalated, {result['warned']} warned")
    except Exception as e:
        logger.error(f"Scheduled approval sweep failed: {e}")


@app.on_event("startup")
def startup_event():
    init_db()
    seed_admin()

    if not app_config.ENABLE_SCHEDULER:
        logger.info("Scheduler disabled; run main.py to sweep approval deadlines")
        return

    # Initialize Scheduler for the 24h approval fail-safe
    from apscheduler.schedulers.background import BackgroundScheduler

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        scheduled_approval_sweep,
        'interval',
        minutes=app_config.ESCALATION_SWEEP_MINUTES,
        id="approval_deadline_sweep",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    app.state.scheduler = scheduler
    logger.info(f"Scheduler started: approval deadlines swept every {app_config.ESCALATION_SWEEP_MINUTES} minutes")


@app.on_event("shutdown")
def shutdown_event():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler:
        scheduler.shutdown(wait=False)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# CORS Setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=False,  # Required when using "*"
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# API ROUTERS
# ============================================================================
app.include_router(auth_router, prefix="/api")
app.include_router(brands_router, prefix="/api")
app.include_router(collaborations_router, prefix="/api")
app.include_router(managed_approvals_router, prefix="/api")
app.include_router(concierge_router, prefix="/api")
app.include_router(payments_router, prefix="/api")
app.include_router(escrow_router, prefix="/api")
app.include_router(documents_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(social_router, prefix="/api")


@app.get("/")
def root():
    return {"message": "Reachstakes API", "docs": "/docs"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=False)
