# FastAPI Server for the Affiliate Service

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from apscheduler.schedulers.background import BackgroundScheduler
import logging
import sys

from config.app_config import ENABLE_TASK_SCHEDULER, LOG_LEVEL, TASK_POLL_INTERVAL_SECONDS
from database.config import init_db
from routers import orders_router, merchants_router
from workers.task_worker import run_task_cycle

# Configure Logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Affiliate API",
    description="Order attribution, commissions and affiliate payouts",
    version="1.0.0"
)

scheduler = BackgroundScheduler()


def scheduled_task_cycle():
    try:
        run_task_cycle()
    except Exception as e:
        logger.error(f"Scheduled task cycle failed: {e}", exc_info=True)


@app.on_event("startup")
def startup_event():
    # Initialize database tables using SQLAlchemy create_all
    init_db()

    # Drain payout tasks and outbound messages in the background
    if ENABLE_TASK_SCHEDULER:
        scheduler.add_job(
            scheduled_task_cycle,
            'interval',
            seconds=TASK_POLL_INTERVAL_SECONDS,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logger.info(f"Task scheduler started: outboxes drained every {TASK_POLL_INTERVAL_SECONDS}s")


@app.on_event("shutdown")
def shutdown_event():
    if scheduler.running:
        scheduler.shutdown(wait=False)


# CORS Setup - Allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Required when using "*"
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders_router)
app.include_router(merchants_router)


# Health Check
@app.get("/")
def root():
    return {
        "message": "Affiliate API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/health")
def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
