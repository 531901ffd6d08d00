"""
Tourdesk back-office API - main application entry point.

Customers, trips, leads, bookings with installment payments, companion
links and sales commissions for a travel agency.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import get_settings
from app.api import (
    auth,
    users,
    customers,
    families,
    passports,
    tags,
    airline_and_airports,
    trips,
    leads,
    bookings,
    payments,
    commissions,
    tasks,
    dashboard,
    notifications,
    cron,
)

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting %s...", settings.app_name)

    scheduler = None
    if settings.alerts_enabled:
        from app.services.booking_alerts import process_daily_alerts

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            process_daily_alerts,
            trigger=CronTrigger(hour=1, minute=0),  # 01:00 UTC = 08:00 Bangkok
            id="daily_alerts",
            name="Passport expiry, departure and abandoned lead alerts",
            replace_existing=True,
        )
        scheduler.start()
        logger.info("Scheduler started - daily alerts (01:00 UTC)")

    yield

    # Shutdown
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    logger.info("Shutting down %s...", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="""
    ## Tourdesk Back-office API

    Back-office for a travel agency:

    - **Bookings**: trip price from add-ons and discounts, up to three installments
    - **Companions**: travellers booked together on the same trip
    - **Commissions**: flat per-head commission once a booking is fully paid
    - **CRM**: customers, passports, leads, tasks and interactions

    ### Authentication
    All endpoints require JWT authentication. Use `/auth/login` to obtain a token.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(customers.router, prefix="/customers", tags=["Customers"])
app.include_router(families.router, prefix="/families", tags=["Families"])
app.include_router(passports.router, prefix="/passports", tags=["Passports"])
app.include_router(tags.router, prefix="/tags", tags=["Tags"])
app.include_router(airline_and_airports.router, prefix="/airline-and-airports", tags=["Airlines & Airports"])
app.include_router(trips.router, prefix="/trips", tags=["Trips"])
app.include_router(leads.router, prefix="/leads", tags=["Leads"])
app.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])
app.include_router(commissions.router, prefix="/commissions", tags=["Commissions"])
app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(cron.router, prefix="/cron", tags=["Cron"])


@app.get("/", tags=["Health"])
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": "1.0.0",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "currency": settings.currency,
        "alerts": "enabled" if settings.alerts_enabled else "disabled",
    }
