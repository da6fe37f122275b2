"""
FastAPI application entrypoint.

Run locally:  uvicorn psyrecord.main:app --reload
"""

import logging

from fastapi import FastAPI

from psyrecord.api.routes import router
from psyrecord.api.sessions import router as sessions_router
from psyrecord.config import settings
from psyrecord.models.database import Base, engine

logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s")

app = FastAPI(
    title="PsyRecord API",
    description=(
        "Clinical records for psychologists: patient registration, session "
        "records, treatment status history, generated session narratives and "
        "attendance reports, PDF dossiers and session documents."
    ),
    version="1.0.0",
)

app.include_router(router, prefix="/api/v1")
app.include_router(sessions_router, prefix="/api/v1")


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
