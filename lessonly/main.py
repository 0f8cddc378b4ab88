import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lessonly.api import dashboard, generation, lesson_plan, lesson_structure, student_profiles
from lessonly.core.config import CORS_ORIGINS
from lessonly.db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database tables ready")
    yield


app = FastAPI(title="Lessonly Backend", lifespan=lifespan)

# CORS settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(generation.router, prefix="/api", tags=["generation"])
app.include_router(lesson_plan.router, prefix="/api", tags=["lesson_plan"])
app.include_router(lesson_structure.router, prefix="/api", tags=["lesson_structure"])
app.include_router(student_profiles.router, prefix="/api", tags=["student_profiles"])
app.include_router(dashboard.router, prefix="/api", tags=["dashboard"])


@app.get("/")
def read_root():
    return {"message": "Lessonly API is running"}
