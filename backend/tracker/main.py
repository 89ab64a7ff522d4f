from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from tracker.api.tracking import router as tracking_router, shutdown_tracking_service
from tracker.db import Base, engine
from tracker.models.tracked_run import TrackedRun  # noqa: F401  (import ensures table is registered)
from tracker.core.config import settings
from tracker.core.logger import setup_logger


setup_logger(level=settings.log_level, log_file=settings.log_file)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Stop producer threads and release observers
    shutdown_tracking_service()


app = FastAPI(lifespan=lifespan)

# Allow CORS for local frontend
origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create DB tables on startup
Base.metadata.create_all(bind=engine)

app.include_router(tracking_router)


@app.get("/")
def root():
    return {"message": "Tracker backend is running"}
