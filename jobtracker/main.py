"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from jobtracker.app.api.v1 import resumes
from jobtracker.app.core.config import settings
from jobtracker.app.core.errors import ResumeServiceError, resume_service_error_handler
from jobtracker.app.core.logging_config import setup_logging
from jobtracker.app.db.base import Base
from jobtracker.app.db.session import engine
from jobtracker.app.utils import cache

# Import models so they register with Base.metadata
import jobtracker.app.models  # noqa: F401

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error("Database init failed error=%s", e)
    await cache.connect()
    yield
    await cache.close()


# Initialize FastAPI app
app = FastAPI(
    title=f"{settings.app_name} API",
    description="Resume lifecycle API for the job application tracker",
    version=settings.app_version,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ResumeServiceError, resume_service_error_handler)

# Include routers
app.include_router(resumes.router, prefix="/api")

# Serve locally stored resumes (create dir if missing)
if settings.file_storage_type.strip().lower() == "local":
    upload_path = Path(settings.upload_dir)
    upload_path.mkdir(parents=True, exist_ok=True)
    app.mount(settings.file_base_url, StaticFiles(directory=settings.upload_dir), name="resumes")


@app.get("/")
def read_root():
    """Root endpoint"""
    return {"message": f"{settings.app_name} API", "version": settings.app_version}


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
