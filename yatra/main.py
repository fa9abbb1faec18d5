"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from yatra.core.config import settings
from yatra.core.logging import setup_logging
from yatra.db.init_db import init_db
from yatra.api import dashboard, hotels, registrations


# Setup logging
setup_logging(settings.log_level, settings.redact_logs)

# Initialize database
init_db()

# Create FastAPI app
app = FastAPI(
    title="Yatra Accommodation API",
    description="Room allocation and document review for yatra registrations",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # The admin portal is served from its own origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(hotels.router, prefix="/api", tags=["hotels"])
app.include_router(registrations.router, prefix="/api", tags=["registrations"])
app.include_router(dashboard.router, prefix="/api", tags=["dashboard"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Yatra Accommodation API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("yatra.main:app", host=settings.api_host, port=settings.api_port)
