"""
ThorEye Audit Engine - FastAPI Application

Main entry point for the ThorEye backend.

Pipeline:
- FormDefinition + answers → Section Expander → effective sections
- effective sections → Mandatory Validator → Score Calculator → AuditReport
- AuditReport → Rebuttal workflow (partner / management)
- AuditReport → ATA Reconciliation → ATAReview (master auditor)
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import auth_router, admin_router, forms_router, reports_router, rebuttals_router, ata_router
from .database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="ThorEye Audit Engine",
    description="""
    ThorEye - Call-Quality Audit Engine

    Auditors fill configurable forms about agent interactions; the engine
    scores them, runs partner rebuttals and records master-auditor reviews.

    ## Pipeline
    1. **Forms**: conditional sections/questions, repeatable "Interaction n" sections
    2. **Scoring**: weighted deductions, grazing, fatal override
    3. **Rebuttals**: partner dispute / management decision workflow
    4. **ATA**: master auditor accuracy and score variance
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(forms_router)
app.include_router(reports_router)
app.include_router(rebuttals_router)
app.include_router(ata_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "ThorEye Audit Engine",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m thoreye.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
