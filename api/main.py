"""
ProposalPilot API

Commission structure classification and synthesis as a stateless service.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

import proposalpilot
from proposalpilot.logging_config import configure_logging

from api.routes import classify, validate


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Install log handlers on startup."""
    logger = configure_logging()
    logger.info("ProposalPilot API %s starting", proposalpilot.__version__)
    yield
    logger.info("ProposalPilot API shutting down")


# Create app
app = FastAPI(
    title="ProposalPilot API",
    description="""
**Commission structure classification and synthesis.**

Fingerprints certificate split configurations, classifies each employer
group's clusters, and synthesizes shared Proposals and Hierarchies or
per-certificate PHA records.

## Quick Start

1. `POST /classify` - Classify certificates and get staged output
2. `POST /validate` - Re-check staged output for completeness and ambiguity
    """,
    version=proposalpilot.__version__,
    lifespan=lifespan,
)

# Include routers
app.include_router(classify.router)
app.include_router(validate.router)


@app.get("/health", tags=["Health"])
async def health():
    """Health check endpoint."""
    return {
        "healthy": True,
        "service": "ProposalPilot API",
        "version": proposalpilot.__version__,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
