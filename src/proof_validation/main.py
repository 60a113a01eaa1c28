"""Proof validation service FastAPI application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .config import settings
from .fraud import FraudDetectionEngine
from .metrics import InMemoryMetricsRecorder, MetricsRecorder
from .oracle import HttpProofOracle, ProofOracle
from .pipeline import SubmissionStore, SubmissionValidationPipeline
from .policy import ValidationThresholds
from .prevalidation import SubmissionPreValidator
from .routes import operations, submissions
from .tuning import ThresholdTuner

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_VERSION = "0.1.0"


def create_app(
    oracle: ProofOracle | None = None,
    metrics: MetricsRecorder | None = None,
    store: SubmissionStore | None = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators default to the HTTP oracle and the in-memory recorder
    configured from settings; tests pass fakes instead.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Construct the pipeline and its collaborators for the process lifetime."""
        owned_oracle = None
        if oracle is None:
            logger.info(f"Using oracle at {settings.oracle_url}")
            owned_oracle = HttpProofOracle(
                settings.oracle_url,
                api_key=settings.oracle_api_key,
                timeout_seconds=settings.oracle_timeout_seconds,
            )

        recorder = metrics or InMemoryMetricsRecorder(
            retention_seconds=settings.metrics_retention_seconds
        )
        thresholds = ValidationThresholds(
            auto_approve=settings.auto_approve_threshold,
            auto_reject=settings.auto_reject_threshold,
        )

        app.state.metrics = recorder
        app.state.pipeline = SubmissionValidationPipeline(
            oracle=oracle or owned_oracle,
            metrics=recorder,
            prevalidator=SubmissionPreValidator(settings.prevalidation_config()),
            fraud_engine=FraudDetectionEngine(settings.fraud_rules()),
            thresholds=thresholds,
            store=store,
        )
        app.state.tuner = ThresholdTuner(recorder, thresholds)
        logger.info(
            f"{settings.service_name} ready (approve >= {thresholds.auto_approve}, "
            f"reject <= {thresholds.auto_reject})"
        )

        yield

        if owned_oracle is not None:
            await owned_oracle.close()

    app = FastAPI(
        title="Proof Validation Service",
        description="Anti-fraud and validation pipeline for proof-of-visit submissions",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.include_router(submissions.router, prefix="/submissions", tags=["submissions"])
    app.include_router(operations.router, tags=["operations"])

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy", "service": settings.service_name}

    @app.get("/")
    async def root() -> dict:
        """Root endpoint with service info."""
        return {
            "service": "Proof Validation Service",
            "version": SERVICE_VERSION,
            "endpoints": {
                "validate": "/submissions/validate",
                "validate_batch": "/submissions/validate/batch",
                "validation_metrics": "/metrics/validation",
                "prometheus": "/metrics",
                "thresholds": "/thresholds",
                "optimize_thresholds": "/thresholds/optimize",
                "health": "/health",
            },
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point."""
    uvicorn.run(
        "proof_validation.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
