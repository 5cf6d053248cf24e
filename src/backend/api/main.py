from __future__ import annotations

from fastapi import FastAPI

from common.logging_utils import configure_logging
from pipelines.config import get_engine_config

from api.compliance import router as compliance_router


def create_app() -> FastAPI:
    configure_logging(get_engine_config().log_level)
    app = FastAPI(title="Vendor Compliance Engine")
    app.include_router(compliance_router)
    return app


app = create_app()
