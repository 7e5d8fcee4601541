"""
FastAPI application entry point for the retail service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from retail.config import get_settings
from retail.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="ABC Retail (FastAPI)", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
