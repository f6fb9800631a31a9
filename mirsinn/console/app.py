from __future__ import annotations

from fastapi import Depends, FastAPI

from mirsinn.console.routes import health, questions
from mirsinn.console.security import require_console_user


def create_app() -> FastAPI:
    """Build the FastAPI application serving the on-demand trigger."""
    app = FastAPI(
        title="Mir Sinn Console",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    protected_dependencies = [Depends(require_console_user)]
    app.include_router(health.router)
    app.include_router(questions.router, dependencies=protected_dependencies)
    return app


app = create_app()


__all__ = ["app", "create_app"]
