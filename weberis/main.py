"""ASGI application entrypoint."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from weberis.api.v1._authz import WorkflowFailed
from weberis.api.v1.router import get_api_router
from weberis.core.config import get_config
from weberis.core.startup import bootstrap


async def workflow_failed_handler(request: Request, exc: WorkflowFailed) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.envelope.model_dump(mode="json"))


def create_app() -> FastAPI:
    cfg = get_config()
    app = FastAPI(title=cfg.APP_NAME, version=cfg.APP_VERSION)
    app.add_exception_handler(WorkflowFailed, workflow_failed_handler)
    app.include_router(get_api_router())

    @app.get("/")
    def root() -> dict:
        return {"service": cfg.APP_NAME, "version": cfg.APP_VERSION, "api_prefix": cfg.API_PREFIX}

    return app


# Exposed for `uvicorn weberis.main:app`.
app = create_app()


if __name__ == "__main__":
    import uvicorn

    bootstrap()
    uvicorn.run(app, host="0.0.0.0", port=8000)
