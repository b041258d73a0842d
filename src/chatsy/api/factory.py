"""FastAPI app exposing one page session to the popup."""

from fastapi import FastAPI, Request, Response

from chatsy.observability.correlation import (
    CORRELATION_ID_HEADER,
    accept_correlation_id,
    correlation_scope,
)
from chatsy.session import Session

from .routes import data, health, settings, suggestions, tasks

_ROUTERS = (health, settings, suggestions, data, tasks)


def create_app(session: Session) -> FastAPI:
    """Build the control API for `session`.

    Every response carries X-Correlation-ID; a well-formed incoming value
    is echoed, anything else is replaced by a fresh "api-" id.
    """
    app = FastAPI(title="Chatsy", docs_url=None, redoc_url=None)
    app.state.session = session

    @app.middleware("http")
    async def bind_correlation_id(request: Request, call_next) -> Response:
        cid = accept_correlation_id(request.headers.get(CORRELATION_ID_HEADER), "api")
        with correlation_scope(cid):
            response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = cid
        return response

    for module in _ROUTERS:
        app.include_router(module.router)

    return app
