from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from hireit.core.exceptions import DomainError


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.opt(exception=exc).error(f"Domain error on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"Domain error on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


EXCEPTION_HANDLERS = {
    DomainError: domain_error_handler,
}


def register_exception_handlers(app):
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
