from typing import Any, Dict, Type, TypeVar
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

Body = TypeVar("Body", bound=BaseModel)


def parse_body(model: Type[Body], data: Dict[str, Any], message: str) -> Body:
    """Validate a JSON body against ``model``; a mismatch becomes a 400 with ``message``."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.info(f"Rejected {model.__name__} body: {e.error_count()} validation error(s)")
        raise HTTPException(status_code=400, detail=message)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"message": ...}``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        logger.info(f"Invalid request to {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"message": "Invalid request data"})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})
