"""FastAPI application factory for stateless request/response services."""

import inspect
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Sequence

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .models import ErrorResponse, HealthResponse
from .processor import BaseProcessor, StatelessAction

logger = logging.getLogger(__name__)


@dataclass
class ServiceConfig:
    """
    Configuration for building a stateless microservice application.

    Args:
        name: Override service name (defaults to the first processor's name)
        version: Override service version (defaults to the first processor's version)
        description: Short description for generated docs
        cors_origins: Origins allowed by the CORS middleware
    """

    name: str | None = None
    version: str | None = None
    description: str | None = None
    cors_origins: Sequence[str] = ("*",)


def _error_response(
    status_code: int,
    error: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def _upload_openapi(action: StatelessAction) -> dict:
    """Describe a multipart action's form in the OpenAPI schema."""
    properties = {}
    if action.request_model is not None:
        schema = action.request_model.model_json_schema(by_alias=True)
        properties.update(schema.get("properties", {}))
    properties[action.upload_field] = {"type": "string", "format": "binary"}
    return {
        "requestBody": {
            "required": True,
            "content": {
                "multipart/form-data": {
                    "schema": {"type": "object", "properties": properties},
                },
            },
        },
    }


def create_app(
    processors: BaseProcessor | Sequence[BaseProcessor],
    config: ServiceConfig | None = None,
) -> FastAPI:
    """
    Create a FastAPI application serving one or more stateless processors.

    Args:
        processors: Processor instance(s) implementing business logic
        config: Optional service configuration
    """

    if isinstance(processors, BaseProcessor):
        processors = [processors]
    processors = list(processors)
    if not processors:
        raise ValueError("create_app() needs at least one processor")

    config = config or ServiceConfig()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    service_name = config.name or processors[0].name
    service_version = config.version or processors[0].version
    service_description = config.description or f"{service_name} stateless API"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s %s", service_name, service_version)
        yield
        for processor in processors:
            try:
                await processor.aclose()
            except Exception:
                logger.exception("Failed to close processor %s", processor.name)
        logger.info("Stopped %s", service_name)

    app = FastAPI(
        title=f"{service_name.title()} Stateless API",
        description=service_description,
        version=service_version,
        lifespan=lifespan,
    )

    app.state.processors = processors
    app.state.service_config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle malformed request bodies."""
        return _error_response(400, "Validation error", str(exc.errors()))

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        """Handle Pydantic validation errors (e.g., multipart form fields)."""
        return _error_response(400, "Validation error", str(exc))

    @app.get("/", response_model=HealthResponse)
    async def root():
        return HealthResponse(version=service_version)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check():
        return HealthResponse(version=service_version)

    def make_endpoint(action: StatelessAction):
        RequestModel = action.request_model

        async def invoke(*args):
            try:
                call_result = action.handler(*args)
                if inspect.isawaitable(call_result):
                    call_result = await call_result
            except StarletteHTTPException:
                raise
            except Exception as exc:
                logger.exception("Action '%s' failed", action.name)
                return _error_response(500, str(exc) or "Internal server error")

            if isinstance(call_result, Response):
                return call_result
            if action.media_type and isinstance(call_result, (bytes, bytearray, memoryview)):
                return Response(content=bytes(call_result), media_type=action.media_type)
            return call_result

        if action.upload_field:
            # Multipart form: one file field plus model-validated text fields
            async def endpoint(request: Request):
                form = await request.form()
                upload = form.get(action.upload_field)
                if not isinstance(upload, UploadFile):
                    upload = None
                fields = {
                    key: value
                    for key, value in form.items()
                    if key != action.upload_field and isinstance(value, str)
                }
                if RequestModel is not None:
                    return await invoke(RequestModel.model_validate(fields), upload)
                return await invoke(upload)
        elif RequestModel is not None:
            # JSON request model
            async def endpoint(payload: RequestModel):
                return await invoke(payload)
        else:
            # No request body
            async def endpoint():
                return await invoke()

        return endpoint

    registered: dict[tuple[str, str], str] = {}

    for processor in processors:
        actions = processor.get_stateless_actions()
        if not actions:
            logger.warning(
                "Processor %s registered with stateless service but get_stateless_actions() returned nothing.",
                processor.name,
            )

        for action in actions:
            for method in action.methods:
                route_key = (method.upper(), action.path)
                if route_key in registered:
                    raise ValueError(
                        f"Action '{action.name}' duplicates {method.upper()} {action.path} "
                        f"already registered by '{registered[route_key]}'."
                    )
                registered[route_key] = action.name

            logger.info("Registering stateless action '%s' at %s", action.name, action.path)

            endpoint = make_endpoint(action)

            route_kwargs = {
                "methods": list(action.methods),
                "response_model": action.response_model,
                "summary": action.summary,
                "description": action.description,
                "tags": list(action.tags) if action.tags else None,
                "responses": {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
                "openapi_extra": _upload_openapi(action) if action.upload_field else None,
            }
            route_kwargs = {k: v for k, v in route_kwargs.items() if v is not None}

            app.api_route(action.path, **route_kwargs)(endpoint)

    return app
