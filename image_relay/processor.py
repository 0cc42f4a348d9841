"""Base processor interface for stateless (request/response) image services."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List

from pydantic import BaseModel


@dataclass
class StatelessAction:
    """
    Definition of a stateless API route backed by a processor method.

    Attributes:
        name: Short identifier used for logging and OpenAPI docs.
        path: FastAPI route path (e.g., "/api/generate-image").
        handler: Callable invoked with the validated payload (and the upload,
            for multipart actions).
        request_model: Pydantic model for request validation. For upload
            actions it validates the non-file form fields.
        response_model: Optional Pydantic model for response serialization.
        methods: HTTP methods to expose (defaults to POST).
        summary: Optional OpenAPI summary.
        description: Optional longer description.
        tags: Optional OpenAPI tags.
        media_type: Optional override for response media type.
        upload_field: Name of the multipart file field. When set the route
            reads a multipart form instead of a JSON body.
    """

    name: str
    path: str
    handler: Callable[..., Awaitable[Any] | Any]
    request_model: type[BaseModel] | None = None
    response_model: type[BaseModel] | None = None
    methods: tuple[str, ...] = ("POST",)
    summary: str | None = None
    description: str | None = None
    tags: tuple[str, ...] | None = None
    media_type: str | None = None
    upload_field: str | None = None


class BaseProcessor(ABC):
    """Hook point for stateless image services."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Processor/service name used for logging and metadata."""

    @property
    def version(self) -> str:
        """Optional semantic version string."""
        return "1.0.0"

    def get_stateless_actions(self) -> List[StatelessAction]:
        """
        Return the list of stateless actions provided by this processor.

        Override in subclasses to expose synchronous microservice endpoints.
        """
        return []

    async def aclose(self) -> None:
        """Release outbound resources (HTTP clients, ...) at shutdown."""
