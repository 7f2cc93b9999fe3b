"""API routes exposing documentation queries as MCP tools."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from docserver.logging_config import get_logger
from docserver.query.models import (
    ListPackagesResponse,
    ListVersionsResponse,
    QueryDocsRequest,
    QueryDocsResponse,
)
from docserver.query.service import DocumentService
from docserver.vectorstore.factory import VectorStoreFactory

logger = get_logger(__name__)


router = APIRouter(prefix="/mcp", tags=["MCP"])


TOOLS: list[dict[str, Any]] = [
    {
        "name": "query-docs",
        "description": "Search documentation for a specific library version",
        "inputSchema": {
            "type": "object",
            "properties": {
                "library": {
                    "type": "string",
                    "description": 'The library/package name (e.g., "next", "react")',
                },
                "version": {
                    "type": "string",
                    "description": 'The specific version (e.g., "14.2.2", "18.3.0")',
                },
                "question": {
                    "type": "string",
                    "description": "The search query or question",
                },
                "max_tokens": {
                    "type": "number",
                    "description": "Maximum tokens in the response",
                    "default": 500,
                },
                "include_citations": {
                    "type": "boolean",
                    "description": "Include source URLs in the response",
                    "default": True,
                },
            },
            "required": ["library", "version", "question"],
        },
    },
    {
        "name": "list-packages",
        "description": "List all available packages with their versions",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "list-versions",
        "description": "List all versions for a specific package",
        "inputSchema": {
            "type": "object",
            "properties": {
                "package": {"type": "string", "description": "The package name"},
            },
            "required": ["package"],
        },
    },
]


async def get_document_service() -> DocumentService:
    """Provide a DocumentService bound to the process-wide store."""
    store = await VectorStoreFactory.create()
    return DocumentService(store)


ServiceDep = Annotated[DocumentService, Depends(get_document_service)]


@router.get("/tools")
async def list_tools() -> dict[str, list[dict[str, Any]]]:
    """Describe the available tools."""
    return {"tools": TOOLS}


@router.post("/query-docs", response_model=QueryDocsResponse, response_model_exclude_none=True)
async def query_docs(request: QueryDocsRequest, service: ServiceDep) -> QueryDocsResponse:
    """Search documentation for a library version."""
    return await service.query_documents(request)


@router.get("/packages", response_model=ListPackagesResponse)
async def list_packages(service: ServiceDep) -> ListPackagesResponse:
    """List all indexed packages."""
    return await service.list_packages()


@router.get("/packages/{package}/versions", response_model=ListVersionsResponse)
async def list_versions(package: str, service: ServiceDep) -> ListVersionsResponse:
    """List indexed versions of a package."""
    return await service.list_versions(package)
