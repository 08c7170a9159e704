"""FastAPI REST API for lspcheck."""

from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .config import Config, apply_env
from .errors import (
    CallDepthExceededError,
    ClassNotFoundError,
    ConfigNotFoundError,
    InvalidConfigError,
    InvalidPathError,
    InvalidSchemaVersionError,
    LspcheckError,
)
from .report import report_to_dict
from .runner import Runner


# --- Pydantic Schemas ---


class SourcesRequest(BaseModel):
    """Directories and files to index."""

    paths: list[str] = Field(..., min_length=1, description="Directories or Python files")
    exclude_directories: list[str] = Field(default_factory=list)
    exclude_files: list[str] = Field(default_factory=list)


class CheckRequest(SourcesRequest):
    """Request body for a check run."""

    classes: Optional[list[str]] = Field(
        default=None,
        description="Class FQNs to check (default: every class found)",
    )
    max_call_depth: Optional[int] = Field(default=None, ge=1)


class ViolationSchema(BaseModel):
    class_name: str
    method_name: str
    contract_name: str
    reason: str
    message: str
    details: Optional[str] = None


class LoadErrorSchema(BaseModel):
    class_name: str
    message: str
    error_type: str


class CheckResponse(BaseModel):
    schema_version: int
    generated_at: str
    classes_checked: int
    violations: list[ViolationSchema]
    errors: list[LoadErrorSchema]
    is_clean: bool


class ClassSchema(BaseModel):
    qualname: str
    kind: str
    path: str
    start_line: int
    end_line: int
    bases: list[str]
    methods: list[str]


class ClassListResponse(BaseModel):
    classes: list[ClassSchema]
    count: int


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


# --- Helper Functions ---


def _config_from_request(request: SourcesRequest) -> Config:
    """
    Build a config from request paths.

    Raises:
        InvalidPathError: If a path is neither a directory nor a file.
    """
    config = apply_env(Config())
    for raw in request.paths:
        path = Path(raw)
        if path.is_dir():
            config.add_directory(path)
        elif path.is_file():
            config.add_file(path)
        else:
            raise InvalidPathError(raw, "not a valid directory or file")
    for raw in request.exclude_directories:
        config.exclude_directory(raw)
    for raw in request.exclude_files:
        config.exclude_file(raw)
    return config


# --- FastAPI App ---


app = FastAPI(
    title="lspcheck API",
    description="REST API for Liskov substitution checks over Python sources",
    version=__version__,
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    ClassNotFoundError: 404,
    InvalidPathError: 400,
    ConfigNotFoundError: 404,
    InvalidConfigError: 400,
    InvalidSchemaVersionError: 400,
    CallDepthExceededError: 422,
}


@app.exception_handler(LspcheckError)
async def lspcheck_error_handler(request: Request, exc: LspcheckError) -> JSONResponse:
    """Map LspcheckError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.post(
    "/api/check",
    response_model=CheckResponse,
    responses={400: {"model": ErrorResponse}},
)
def check(request: CheckRequest):
    """
    Check classes found in the given paths.

    Classes that cannot be analyzed are reported under ``errors``;
    the rest are still checked.
    """
    config = _config_from_request(request)
    if request.max_call_depth is not None:
        config.max_call_depth = request.max_call_depth

    report = Runner(config).run(request.classes)

    data = report_to_dict(report)
    data["is_clean"] = report.is_clean
    return data


@app.post(
    "/api/classes",
    response_model=ClassListResponse,
    responses={400: {"model": ErrorResponse}},
)
def list_classes(request: SourcesRequest):
    """List the classes found in the given paths."""
    runner = Runner(_config_from_request(request))
    classes = []
    for name in runner.discover():
        construct = runner.registry.get_class(name)
        classes.append(
            ClassSchema(
                qualname=construct.qualname,
                kind=construct.kind,
                path=construct.path,
                start_line=construct.start_line,
                end_line=construct.end_line,
                bases=list(construct.bases),
                methods=list(construct.methods),
            )
        )
    return ClassListResponse(classes=classes, count=len(classes))
