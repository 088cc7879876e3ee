"""FastAPI application exposing moduledoc queries."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import ModuleDocConfig, load_config
from ..driver import Driver, create_driver
from ..errors import ModuleDocError, NotFoundError

_T = TypeVar("_T")


class AddTypeRequest(BaseModel):
    package: str
    type_name: str
    version: str = ""


class LoadModulesRequest(BaseModel):
    package_pattern: str
    version: str = ""
    include_imports: bool = True


class ValueResponse(BaseModel):
    value: Dict[str, Any]


class LookupResponse(BaseModel):
    exact: Dict[str, Any]
    nearest: Dict[str, Any]


class ModuleEntry(BaseModel):
    module_name: str
    type_name: str


class ModulesResponse(BaseModel):
    modules: List[ModuleEntry]


class ModuleTypesResponse(BaseModel):
    module_id: str
    values: List[Dict[str, Any]]


class HealthResponse(BaseModel):
    status: str


async def _run_blocking(func: Callable[[], _T]) -> _T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func)


def create_app(
    driver_factory: Optional[Callable[[], Driver]] = None,
    *,
    config: Optional[ModuleDocConfig] = None,
) -> FastAPI:
    """Create the FastAPI application exposing moduledoc operations.

    The driver is created once and shared by every request.
    """
    if driver_factory is None:
        settings = config or load_config(Path("."))

        def driver_factory() -> Driver:
            return create_driver(settings)

    driver = driver_factory()
    app = FastAPI(title="moduledoc", version="1.0.0")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/api/config", response_model=LookupResponse)
    @app.get("/api/config/{config_path:path}", response_model=LookupResponse)
    async def lookup(config_path: str = "", version: str = "") -> LookupResponse:
        exact, nearest = await _run_blocking(lambda: driver.load_type_by_path(config_path, version))
        return LookupResponse(exact=exact.to_dict(), nearest=nearest.to_dict())

    @app.get("/api/module/{module_id}", response_model=ModuleTypesResponse)
    async def module_types(module_id: str) -> ModuleTypesResponse:
        values = await _run_blocking(lambda: driver.load_types_by_extension_id(module_id))
        if not values:
            raise NotFoundError(f"no module registered with ID {module_id!r}")
        return ModuleTypesResponse(module_id=module_id, values=[value.to_dict() for value in values])

    @app.post("/api/types", response_model=ValueResponse)
    async def add_type(payload: AddTypeRequest) -> ValueResponse:
        def _add() -> Dict[str, Any]:
            value = driver.add_type(payload.package, payload.type_name, payload.version)
            driver.persist()
            return value.to_dict()

        return ValueResponse(value=await _run_blocking(_add))

    @app.post("/api/modules", response_model=ModulesResponse)
    async def load_modules(payload: LoadModulesRequest) -> ModulesResponse:
        def _load() -> List[ModuleEntry]:
            modules = driver.load_modules_from(
                payload.package_pattern,
                payload.version,
                include_imports=payload.include_imports,
            )
            driver.persist()
            return [ModuleEntry(module_name=m.name, type_name=m.type_name) for m in modules]

        return ModulesResponse(modules=await _run_blocking(_load))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(_: Any, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ModuleDocError)
    async def moduledoc_error_handler(_: Any, exc: ModuleDocError) -> JSONResponse:
        content: Dict[str, Any] = {"detail": str(exc)}
        candidates = getattr(exc, "candidates", None)
        if candidates:
            content["candidates"] = candidates
        return JSONResponse(status_code=400, content=content)

    return app


def run_service(
    config: Optional[ModuleDocConfig] = None, host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(config=config)
    uvicorn.run(app, host=host, port=port)
