from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from erp.core.errors import AddonError
from erp.core.logger import get_logger
from erp.core.modules.models import ModuleRecord
from erp.core.modules.service import ModuleService, ScanReport
from erp.web.models import LoadOrderResponse, ModuleListResponse, ToggleRequest

_NOT_FOUND = {"module_not_found", "module_not_registered"}
_BAD_REQUEST = {"dependency_error", "module_state_error", "validation_error"}


def _record(rec: ModuleRecord) -> Dict[str, Any]:
    return rec.model_dump(by_alias=True)


def create_app(service: ModuleService, *, logger=None) -> FastAPI:
    app = FastAPI(title="ERP Addons", version="0.1.0")
    logger = logger or get_logger("web")

    @app.exception_handler(AddonError)
    async def addon_error_handler(request: Request, exc: AddonError):
        code = 500
        if exc.code in _NOT_FOUND:
            code = 404
        elif exc.code in _BAD_REQUEST:
            code = 400
        if code == 500:
            logger.error(f"{request.url.path}: {exc.code}: {exc.user_message}")
        content = {**exc.context, "detail": exc.user_message, "code": exc.code}
        return JSONResponse(status_code=code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": "Invalid request.", "code": "validation_error"})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/modules", response_model=ModuleListResponse)
    def list_modules():
        return {"modules": [_record(r) for r in service.list_records()]}

    # declared before /modules/{name} so "load-order" is not taken as a name
    @app.get("/modules/load-order", response_model=LoadOrderResponse)
    def load_order():
        res = service.resolve()
        return {"order": list(res.order), "cycles": [list(c) for c in res.cycles]}

    @app.get("/modules/{name}")
    def get_module(name: str):
        return _record(service.get_record(name))

    @app.post("/modules/scan", response_model=ScanReport)
    def scan_modules():
        return service.scan()

    @app.post("/modules/{name}/install")
    def install_module(name: str):
        return _record(service.install(name))

    @app.post("/modules/{name}/uninstall")
    def uninstall_module(name: str):
        return _record(service.uninstall(name))

    @app.post("/modules/{name}/toggle")
    def toggle_module(name: str, req: ToggleRequest):
        return _record(service.set_active(name, req.active))

    return app
