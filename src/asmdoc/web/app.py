"""FastAPI application exposing the assembly catalog over HTTP."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any, List, Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from asmdoc.config import AppConfig
from asmdoc.decompiler import build_decompiler
from asmdoc.errors import AsmdocError, InvalidQuery
from asmdoc.index.indexer import Indexer, IndexReport
from asmdoc.index.search import CatalogQuery, MemberDetail
from asmdoc.index.storage import SQLiteCatalogStore
from asmdoc.models import DocumentationView, ModuleInfo, TypeInfo

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="asmdoc", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class ListTypesPayload(BaseModel):
    assemblyId: str
    search: Optional[str] = None
    page: int = 1
    pageSize: int = 20
    db: Path | None = None


class MemberDetailsPayload(BaseModel):
    memberId: str
    includeSource: bool = False
    db: Path | None = None


class SyntheticPayload(BaseModel):
    summary: Optional[str] = Field(default=None)
    example: Optional[str] = Field(default=None)


def configure(config: AppConfig) -> None:
    """Replace the defaults used when a request does not name a database."""
    app.state.config = config


def _config() -> AppConfig:
    config = getattr(app.state, "config", None)
    return config if config is not None else AppConfig()


def _resolve_db_path(db: Path | None) -> Path:
    defaults = _config()
    config = AppConfig(db_path=db if db is not None else defaults.db_path)
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


def _module_payload(module: ModuleInfo) -> dict[str, Any]:
    return {
        "id": module.id,
        "name": module.name,
        "hasXmlDocumentation": module.has_documentation,
        "indexedAt": module.indexed_at.isoformat() if module.indexed_at else None,
    }


def _type_payload(info: TypeInfo, documentation: DocumentationView) -> dict[str, Any]:
    return {
        "id": info.id,
        "name": info.name,
        "fullName": info.full_name,
        "namespace": info.namespace,
        "kind": info.kind,
        "signature": info.signature,
        "baseType": info.base_type,
        "summary": documentation.summary,
    }


def _member_payload(detail: MemberDetail) -> dict[str, Any]:
    documentation = detail.documentation
    payload: dict[str, Any] = {
        "id": detail.id,
        "name": detail.name,
        "kind": detail.kind,
        "signature": detail.signature,
        "documentation": {
            "source": documentation.source,
            "summary": documentation.summary,
            "remarks": documentation.remarks,
            "returns": documentation.returns,
            "example": documentation.example,
            "parameters": documentation.parameters,
            "exceptions": documentation.exceptions,
        },
        "sourceCode": None,
    }
    if detail.source_code is not None:
        payload["sourceCode"] = {
            "available": detail.source_code.available,
            "language": detail.source_code.language,
            "content": detail.source_code.content,
        }
    return payload


def _list_types(
    db: Path | None, assembly_id: str, search: Optional[str], page: int, page_size: int
) -> List[dict[str, Any]]:
    resolved_db = _resolve_db_path(db)
    if page < 1 or page_size <= 0:
        raise HTTPException(status_code=400, detail="page must be >= 1 and pageSize > 0")
    if not resolved_db.exists():
        return []

    store = SQLiteCatalogStore(resolved_db)
    try:
        query = CatalogQuery(store)
        try:
            types = query.list_types(assembly_id, search, page=page, page_size=page_size)
        except InvalidQuery as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return [_type_payload(info, query.documentation(info.id)) for info in types]
    finally:
        store.close()


def _member_details(db: Path | None, member_id: str, include_source: bool) -> dict[str, Any]:
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(status_code=404, detail=f"Not found: {member_id}")

    config = _config()
    decompiler = build_decompiler(config.decompiler_assembly, runtime=config.runtime)
    store = SQLiteCatalogStore(resolved_db)
    try:
        detail = CatalogQuery(store, decompiler).member_details(
            member_id, include_source=include_source
        )
    finally:
        store.close()
    if detail is None:
        raise HTTPException(status_code=404, detail=f"Not found: {member_id}")
    return _member_payload(detail)


def _run_index_job(
    dll_path: Path, xml_path: Optional[Path], resolved_db: Path, config: AppConfig
) -> IndexReport:
    store = SQLiteCatalogStore(resolved_db)
    try:
        return Indexer(store, runtime=config.runtime).index_module(dll_path, xml_path)
    finally:
        store.close()


def _save_upload(upload: UploadFile, target: Path) -> None:
    with target.open("wb") as handle:
        shutil.copyfileobj(upload.file, handle)


def _upload_name(upload: UploadFile, fallback: str) -> str:
    return Path(upload.filename or "").name or fallback


@app.post("/api/assemblies/upload")
async def upload_assembly(
    dll: Optional[UploadFile] = File(None),
    xml: Optional[UploadFile] = File(None),
    db: Path | None = None,
) -> Any:
    """Index an uploaded assembly and its optional documentation file."""
    if dll is None:
        return JSONResponse(status_code=400, content={"error": "DLL file is required"})

    config = _config()
    resolved_db = _resolve_db_path(db)
    _ensure_db_parent(resolved_db)
    base_dir = Path.cwd()
    keep_dir = (
        AppConfig(db_path=resolved_db, assembly_dir=config.assembly_dir).resolve_assembly_dir(base_dir)
        / uuid.uuid4().hex
    )
    keep_dir.mkdir(parents=True, exist_ok=True)
    dll_path = keep_dir / _upload_name(dll, "module.dll")

    with tempfile.TemporaryDirectory(prefix="asmdoc-upload-") as tmp:
        try:
            _save_upload(dll, dll_path)
            xml_path: Optional[Path] = None
            if xml is not None:
                xml_path = Path(tmp) / _upload_name(xml, "module.xml")
                _save_upload(xml, xml_path)

            report = await asyncio.to_thread(
                _run_index_job, dll_path, xml_path, resolved_db, config
            )
        except AsmdocError as exc:
            LOGGER.warning("Upload of %s rejected: %s", dll_path.name, exc)
            shutil.rmtree(keep_dir, ignore_errors=True)
            return JSONResponse(status_code=400, content={"error": str(exc)})
        except Exception as exc:
            LOGGER.exception("Upload of %s failed: %s", dll_path.name, exc)
            shutil.rmtree(keep_dir, ignore_errors=True)
            raise HTTPException(status_code=500, detail=str(exc)) from exc

    return {
        "assemblyId": report.module_id,
        "message": "Assembly uploaded and indexed successfully",
        "hasXmlDocumentation": report.has_documentation,
        "warnings": report.warnings,
    }


@app.get("/api/assemblies")
async def list_assemblies(db: Path | None = None) -> List[dict[str, Any]]:
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        return []
    store = SQLiteCatalogStore(resolved_db)
    try:
        modules = CatalogQuery(store).list_modules()
    finally:
        store.close()
    return [_module_payload(module) for module in modules]


@app.get("/api/assemblies/{assembly_id}")
async def get_assembly(assembly_id: str, db: Path | None = None) -> dict[str, Any]:
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(status_code=404, detail=f"Assembly not found: {assembly_id}")
    store = SQLiteCatalogStore(resolved_db)
    try:
        module = CatalogQuery(store).get_module(assembly_id)
        if module is None:
            raise HTTPException(status_code=404, detail=f"Assembly not found: {assembly_id}")
        payload = _module_payload(module)
        payload["typeCount"] = store.count_types(assembly_id)
        payload["memberCount"] = store.count_members(assembly_id)
    finally:
        store.close()
    return payload


@app.get("/api/assemblies/{assembly_id}/types")
async def list_assembly_types(
    assembly_id: str,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = Query(20, alias="pageSize"),
    db: Path | None = None,
) -> List[dict[str, Any]]:
    return _list_types(db, assembly_id, search, page, page_size)


@app.get("/api/members/{member_id}")
async def get_member(
    member_id: str,
    include_source: bool = Query(False, alias="includeSource"),
    db: Path | None = None,
) -> dict[str, Any]:
    return await asyncio.to_thread(_member_details, db, member_id, include_source)


@app.post("/api/members/{member_id}/synthetic")
async def annotate_member(
    member_id: str, payload: SyntheticPayload, db: Path | None = None
) -> dict[str, Any]:
    """Store synthetic documentation; authored documentation is left untouched."""
    if payload.summary is None and payload.example is None:
        raise HTTPException(status_code=400, detail="summary or example is required")

    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(status_code=404, detail=f"Not found: {member_id}")
    store = SQLiteCatalogStore(resolved_db)
    try:
        stored = CatalogQuery(store).annotate(
            member_id, summary=payload.summary, example=payload.example
        )
    finally:
        store.close()
    if not stored:
        raise HTTPException(status_code=404, detail=f"Not found: {member_id}")
    return {"status": "ok", "id": member_id}


@app.post("/mcp/dll.listTypes")
async def mcp_list_types(payload: ListTypesPayload) -> dict[str, Any]:
    types = _list_types(
        payload.db, payload.assemblyId, payload.search, payload.page, payload.pageSize
    )
    return {"types": types, "page": payload.page, "pageSize": payload.pageSize}


@app.post("/mcp/dll.getMemberDetails")
async def mcp_get_member_details(payload: MemberDetailsPayload) -> dict[str, Any]:
    return await asyncio.to_thread(
        _member_details, payload.db, payload.memberId, payload.includeSource
    )
