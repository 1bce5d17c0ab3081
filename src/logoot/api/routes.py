from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from logoot.core.config import get_settings
from logoot.crdt.codec import decode_atom_ident, encode_atom_ident
from logoot.crdt.position import compare_atom_idents, generate_atom_ident
from logoot.services.docs import store
from logoot.services.snapshots import snapshots


router = APIRouter(prefix="/v1")


class CreateDocRequest(BaseModel):
    title: str = "Untitled"
    created_by: str | None = None


class CreateDocResponse(BaseModel):
    id: uuid.UUID
    title: str
    site_id: str


@router.post("/docs", response_model=CreateDocResponse)
async def create_doc(req: CreateDocRequest) -> Any:
    doc_id = uuid.uuid4()
    doc = await store.get_or_create(doc_id)
    return CreateDocResponse(id=doc_id, title=req.title, site_id=str(doc.replica.site_id))


class GetDocResponse(BaseModel):
    id: uuid.UUID
    text: str
    version: int
    atoms: List[Any]


@router.get("/docs/{doc_id}", response_model=GetDocResponse)
async def get_doc(doc_id: uuid.UUID) -> Any:
    atoms, version = await store.snapshot_atoms(doc_id)
    text, _ = await store.snapshot_text(doc_id)
    return GetDocResponse(id=doc_id, text=text, version=version, atoms=atoms)


class InsertRequest(BaseModel):
    index: int = Field(..., ge=0)
    text: str


class DeleteRequest(BaseModel):
    index: int = Field(..., ge=0)
    length: int = Field(..., ge=0)


class EditResponse(BaseModel):
    op: Dict[str, Any]
    version: int
    text: str


@router.post("/docs/{doc_id}/insert", response_model=EditResponse)
async def insert_text(doc_id: uuid.UUID, req: InsertRequest) -> Any:
    op, version, text = await store.local_insert(doc_id, req.index, req.text)
    return EditResponse(op=op, version=version, text=text)


@router.post("/docs/{doc_id}/delete", response_model=EditResponse)
async def delete_text(doc_id: uuid.UUID, req: DeleteRequest) -> Any:
    op, version, text = await store.local_delete(doc_id, req.index, req.length)
    return EditResponse(op=op, version=version, text=text)


class ApplyOpRequest(BaseModel):
    op: Dict[str, Any]


class ApplyOpResponse(BaseModel):
    version: int
    text: str


@router.post("/docs/{doc_id}/ops", response_model=ApplyOpResponse)
async def apply_op(doc_id: uuid.UUID, req: ApplyOpRequest) -> Any:
    version, text = await store.apply_ops(doc_id, req.op)
    return ApplyOpResponse(version=version, text=text)


class SnapshotResponse(BaseModel):
    doc_id: uuid.UUID
    version: int
    text: str
    atoms: List[Any]
    created_at: datetime


@router.get("/docs/{doc_id}/snapshots/latest", response_model=SnapshotResponse)
async def latest_snapshot(doc_id: uuid.UUID) -> Any:
    snap = await snapshots.latest(doc_id)
    if not snap:
        raise HTTPException(status_code=404, detail="not_found")
    return SnapshotResponse(
        doc_id=snap.doc_id,
        version=snap.version,
        text=snap.text,
        atoms=snap.atoms,
        created_at=snap.created_at,
    )


class GeneratePositionRequest(BaseModel):
    site_id: Optional[Union[int, str]] = None
    clock: int = Field(0, ge=0)
    prev: Optional[List[Any]] = None
    next: Optional[List[Any]] = None


class GeneratePositionResponse(BaseModel):
    ident: List[Any]


@router.post("/positions", response_model=GeneratePositionResponse)
async def generate_position(req: GeneratePositionRequest) -> Any:
    site_id = req.site_id if req.site_id is not None else get_settings().site_id
    prev = decode_atom_ident(req.prev) if req.prev is not None else None
    nxt = decode_atom_ident(req.next) if req.next is not None else None
    try:
        ident = generate_atom_ident(site_id, req.clock, prev, nxt)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="invalid_site_id") from exc
    return GeneratePositionResponse(ident=encode_atom_ident(ident))


class CompareRequest(BaseModel):
    a: List[Any]
    b: List[Any]


class CompareResponse(BaseModel):
    result: int


@router.post("/positions/compare", response_model=CompareResponse)
async def compare_positions(req: CompareRequest) -> Any:
    return CompareResponse(result=compare_atom_idents(decode_atom_ident(req.a), decode_atom_ident(req.b)))
