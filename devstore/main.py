# devstore/main.py
import uuid
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .core import (
    SCHEMAS, Credentials, QueryError, apply_filters, apply_order,
    content_range, parse_filters, parse_range,
)
from .database import SESSIONS, TABLES, USERS, next_id, now, reset

app = FastAPI(title="devstore (in-memory table REST store)")

from fastapi.middleware.cors import CORSMiddleware

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range"],
)

# ---------------------------
# Helpers
# ---------------------------
def _require_apikey(apikey: Optional[str]):
    if not apikey:
        raise HTTPException(status_code=401, detail="No API key found in request")


def _table(name: str) -> Dict[int, Dict[str, Any]]:
    if name not in TABLES:
        raise HTTPException(status_code=404, detail=f'relation "public.{name}" does not exist')
    return TABLES[name]


def _matching(request: Request, rows: Dict[int, Dict[str, Any]]) -> List[Dict[str, Any]]:
    try:
        filters = parse_filters(request.query_params.multi_items())
    except QueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return apply_filters(rows.values(), filters)


def _has_filters(request: Request) -> bool:
    return any(k not in ("select", "order", "limit", "offset") for k in request.query_params.keys())


def _wants(prefer: Optional[str], option: str) -> bool:
    return bool(prefer) and option in [p.strip() for p in prefer.split(",")]


async def _body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid JSON body")


def _validated(model, payload: Any):
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="expected a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"invalid row: {e.error_count()} error(s)")


def _check_unique_slug(rows: Dict[int, Dict[str, Any]], slug: Optional[str], own_id: Optional[int] = None):
    if not slug:
        return
    for r in rows.values():
        if r.get("slug") == slug and r["id"] != own_id:
            raise HTTPException(status_code=409, detail='duplicate key value violates unique constraint "categories_slug_key"')


def _written(rows: List[Dict[str, Any]], prefer: Optional[str], status_code: int):
    if _wants(prefer, "return=representation"):
        return JSONResponse(rows, status_code=status_code)
    return Response(status_code=204 if status_code == 200 else status_code)


# ---------------------------
# Table endpoints
# ---------------------------
@app.get("/rest/v1/{table}")
async def select_rows(table: str, request: Request, apikey: Optional[str] = Header(None), prefer: Optional[str] = Header(None)):
    _require_apikey(apikey)
    rows = _matching(request, _table(table))
    rows = apply_order(rows, request.query_params.get("order"))
    try:
        start, size = parse_range(request.query_params.get("limit"), request.query_params.get("offset"))
    except QueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    total = len(rows)
    page = rows[start:] if size is None else rows[start:start + size]
    counted = total if _wants(prefer, "count=exact") else None
    return JSONResponse(page, headers={"Content-Range": content_range(start, len(page), counted)})


@app.post("/rest/v1/{table}", status_code=201)
async def insert_row(table: str, request: Request, apikey: Optional[str] = Header(None), prefer: Optional[str] = Header(None)):
    _require_apikey(apikey)
    rows = _table(table)
    create_model, _ = SCHEMAS[table]
    item = _validated(create_model, await _body(request))
    if table == "categories":
        _check_unique_slug(rows, item.slug)
    row_id = next_id(table)
    rows[row_id] = {"id": row_id, **item.model_dump(), "created_at": now()}
    return _written([rows[row_id]], prefer, 201)


@app.patch("/rest/v1/{table}")
async def update_rows(table: str, request: Request, apikey: Optional[str] = Header(None), prefer: Optional[str] = Header(None)):
    _require_apikey(apikey)
    rows = _table(table)
    if not _has_filters(request):
        raise HTTPException(status_code=400, detail="UPDATE requires a WHERE clause")
    _, patch_model = SCHEMAS[table]
    changes = _validated(patch_model, await _body(request)).model_dump(exclude_unset=True)
    updated = []
    for row in _matching(request, rows):
        if table == "categories" and "slug" in changes:
            _check_unique_slug(rows, changes["slug"], own_id=row["id"])
        row.update(changes)
        updated.append(row)
    return _written(updated, prefer, 200)


@app.delete("/rest/v1/{table}")
async def delete_rows(table: str, request: Request, apikey: Optional[str] = Header(None), prefer: Optional[str] = Header(None)):
    _require_apikey(apikey)
    rows = _table(table)
    if not _has_filters(request):
        raise HTTPException(status_code=400, detail="DELETE requires a WHERE clause")
    removed = [rows.pop(r["id"]) for r in _matching(request, rows)]
    return _written(removed, prefer, 200)


# ---------------------------
# Auth endpoints
# ---------------------------
def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


def _public_user(email: str) -> Dict[str, Any]:
    user = USERS[email]
    return {"id": user["id"], "email": user["email"]}


@app.post("/auth/v1/token")
async def issue_token(payload: Credentials, grant_type: str = "password", apikey: Optional[str] = Header(None)):
    _require_apikey(apikey)
    if grant_type != "password":
        return JSONResponse({"error": "unsupported_grant_type"}, status_code=400)
    user = USERS.get(payload.email)
    if user is None or user["password"] != payload.password:
        return JSONResponse({"error": "invalid_grant", "error_description": "Invalid login credentials"}, status_code=400)
    token = uuid.uuid4().hex
    SESSIONS[token] = payload.email
    return {"access_token": token, "token_type": "bearer", "user": _public_user(payload.email)}


@app.get("/auth/v1/user")
async def current_user(authorization: Optional[str] = Header(None)):
    email = SESSIONS.get(_bearer(authorization) or "")
    if email is None:
        raise HTTPException(status_code=401, detail="invalid JWT")
    return _public_user(email)


@app.post("/auth/v1/logout", status_code=204)
async def logout(authorization: Optional[str] = Header(None)):
    SESSIONS.pop(_bearer(authorization) or "", None)
    return Response(status_code=204)


# ---------------------------
# Utility: reset (for tests/demo)
# ---------------------------
@app.post("/reset")
async def reset_all():
    reset()
    return {"status": "reset"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8085)
