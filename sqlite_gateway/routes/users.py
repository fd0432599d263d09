from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..config import load_settings
from ..entities import User
from ..gateway import ExecutionGateway
from ..logs import LogContext
from ..repository import departments_repo, users_repo
from ..transaction import run_in_transaction

router = APIRouter()


class UserCreateBody(BaseModel):
    name: str = Field(min_length=1)
    age: Optional[int] = Field(default=None, ge=0)
    email: Optional[str] = None


class AgeUpdateBody(BaseModel):
    name: str
    age: int = Field(ge=0)


@router.get("/api/users")
def api_users_list():
    gw = ExecutionGateway(load_settings().db_path)
    items = [asdict(u) for u in users_repo.list_all(gw)]
    return {"total": len(items), "items": items}


@router.post("/api/users", status_code=201)
def api_users_create(body: UserCreateBody):
    settings = load_settings()
    log = LogContext("USER_CREATE", settings.db_path, persist=settings.operation_log)
    log.set_payload(body.model_dump())
    try:
        new_id = users_repo.insert(ExecutionGateway(settings.db_path), User(**body.model_dump()))
    except Exception as e:
        log.persist = False
        log.write("ERROR", str(e))
        raise
    log.set_entity("User", str(new_id))
    log.write("OK")
    return {"message": "ok", "id": new_id}


@router.post("/api/users/age")
def api_users_set_age(body: AgeUpdateBody):
    settings = load_settings()
    log = LogContext("USER_SET_AGE", settings.db_path, persist=settings.operation_log)
    log.set_payload(body.model_dump())

    def _update(tx):
        before = users_repo.get_by_name(tx, body.name)
        if before is None:
            return None
        users_repo.set_age(tx, body.name, body.age)
        return before

    before = run_in_transaction(settings.db_path, _update)
    if before is None:
        log.persist = False
        log.write("ERROR", "user_not_found")
        raise HTTPException(status_code=404, detail="user_not_found")
    log.set_before({"age": before.age})
    log.set_after({"age": body.age})
    log.write("OK")
    return {"message": "ok"}


@router.get("/api/departments")
def api_departments_list():
    gw = ExecutionGateway(load_settings().db_path)
    items = [asdict(d) for d in departments_repo.list_all(gw)]
    return {"total": len(items), "items": items}
