from __future__ import annotations

from fastapi import APIRouter

from ..config import load_settings
from ..logs import search_logs

router = APIRouter()


@router.get("/api/logs/search")
def api_logs_search(
    page: int = 1,
    size: int = 20,
    action: str | None = None,
    query: str | None = None,
):
    total, items = search_logs(load_settings().db_path, action, query, page, size)
    return {"total": total, "items": items}
