from __future__ import annotations

from fastapi import APIRouter

from ..config import load_settings
from ..gateway import ExecutionGateway
from ..initializer import SchemaInitializer
from ..logs import LogContext
from ..schema import tables_for

router = APIRouter()


@router.post("/api/db/init")
def api_db_init():
    report = SchemaInitializer(settings=load_settings()).initialize()
    return {"message": "ok", "report": report.as_dict()}


@router.post("/api/db/reset")
def api_db_reset():
    settings = load_settings()
    log = LogContext("DB_RESET", settings.db_path)
    try:
        report = SchemaInitializer(settings=settings).reset_database()
    except Exception as e:
        log.write("ERROR", str(e))
        raise
    # 重置后的新库里才能写操作日志
    log.persist = settings.operation_log
    log.set_after(report.as_dict())
    log.write("OK")
    return {"message": "ok", "report": report.as_dict()}


@router.get("/api/db/status")
def api_db_status():
    settings = load_settings()
    gw = ExecutionGateway(settings.db_path)
    present = set(
        gw.execute_query(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        ).column("name")
    )
    counts = {}
    for t in tables_for(settings.include_relations):
        # 表名来自固定清单
        counts[t.name] = int(gw.execute_scalar(f"SELECT COUNT(*) FROM {t.name}")) if t.name in present else None
    versions = []
    if "SchemaVersions" in present:
        versions = gw.execute_query("SELECT Version, AppliedOn FROM SchemaVersions ORDER BY AppliedOn").to_dicts()
    return {"tables": sorted(present), "counts": counts, "versions": versions}
