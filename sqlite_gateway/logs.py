import datetime as dt
import json
import logging
import time
import uuid
from typing import Optional

from .gateway import ExecutionGateway, NO_ROWS

ops_logger = logging.getLogger("sqlite_gateway.ops")

DDL = """
CREATE TABLE IF NOT EXISTS OperationLog (
  Id INTEGER PRIMARY KEY AUTOINCREMENT,
  Ts TEXT NOT NULL,
  Action TEXT NOT NULL,
  EntityType TEXT,
  EntityId TEXT,
  RequestId TEXT,
  BeforeJson TEXT,
  AfterJson TEXT,
  PayloadJson TEXT,
  Result TEXT,
  ErrMsg TEXT,
  LatencyMs INTEGER
)
"""
INDEX_DDL = "CREATE INDEX IF NOT EXISTS IdxOperationLogTs ON OperationLog(Ts)"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=getattr(logging, str(level).upper(), logging.INFO),
    )


def ensure_log_schema(location: str):
    gw = ExecutionGateway(location)
    gw.execute_non_query(DDL)
    gw.execute_non_query(INDEX_DDL)


def _dumps(obj):
    return json.dumps(obj, ensure_ascii=False, default=str) if obj is not None else None


class LogContext:
    def __init__(self, action: str, location: Optional[str] = None, persist: bool = False):
        self.action = action
        self.location = location
        self.persist = persist and bool(location)
        self.request_id = str(uuid.uuid4())
        self.start = time.perf_counter()
        self.before = None
        self.after = None
        self.payload = None
        self.entity_type = None
        self.entity_id = None

    def set_entity(self, etype: str, eid: str):
        self.entity_type = etype
        self.entity_id = eid

    def set_before(self, obj): self.before = obj
    def set_after(self, obj): self.after = obj
    def set_payload(self, obj): self.payload = obj

    def record(self, result: str = "OK", err: Optional[str] = None) -> dict:
        elapsed_ms = int((time.perf_counter() - self.start) * 1000)
        return {
            "Ts": dt.datetime.now(dt.timezone.utc).isoformat(),
            "Action": self.action,
            "EntityType": self.entity_type,
            "EntityId": self.entity_id,
            "RequestId": self.request_id,
            "BeforeJson": _dumps(self.before),
            "AfterJson": _dumps(self.after),
            "PayloadJson": _dumps(self.payload),
            "Result": result,
            "ErrMsg": err,
            "LatencyMs": elapsed_ms,
        }

    def write(self, result: str = "OK", err: Optional[str] = None) -> dict:
        rec = self.record(result, err)
        level = logging.INFO if result == "OK" else logging.ERROR
        ops_logger.log(level, json.dumps(rec, ensure_ascii=False))
        if self.persist:
            ensure_log_schema(self.location)
            ExecutionGateway(self.location).execute_non_query(
                """INSERT INTO OperationLog
                (Ts,Action,EntityType,EntityId,RequestId,BeforeJson,AfterJson,PayloadJson,Result,ErrMsg,LatencyMs)
                VALUES(:Ts,:Action,:EntityType,:EntityId,:RequestId,:BeforeJson,:AfterJson,:PayloadJson,:Result,:ErrMsg,:LatencyMs)""",
                rec,
            )
        return rec


def search_logs(location: str, action: str | None = None, q: str | None = None, page: int = 1, size: int = 20):
    gw = ExecutionGateway(location)
    exists = gw.execute_scalar(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name='OperationLog'"
    )
    if exists is NO_ROWS:
        return 0, []
    where = []
    params = {}
    if q:
        where.append("(PayloadJson LIKE :q OR BeforeJson LIKE :q OR AfterJson LIKE :q OR ErrMsg LIKE :q)")
        params["q"] = f"%{q}%"
    if action:
        where.append("Action = :action")
        params["action"] = action
    wh = " WHERE " + " AND ".join(where) if where else ""
    page = max(1, page)
    total = gw.execute_scalar(f"SELECT COUNT(1) FROM OperationLog{wh}", params)
    res = gw.execute_query(
        f"SELECT * FROM OperationLog{wh} ORDER BY Id DESC LIMIT :limit OFFSET :offset",
        {**params, "limit": size, "offset": (page - 1) * size},
    )
    return int(total), res.to_dicts()
