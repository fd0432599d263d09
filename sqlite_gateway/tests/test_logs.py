import json
import logging

from sqlite_gateway.config import Settings
from sqlite_gateway.initializer import SchemaInitializer
from sqlite_gateway.logs import LogContext, search_logs


def test_write_emits_json_record(caplog):
    caplog.set_level(logging.INFO, logger="sqlite_gateway.ops")
    log = LogContext("SOMETHING")
    log.set_payload({"name": "张三"})
    rec = log.write("OK")
    assert rec["Action"] == "SOMETHING"
    logged = json.loads(caplog.records[-1].getMessage())
    assert logged["PayloadJson"] == json.dumps({"name": "张三"}, ensure_ascii=False)


def test_persisted_records_are_searchable(initialized_db):
    a = LogContext("USER_CREATE", initialized_db, persist=True)
    a.set_payload({"name": "王五"})
    a.write("OK")
    b = LogContext("DB_RESET", initialized_db, persist=True)
    b.write("ERROR", "disk full")

    total, items = search_logs(initialized_db)
    assert total == 2
    assert items[0]["Action"] == "DB_RESET"
    assert search_logs(initialized_db, action="USER_CREATE")[0] == 1
    total, items = search_logs(initialized_db, q="disk")
    assert total == 1 and items[0]["Result"] == "ERROR"


def test_initializer_persists_when_enabled(db_path):
    SchemaInitializer(settings=Settings(db_path=db_path, retry_delay_ms=0, operation_log=True)).initialize()
    total, items = search_logs(db_path, action="INITIALIZE")
    assert total == 1
    assert json.loads(items[0]["AfterJson"])["seeded"] is True
