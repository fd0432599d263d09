"""
SchemaInitializer: idempotent bootstrap of the store.

Phases run strictly in order on every call to ``initialize()``:

    FILE_ENSURE -> TABLES_CREATE -> VERSION_GATE -> SEED_DATA -> VALIDATE -> DONE

A failure in any phase aborts the run (state FAILED) and re-raises the typed
error with ``err.phase`` set. There is no resume; ``reset_database()`` deletes
the store and starts over from FILE_ENSURE.

Note: the "check empty, then insert" steps are not guarded against a second
initializer running concurrently on the same fresh store; both may seed.
"""
from __future__ import annotations

import datetime as dt
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .batch import execute_batch
from .config import Settings, load_settings
from .db import ConnectionFactory, default_factory
from .entities import membership_requests, seed_entities
from .errors import DatabaseConnectionError, DatabaseError, TransientIOError, ValidationError
from .gateway import ExecutionGateway, NO_ROWS
from .logs import LogContext
from .repository import insert_many
from .retry import Attempt, RetryPolicy
from .schema import tables_for, seeded_table_names
from .transaction import Transaction, TransactionScope

logger = logging.getLogger(__name__)

_STORE_SIDE_FILES = ("-wal", "-shm", "-journal")


class Phase(str, Enum):
    IDLE = "idle"
    FILE_ENSURE = "file_ensure"
    TABLES_CREATE = "tables_create"
    VERSION_GATE = "version_gate"
    SEED_DATA = "seed_data"
    VALIDATE = "validate"
    DONE = "done"
    FAILED = "failed"


@dataclass
class InitReport:
    location: str
    schema_version: str
    phases: List[Phase] = field(default_factory=list)
    created_file: bool = False
    file_attempts: int = 0
    tables: List[str] = field(default_factory=list)
    version_inserted: bool = False
    seeded: bool = False

    def as_dict(self) -> dict:
        out = asdict(self)
        out["phases"] = [p.value for p in self.phases]
        return out


def _utc_now_text() -> str:
    # 与 CURRENT_TIMESTAMP 相同的格式（UTC）
    return dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class SchemaInitializer:
    def __init__(
        self,
        location: Optional[str] = None,
        settings: Optional[Settings] = None,
        factory: Optional[ConnectionFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or load_settings()
        self._location = location or self.settings.db_path
        self.factory = factory or default_factory()
        self.gateway = ExecutionGateway(self._location, factory=self.factory)
        self.retry_policy = RetryPolicy(
            max_attempts=self.settings.max_retry_count,
            delay=self.settings.retry_delay_seconds,
        )
        self.state = Phase.IDLE
        self._sleep = sleep
        self._running = False

    @property
    def location(self) -> str:
        return self._location

    @property
    def schema_version(self) -> str:
        return self.settings.schema_version

    # ---------------- Phases ----------------

    def _try_create(self, attempt: int) -> Attempt:
        path = self._location
        try:
            if os.path.isfile(path):
                return Attempt.success(False)
            parent = os.path.dirname(os.path.abspath(path))
            os.makedirs(parent, exist_ok=True)
            with self.factory.connect(path, create=True):
                pass
            return Attempt.success(True)
        except TransientIOError as e:
            return Attempt.transient(e)
        except DatabaseConnectionError as e:
            return Attempt.fatal(e)
        except (PermissionError, BlockingIOError) as e:
            return Attempt.transient(e)
        except OSError as e:
            return Attempt.fatal(e)
        except ValueError as e:
            # 例如路径中含 NUL
            return Attempt.fatal(DatabaseConnectionError("ensure_file", f"数据库位置不合法: {path!r}", cause=e))

    def ensure_file(self) -> tuple[bool, int]:
        """创建数据库文件（已存在则无操作）。返回 (是否新建, 尝试次数)。"""
        outcome = self.retry_policy.run(self._try_create, sleep=self._sleep, label="ensure_file")
        if outcome.succeeded:
            if outcome.value:
                logger.info("数据库文件 %s 创建成功", self._location)
            return bool(outcome.value), outcome.attempts
        cause = outcome.last_error
        if outcome.exhausted:
            raise DatabaseConnectionError(
                "ensure_file",
                f"创建数据库文件失败，已重试{outcome.attempts}次: {self._location}",
                cause=cause,
            ) from cause
        raise DatabaseConnectionError(
            "ensure_file", f"创建数据库文件失败: {self._location}", cause=cause
        ) from cause

    def create_tables(self) -> List[str]:
        created = []
        for t in tables_for(self.settings.include_relations):
            self.gateway.execute_non_query(t.ddl)
            created.append(t.name)
        logger.info("数据库表创建成功: %s", ", ".join(created))
        return created

    def apply_version_gate(self) -> bool:
        exists = self.gateway.execute_scalar(
            "SELECT COUNT(*) FROM SchemaVersions WHERE Version = :Version",
            {"Version": self.schema_version},
        )
        if exists not in (NO_ROWS, None) and int(exists) > 0:
            return False
        self.gateway.execute_non_query(
            "INSERT INTO SchemaVersions (Version, AppliedOn) VALUES (:Version, :AppliedOn)",
            {"Version": self.schema_version, "AppliedOn": _utc_now_text()},
        )
        logger.info("schema version %s recorded", self.schema_version)
        return True

    def seed_data(self) -> bool:
        # 幂等粒度是整张主表：只要 Users 有数据就整体跳过，不做逐行补齐
        user_count = self.gateway.execute_scalar("SELECT COUNT(*) FROM Users")
        if int(user_count or 0) > 0:
            logger.info("数据库已经初始化过，跳过基础数据初始化")
            return False

        include_relations = self.settings.include_relations

        def _insert_all(tx: Transaction) -> int:
            rows = insert_many(tx, seed_entities())
            if include_relations:
                rows += execute_batch(tx, membership_requests(), "seed_data")
            return rows

        rows = TransactionScope(self._location, factory=self.factory).run(_insert_all)
        logger.info("基础数据初始化成功: %d 行", rows)
        return True

    def validate(self) -> None:
        for t in tables_for(self.settings.include_relations):
            found = self.gateway.execute_scalar(
                "SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name = :TableName",
                {"TableName": t.name},
            )
            if int(found or 0) == 0:
                raise ValidationError("validate", f"数据库验证失败：表 {t.name} 不存在")

        for name in seeded_table_names(self.settings.include_relations):
            # 表名来自固定清单，不是外部输入
            count = self.gateway.execute_scalar(f"SELECT COUNT(*) FROM {name}")
            if int(count or 0) == 0:
                raise ValidationError("validate", f"数据库验证失败：基础数据不完整（{name} 为空）")

        version = self.gateway.execute_scalar(
            "SELECT COUNT(*) FROM SchemaVersions WHERE Version = :Version",
            {"Version": self.schema_version},
        )
        if int(version or 0) != 1:
            raise ValidationError("validate", f"数据库验证失败：缺少版本记录 {self.schema_version}")
        logger.info("数据库验证成功")

    # ---------------- State machine ----------------

    def initialize(self) -> InitReport:
        if self._running:
            raise DatabaseError("initialize", "初始化正在进行中，不允许重入")
        self._running = True
        report = InitReport(location=self._location, schema_version=self.schema_version)
        log = LogContext("INITIALIZE", self._location)
        log.set_payload({"schema_version": self.schema_version, "include_relations": self.settings.include_relations})

        def _file():
            report.created_file, report.file_attempts = self.ensure_file()

        def _tables():
            report.tables = self.create_tables()

        def _version():
            report.version_inserted = self.apply_version_gate()

        def _seed():
            report.seeded = self.seed_data()

        steps = (
            (Phase.FILE_ENSURE, _file),
            (Phase.TABLES_CREATE, _tables),
            (Phase.VERSION_GATE, _version),
            (Phase.SEED_DATA, _seed),
            (Phase.VALIDATE, self.validate),
        )
        phase = Phase.IDLE
        try:
            for phase, step in steps:
                self.state = phase
                logger.debug("initialize %s: entering %s", self._location, phase.value)
                step()
                report.phases.append(phase)
            # 所有阶段已完成；此后的失败（写操作日志）记为 DONE 阶段
            phase = Phase.DONE
            log.set_after(report.as_dict())
            log.persist = self.settings.operation_log
            log.write("OK")
            self.state = Phase.DONE
        except DatabaseError as e:
            self.state = Phase.FAILED
            log.persist = False
            if e.phase is None:
                e.phase = phase
            log.set_after(report.as_dict())
            log.write("ERROR", f"{phase.value}: {e}")
            raise
        except Exception as e:
            self.state = Phase.FAILED
            log.persist = False
            err = DatabaseError(f"initialize.{phase.value}", f"数据库初始化失败: {e}", cause=e)
            err.phase = phase
            log.set_after(report.as_dict())
            log.write("ERROR", f"{phase.value}: {e}")
            raise err from e
        finally:
            self._running = False
        return report

    def reset_database(self) -> InitReport:
        """删除整个数据库文件后从 FILE_ENSURE 重新初始化（破坏性操作）。"""
        if self._running:
            raise DatabaseError("reset_database", "初始化正在进行中，不允许重置")
        for path in (self._location, *(self._location + s for s in _STORE_SIDE_FILES)):
            if os.path.isfile(path):
                try:
                    os.remove(path)
                except OSError as e:
                    raise DatabaseConnectionError("reset_database", f"删除数据库文件失败: {path}", cause=e) from e
        logger.info("数据库文件删除成功: %s", self._location)
        self.state = Phase.IDLE
        return self.initialize()


def initialize(location: Optional[str] = None, settings: Optional[Settings] = None) -> InitReport:
    return SchemaInitializer(location, settings=settings).initialize()


def reset_database(location: Optional[str] = None, settings: Optional[Settings] = None) -> InitReport:
    return SchemaInitializer(location, settings=settings).reset_database()
