"""
Seed entity shapes and their statically declared field -> column mappings.

Bulk inserts build their statements from these tables; nothing is derived
by introspecting the entity classes at runtime.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .gateway import ExecutionRequest


@dataclass
class User:
    name: str
    age: Optional[int] = None
    email: Optional[str] = None
    create_time: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Department:
    name: str
    description: Optional[str] = None
    create_time: Optional[str] = None
    id: Optional[int] = None


@dataclass
class UserDepartment:
    user_id: int
    department_id: int
    join_time: Optional[str] = None


@dataclass(frozen=True)
class EntityMap:
    table: str
    columns: Tuple[Tuple[str, str], ...]  # (field, column)
    key: Optional[Tuple[str, str]] = None  # 由数据库分配的代理键
    defaulted: Tuple[str, ...] = ()  # 为 None 时省略，交给列默认值

    def insert_request(self, entity: Any) -> ExecutionRequest:
        pairs = [
            (f, c) for f, c in self.columns
            if not (f in self.defaulted and getattr(entity, f) is None)
        ]
        cols = ", ".join(c for _, c in pairs)
        marks = ", ".join(f":{c}" for _, c in pairs)
        sql = f"INSERT INTO {self.table} ({cols}) VALUES ({marks})"
        return ExecutionRequest(sql, {c: getattr(entity, f) for f, c in pairs})

    def to_fields(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        keys = set(row.keys())
        out = {f: row[c] for f, c in self.columns if c in keys}
        if self.key and self.key[1] in keys:
            out[self.key[0]] = row[self.key[1]]
        return out


USER_MAP = EntityMap(
    table="Users",
    columns=(("name", "Name"), ("age", "Age"), ("email", "Email"), ("create_time", "CreateTime")),
    key=("id", "Id"),
    defaulted=("create_time",),
)

DEPARTMENT_MAP = EntityMap(
    table="Departments",
    columns=(("name", "Name"), ("description", "Description"), ("create_time", "CreateTime")),
    key=("id", "Id"),
    defaulted=("create_time",),
)

USER_DEPARTMENT_MAP = EntityMap(
    table="UserDepartments",
    columns=(("user_id", "UserId"), ("department_id", "DepartmentId"), ("join_time", "JoinTime")),
    defaulted=("join_time",),
)

MAPPINGS: Dict[type, EntityMap] = {
    User: USER_MAP,
    Department: DEPARTMENT_MAP,
    UserDepartment: USER_DEPARTMENT_MAP,
}


def mapping_for(entity_type: type) -> EntityMap:
    try:
        return MAPPINGS[entity_type]
    except KeyError:
        raise TypeError(f"no column mapping declared for {entity_type.__name__}") from None


def insert_request(entity: Any) -> ExecutionRequest:
    return mapping_for(type(entity)).insert_request(entity)


def from_row(entity_type: type, row: Mapping[str, Any]) -> Any:
    return entity_type(**mapping_for(entity_type).to_fields(row))


# ---------------- Seed data ----------------

SEED_DEPARTMENTS: List[Department] = [
    Department(name="技术部", description="负责技术研发"),
    Department(name="人事部", description="负责人力资源管理"),
]

SEED_USERS: List[User] = [
    User(name="张三", age=25, email="zhangsan@example.com"),
    User(name="李四", age=30, email="lisi@example.com"),
]

# (用户名, 部门名)：代理键由数据库分配，按名称关联
SEED_MEMBERSHIPS: List[Tuple[str, str]] = [
    ("张三", "技术部"),
    ("李四", "人事部"),
]

MEMBERSHIP_BY_NAME_SQL = (
    "INSERT INTO UserDepartments (UserId, DepartmentId) "
    "SELECT u.Id, d.Id FROM Users u, Departments d "
    "WHERE u.Name = :user_name AND d.Name = :department_name"
)


def seed_entities() -> list:
    """部门在前、用户在后（与外键依赖顺序一致）。"""
    return [*SEED_DEPARTMENTS, *SEED_USERS]


def membership_requests() -> List[ExecutionRequest]:
    return [
        ExecutionRequest(MEMBERSHIP_BY_NAME_SQL, {"user_name": u, "department_name": d})
        for u, d in SEED_MEMBERSHIPS
    ]
