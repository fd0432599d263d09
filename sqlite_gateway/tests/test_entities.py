import pytest

from sqlite_gateway.entities import (
    Department,
    User,
    UserDepartment,
    from_row,
    insert_request,
    mapping_for,
    membership_requests,
    seed_entities,
)


def test_insert_request_uses_declared_columns():
    req = insert_request(User(name="王五", age=28, email="wangwu@example.com"))
    assert req.sql == "INSERT INTO Users (Name, Age, Email) VALUES (:Name, :Age, :Email)"
    assert req.params == {"Name": "王五", "Age": 28, "Email": "wangwu@example.com"}


def test_defaulted_column_is_sent_when_given():
    req = insert_request(Department(name="x", create_time="2024-01-01 00:00:00"))
    assert "CreateTime" in req.sql
    assert req.params["CreateTime"] == "2024-01-01 00:00:00"


def test_from_row_maps_columns_back_to_fields():
    row = {"Id": 7, "Name": "张三", "Age": 25, "Email": None, "CreateTime": "t"}
    u = from_row(User, row)
    assert u == User(name="张三", age=25, email=None, create_time="t", id=7)


def test_unmapped_type_is_rejected():
    class Other:
        pass

    with pytest.raises(TypeError):
        mapping_for(Other)
    assert mapping_for(UserDepartment).table == "UserDepartments"


def test_seed_order_follows_references():
    assert [type(e) for e in seed_entities()] == [Department, Department, User, User]
    assert [r.sql.split()[2] for r in membership_requests()] == ["UserDepartments", "UserDepartments"]
