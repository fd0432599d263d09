import sqlite3

from .conftest import count_rows


def test_health_and_version(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/version").json()["app"] == "sqlite-gateway-api"


def test_startup_initializes_store(client, db_path):
    r = client.get("/api/db/status")
    assert r.status_code == 200
    data = r.json()
    assert {"Users", "Departments", "SchemaVersions"} <= set(data["tables"])
    assert data["counts"]["Users"] == 2
    assert [v["Version"] for v in data["versions"]] == ["1.0"]


def test_users_list_and_create(client, db_path):
    r = client.get("/api/users")
    assert r.json()["total"] == 2
    assert [u["name"] for u in r.json()["items"]] == ["张三", "李四"]

    r = client.post("/api/users", json={"name": "王五", "age": 28, "email": "wangwu@example.com"})
    assert r.status_code == 201
    assert r.json()["id"] == 3
    assert count_rows(db_path, "Users") == 3

    assert client.post("/api/users", json={"name": "", "age": 1}).status_code == 422


def test_set_age(client):
    r = client.post("/api/users/age", json={"name": "张三", "age": 26})
    assert r.status_code == 200
    ages = {u["name"]: u["age"] for u in client.get("/api/users").json()["items"]}
    assert ages["张三"] == 26

    r = client.post("/api/users/age", json={"name": "nobody", "age": 1})
    assert r.status_code == 404


def test_departments(client):
    items = client.get("/api/departments").json()["items"]
    assert [d["name"] for d in items] == ["技术部", "人事部"]


def test_db_init_is_idempotent(client, db_path):
    r = client.post("/api/db/init")
    assert r.status_code == 200
    report = r.json()["report"]
    assert report["seeded"] is False
    assert report["phases"][-1] == "validate"
    assert count_rows(db_path, "Users") == 2


def test_database_errors_are_mapped(client, db_path):
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("DROP TABLE Departments")
        conn.commit()
    finally:
        conn.close()
    r = client.get("/api/departments")
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "StatementError"
    assert body["operation"] == "execute_query"

    # seeding is skipped because Users still has rows, so validation fails
    r = client.post("/api/db/init")
    assert r.status_code == 500
    assert r.json()["error"] == "ValidationError"
    assert r.json()["phase"] == "validate"


def test_reset(client, db_path):
    client.post("/api/users", json={"name": "王五", "age": 28})
    r = client.post("/api/db/reset")
    assert r.status_code == 200
    assert r.json()["report"]["created_file"] is True
    assert count_rows(db_path, "Users") == 2


def test_logs_search_without_log_table(client):
    r = client.get("/api/logs/search")
    assert r.json() == {"total": 0, "items": []}
