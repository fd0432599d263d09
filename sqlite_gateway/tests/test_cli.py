import os

import pytest

from sqlite_gateway.cli import main

from .conftest import count_rows


def test_demo_runs_end_to_end(db_path, capsys):
    assert main(["--db", db_path, "demo"]) == 0
    out = capsys.readouterr().out
    assert "王五" in out
    assert "Users (after transaction)" in out
    assert count_rows(db_path, "Users") == 3


def test_init_twice_and_list(db_path, capsys):
    assert main(["--db", db_path, "init"]) == 0
    assert main(["--db", db_path, "init"]) == 0
    assert "seeded=False" in capsys.readouterr().out
    assert main(["--db", db_path, "departments"]) == 0
    assert "技术部" in capsys.readouterr().out


def test_reset_requires_confirmation(db_path):
    main(["--db", db_path, "init"])
    with pytest.raises(SystemExit) as ei:
        main(["--db", db_path, "reset"])
    assert "--yes" in str(ei.value.code)
    assert main(["--db", db_path, "reset", "--yes"]) == 0


def test_database_error_returns_nonzero(tmp_path, capsys):
    missing = str(tmp_path / "missing.db")
    assert main(["--db", missing, "users"]) == 1
    assert "程序执行出错" in capsys.readouterr().err


def test_config_option_is_read_without_touching_environment(tmp_path, db_path):
    cfg = tmp_path / "cli.yaml"
    cfg.write_text("include_relations: true\n", encoding="utf-8")
    before = os.environ.get("SQLITE_GATEWAY_CONFIG")

    assert main(["--config", str(cfg), "--db", db_path, "init"]) == 0
    assert count_rows(db_path, "UserDepartments") == 2
    assert os.environ.get("SQLITE_GATEWAY_CONFIG") == before
