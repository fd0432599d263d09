#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SQLite gateway command line

Commands:
  init                Create the store if needed, create tables, record schema version, seed, validate
  reset               Delete the store file and initialize from scratch (destructive, needs --yes)
  users               Print all users
  departments         Print all departments
  demo                init + list + one transaction (insert 王五, 张三 age + 1) + list again
  logs                Print recent operation log records (when operation_log is enabled)

Notes:
- The store location comes from --db, SQLITE_GATEWAY_DB_PATH, or config.yaml (db_path).
- Running init repeatedly is safe: nothing is duplicated.
"""
from __future__ import annotations

import argparse
import sys

import pandas as pd

from .config import load_settings
from .entities import User
from .errors import DatabaseError
from .gateway import ExecutionGateway
from .initializer import SchemaInitializer
from .logs import LogContext, search_logs, setup_logging
from .repository import users_repo
from .transaction import Transaction, run_in_transaction


def _settings(args):
    settings = load_settings(args.config)
    if args.db:
        settings.db_path = args.db
    return settings


def _print_table(title: str, df: pd.DataFrame):
    print(f"\n=== {title} ===")
    if df.empty:
        print("(empty)")
    else:
        print(df.to_string(index=False))


def _print_users(gw: ExecutionGateway, title: str = "Users"):
    _print_table(title, gw.execute_query("SELECT Id, Name, Age, Email FROM Users ORDER BY Id").to_frame())


def _print_departments(gw: ExecutionGateway):
    _print_table("Departments", gw.execute_query("SELECT Id, Name, Description FROM Departments ORDER BY Id").to_frame())


# ---------------- Commands ----------------

def cmd_init(args, settings):
    report = SchemaInitializer(settings=settings).initialize()
    print(f"DB initialized: {settings.db_path}")
    print(f"  created_file={report.created_file} version_inserted={report.version_inserted} seeded={report.seeded}")


def cmd_reset(args, settings):
    if not args.yes:
        raise SystemExit("reset deletes the whole database file; re-run with --yes")
    SchemaInitializer(settings=settings).reset_database()
    print(f"DB reset: {settings.db_path}")


def cmd_users(args, settings):
    _print_users(ExecutionGateway(settings.db_path))


def cmd_departments(args, settings):
    _print_departments(ExecutionGateway(settings.db_path))


def cmd_demo(args, settings):
    SchemaInitializer(settings=settings).initialize()
    gw = ExecutionGateway(settings.db_path)
    _print_users(gw)
    _print_departments(gw)

    log = LogContext("DEMO_TRANSACTION", settings.db_path, persist=settings.operation_log)

    def _work(tx: Transaction):
        users_repo.insert(tx, User(name="王五", age=28, email="wangwu@example.com"))
        users_repo.increment_age(tx, "张三")

    run_in_transaction(settings.db_path, _work)
    log.write("OK")
    _print_users(gw, "Users (after transaction)")


def cmd_logs(args, settings):
    total, items = search_logs(settings.db_path, args.action, None, 1, args.size)
    _print_table(f"Operation log ({total} total)", pd.DataFrame(items))


# ---------------- Entry ----------------

def main(argv=None):
    parser = argparse.ArgumentParser(description="SQLite transactional gateway")
    parser.add_argument("--config", default=None, help="config.yaml path")
    parser.add_argument("--db", default=None, help="database file (overrides config)")
    sub = parser.add_subparsers()

    p_init = sub.add_parser("init", help="initialize the database")
    p_init.set_defaults(func=cmd_init)

    p_reset = sub.add_parser("reset", help="delete and re-initialize the database")
    p_reset.add_argument("--yes", action="store_true")
    p_reset.set_defaults(func=cmd_reset)

    p_users = sub.add_parser("users", help="list users")
    p_users.set_defaults(func=cmd_users)

    p_depts = sub.add_parser("departments", help="list departments")
    p_depts.set_defaults(func=cmd_departments)

    p_demo = sub.add_parser("demo", help="run the end-to-end demo")
    p_demo.set_defaults(func=cmd_demo)

    p_logs = sub.add_parser("logs", help="show operation log")
    p_logs.add_argument("--action", required=False)
    p_logs.add_argument("--size", type=int, default=20)
    p_logs.set_defaults(func=cmd_logs)

    args = parser.parse_args(argv)
    settings = _settings(args)
    setup_logging(settings.log_level)
    if not hasattr(args, "func"):
        parser.print_help()
        return 0
    try:
        args.func(args, settings)
    except DatabaseError as e:
        print(f"程序执行出错: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
