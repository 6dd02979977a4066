#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Academic Monitor (SQLite + external AI service)

Commands:
  init                Create the schema, operation log and default config
  import-grades       Load a grade CSV (nim,kode,semester_no,tahun_ajaran,grade_index,sks)
  create-admin        Create or promote an admin account
  run-worker          Process due analysis jobs against AI_BASE_URL
  features            Print the model features extracted for one student

Notes:
- The database path comes from ACADEMIC_DB_PATH or config.yaml (db_path).
- run-worker needs AI_BASE_URL; it honours the WORKER_* throttle settings.
"""

import argparse
import json
import logging
import os
import sys

import pandas as pd

from academic_monitor.db import ensure_schema, get_db_path
from academic_monitor.logs import LogContext, ensure_log_schema
from academic_monitor.providers.ai_provider import build_ai_client
from academic_monitor.services.admin_svc import create_admin
from academic_monitor.services.config_svc import ensure_default_config, get_config
from academic_monitor.services.feature_svc import extract_features
from academic_monitor.services.upload_svc import import_grades
from academic_monitor.services.worker_svc import process_batch


# ---------------- Commands ----------------

def cmd_init(args):
    ensure_schema()
    ensure_log_schema()
    ensure_default_config()
    print(f"Initialized {get_db_path()}")


def cmd_import_grades(args):
    with open(args.csv, "rb") as f:
        content = f.read()
    log = LogContext("CLI_IMPORT_GRADES", user="cli")
    log.set_entity("FILE", os.path.basename(args.csv))
    try:
        out = import_grades(content, log)
        log.write("OK")
    except Exception as e:
        log.write("ERROR", str(e))
        raise
    print(json.dumps(out, ensure_ascii=False, indent=2))


def cmd_create_admin(args):
    log = LogContext("CLI_CREATE_ADMIN", user="cli")
    try:
        out = create_admin(args.email, args.password, args.full_name, log)
        log.write("OK")
    except Exception as e:
        log.write("ERROR", str(e))
        raise
    print(json.dumps(out, ensure_ascii=False, indent=2))


def cmd_run_worker(args):
    provider = build_ai_client(get_config())
    log = LogContext("CLI_AI_WORKER", user="cli")
    try:
        out = process_batch(provider, dry=args.dry)
        log.set_after(out)
        log.write("OK")
    except Exception as e:
        log.write("ERROR", str(e))
        raise
    print(json.dumps(out, ensure_ascii=False, indent=2, default=str))


def cmd_features(args):
    out = extract_features(args.student_id)
    pd.set_option("display.width", 160)
    print("\n=== Features ===")
    print(pd.Series(out["feat"]).to_string())
    print("\n=== Meta ===")
    print(pd.Series(out["meta"]).to_string())


# ---------------- Entry ----------------

def main():
    parser = argparse.ArgumentParser(description="Academic monitor (SQLite + AI service)")
    parser.add_argument("--config", default=None, help="path to config.yaml")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers()

    p_init = sub.add_parser("init", help="create schema and default config")
    p_init.set_defaults(func=cmd_init)

    p_imp = sub.add_parser("import-grades", help="load a grade CSV")
    p_imp.add_argument("csv")
    p_imp.set_defaults(func=cmd_import_grades)

    p_adm = sub.add_parser("create-admin", help="create or promote an admin account")
    p_adm.add_argument("--email", required=False)
    p_adm.add_argument("--password", required=True)
    p_adm.add_argument("--full_name", required=False)
    p_adm.set_defaults(func=cmd_create_admin)

    p_work = sub.add_parser("run-worker", help="process due analysis jobs")
    p_work.add_argument("--dry", action="store_true", help="only list due jobs")
    p_work.set_defaults(func=cmd_run_worker)

    p_feat = sub.add_parser("features", help="print extracted features for a student")
    p_feat.add_argument("student_id")
    p_feat.set_defaults(func=cmd_features)

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if args.config:
        os.environ["ACADEMIC_CONFIG"] = args.config
    if hasattr(args, "func"):
        try:
            args.func(args)
        except Exception as e:
            print(f"error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
