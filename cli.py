from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _rule_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--service", required=True)
    p.add_argument("--v1", required=True, help="First version name")
    p.add_argument("--v2", required=True, help="Second version name")
    p.add_argument("--v1-weight", type=int, required=True)
    p.add_argument("--v2-weight", type=int, help="Defaults to 100 - v1-weight")
    p.add_argument("--type", default="WEIGHTED", choices=["WEIGHTED", "HEADER_MATCH", "PATH_BASED"])


def _rule_payload(args: argparse.Namespace) -> dict:
    v2_weight = args.v2_weight if args.v2_weight is not None else 100 - args.v1_weight
    return {
        "serviceName": args.service,
        "version1Name": args.v1,
        "version2Name": args.v2,
        "version1Weight": args.v1_weight,
        "version2Weight": v2_weight,
        "ruleType": args.type,
    }


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Traffic Split Reconciler CLI")
    p.add_argument("--api", default="http://localhost:4000", help="API base URL")
    p.add_argument("--user", default=None, help="Basic auth user (when the API requires it)")
    p.add_argument("--password", default=None)
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("rules", help="List traffic rules")

    s_show = sub.add_parser("show", help="Show one rule")
    s_show.add_argument("id")

    s_create = sub.add_parser("create", help="Create a traffic rule")
    _rule_args(s_create)

    s_update = sub.add_parser("update", help="Replace a traffic rule")
    s_update.add_argument("id")
    _rule_args(s_update)

    s_del = sub.add_parser("delete", help="Delete a traffic rule")
    s_del.add_argument("id")

    s_dep = sub.add_parser("deploy", help="Reconcile a rule into mesh config")
    s_dep.add_argument("id")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    args = p.parse_args(argv)

    base = args.api.rstrip("/")
    auth = (args.user, args.password) if args.user else None

    if args.cmd == "rules":
        r = requests.get(f"{base}/api/rules", timeout=10)
    elif args.cmd == "show":
        r = requests.get(f"{base}/api/rules/{args.id}", timeout=10)
    elif args.cmd == "create":
        r = requests.post(f"{base}/api/rules", json=_rule_payload(args), auth=auth, timeout=30)
    elif args.cmd == "update":
        r = requests.put(f"{base}/api/rules/{args.id}", json=_rule_payload(args), auth=auth, timeout=30)
    elif args.cmd == "delete":
        r = requests.delete(f"{base}/api/rules/{args.id}", auth=auth, timeout=30)
    elif args.cmd == "deploy":
        r = requests.post(f"{base}/api/rules/deploy/{args.id}", auth=auth, timeout=60)
    elif args.cmd == "events":
        r = requests.get(f"{base}/api/events", params={"limit": args.limit}, timeout=10)
    else:
        return 2

    _print(r.json())
    return 0 if r.ok else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
