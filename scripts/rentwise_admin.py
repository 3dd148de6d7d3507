#!/usr/bin/env python3
"""
Admin command line for provisioning managers and inviting users.

Why:
    Operators sometimes need to onboard a manager without the web UI. The
    script calls the same admin endpoints the browser uses, authenticated
    with an admin's access token, so the service key stays on the server.

Usage:
    RENTWISE_ACCESS_TOKEN=... python scripts/rentwise_admin.py --base-url https://app.example.com \
        create-manager --name "Jane Doe" --email jane@example.com

Security:
    The token is read from the environment only and never printed.
"""
from __future__ import annotations

import argparse
import json
import os
import sys

from backend.client.api_client import ApiClient, ApiError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="RentWise admin provisioning")
    parser.add_argument("--base-url", default=os.getenv("RENTWISE_BASE_URL", "http://localhost:5000"))
    sub = parser.add_subparsers(dest="command", required=True)

    cm = sub.add_parser("create-manager", help="Create a manager account with a temporary password")
    cm.add_argument("--name", required=True)
    cm.add_argument("--email", required=True)
    cm.add_argument("--phone", default=None)

    inv = sub.add_parser("invite", help="Send an invitation email")
    inv.add_argument("--email", required=True)
    inv.add_argument("--role", choices=["admin", "manager", "tenant"], default="tenant")

    sub.add_parser("users", help="List user profiles")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    token = (os.getenv("RENTWISE_ACCESS_TOKEN") or "").strip()
    if not token:
        print("RENTWISE_ACCESS_TOKEN is not set.", file=sys.stderr)
        return 2

    with ApiClient(args.base_url, token_provider=lambda: token) as client:
        try:
            if args.command == "create-manager":
                result = client.create_manager(name=args.name, email=args.email, phone=args.phone)
            elif args.command == "invite":
                result = client.invite_user(email=args.email, role=args.role)
            else:
                result = client.list_users()
        except ApiError as exc:
            suffix = f" (request {exc.request_id})" if exc.request_id else ""
            print(f"Error {exc.status_code}: {exc.message}{suffix}", file=sys.stderr)
            return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
