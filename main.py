"""
命令行入口 - 基于会话客户端的简单后台 API 调用工具
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Optional, Sequence

from core.config import settings
from core.logging_config import configure_logging, get_logger
from domain.common.exceptions import ApiError
from infrastructure.external.api_clients import AdminAPIClient, create_admin_client


logger = get_logger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _session_summary(client: AdminAPIClient) -> dict:
    session = client.current_session()
    user = session.user
    return {
        "status": session.status.value,
        "user": None if user is None else {
            "id": user.id,
            "email": user.email,
            "name": user.display_name,
            "role": user.role_display_name,
        },
    }


async def _login(client: AdminAPIClient, args: argparse.Namespace) -> bool:
    result = await client.login(
        {"email": args.email, "password": args.password, "remember_me": args.remember_me or None}
    )
    if not result.success:
        print(f"Login failed: {result.error}", file=sys.stderr)
    return result.success


async def run(args: argparse.Namespace) -> int:
    async with create_admin_client(settings) as client:
        if args.command == "whoami":
            await client.lifecycle.initialize(args.path)
            _print_json(_session_summary(client))
            return 0 if client.current_session().is_authenticated else 1

        if args.command == "login":
            ok = await _login(client, args)
            _print_json(_session_summary(client))
            return 0 if ok else 1

        if args.command == "logout":
            await client.logout()
            _print_json(_session_summary(client))
            return 0

        if args.command == "get":
            if args.email and not await _login(client, args):
                return 1
            try:
                _print_json(await client.call(args.endpoint))
            except ApiError as exc:
                print(f"{exc.code}: {exc}", file=sys.stderr)
                return 1
            return 0

    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{settings.PROJECT_NAME} CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    whoami = sub.add_parser("whoami", help="probe the current session")
    whoami.add_argument("--path", default="/", help="route the probe runs for")

    def _credentials(p: argparse.ArgumentParser, required: bool) -> None:
        p.add_argument("--email", required=required)
        p.add_argument("--password", required=required)
        p.add_argument("--remember-me", action="store_true")

    _credentials(sub.add_parser("login", help="log in and print the session"), required=True)
    sub.add_parser("logout", help="log out")

    get = sub.add_parser("get", help="GET an endpoint and print the JSON body")
    get.add_argument("endpoint")
    _credentials(get, required=False)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    logger.debug("cli_command", command=args.command, base_url=settings.api.base_url)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
