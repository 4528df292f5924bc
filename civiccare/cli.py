from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from civiccare.api.backend import AuthBackend
from civiccare.api.client import ApiClient
from civiccare.api.services import CivicApi
from civiccare.core.config.manager import ConfigManager
from civiccare.core.config.models import ClientConfig
from civiccare.core.config.paths import ConfigFsPaths
from civiccare.core.errors import CivicError, ValidationError
from civiccare.core.events import EventLogger
from civiccare.core.logger import setup_logging
from civiccare.core.session.manager import SessionManager
from civiccare.core.storage.file_store import FileStore
from civiccare.core.validation import validate_registration


@dataclass
class ClientApp:
    cfg: ClientConfig
    store: FileStore
    api: CivicApi
    backend: AuthBackend
    session: SessionManager
    logger: Any

    def close(self) -> None:
        self.session.close()
        self.store.close()


def build_app(root: str = ".", *, http: Any = None, logger: Any = None, console_log: bool = False) -> ClientApp:
    fs = ConfigFsPaths(root=root)
    config = ConfigManager(fs=fs, logger=logger)
    cfg = config.load()
    if logger is None:
        logger = setup_logging(config.log_dir(), console=console_log)
        config.logger = logger

    store = FileStore(state_dir=config.state_dir(), poll_interval_ms=cfg.storage.poll_interval_ms, logger=logger)
    client = ApiClient(
        base_url=cfg.api_base_url,
        timeout_seconds=cfg.request_timeout_seconds,
        token_provider=lambda: store.get(cfg.session.token_key),
        http=http,
        logger=logger,
    )
    api = CivicApi(client)
    backend = AuthBackend(api.auth)
    event_logger = EventLogger(os.path.join(config.log_dir(), cfg.logging.event_log))
    session = SessionManager(store=store, auth=backend, cfg=cfg.session, logger=logger, event_logger=event_logger)
    if cfg.storage.watch:
        store.start_watching()
    return ClientApp(cfg=cfg, store=store, api=api, backend=backend, session=session, logger=logger)


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, indent=2, sort_keys=True, default=str))


# ---- commands ----
async def _cmd_whoami(app: ClientApp, args: argparse.Namespace) -> int:
    view = await app.session.initialize()
    _print_json(view.to_dict())
    return 0


async def _cmd_login(app: ClientApp, args: argparse.Namespace) -> int:
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    result = await app.backend.login(args.identifier, password)
    view = app.session.login(result.token, result.user)
    _print_json(view.to_dict())
    return 0


async def _cmd_logout(app: ClientApp, args: argparse.Namespace) -> int:
    view = await app.session.logout()
    _print_json(view.to_dict())
    return 0


async def _cmd_register(app: ClientApp, args: argparse.Namespace) -> int:
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    fields: Dict[str, Any] = {
        "username": args.username,
        "full_name": args.full_name,
        "email": args.email,
        "phone": args.phone,
        "aadhaar": args.aadhaar,
        "password": password,
    }
    problems = validate_registration(fields)
    if problems:
        raise ValidationError("; ".join(problems))
    result = await app.backend.register(fields)
    view = app.session.login(result.token, result.user)
    _print_json(view.to_dict())
    return 0


async def _cmd_stats(app: ClientApp, args: argparse.Namespace) -> int:
    api = app.api
    out = {
        "reports": await asyncio.to_thread(api.reports.public_stats),
        "activities": await asyncio.to_thread(api.activities.public_stats),
        "leaderboard": await asyncio.to_thread(api.leaderboard.public_stats),
    }
    _print_json(out)
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="civiccare", description="CivicCare command-line client")
    ap.add_argument("--root", default=".", help="Directory holding config/, state/ and logs/.")
    ap.add_argument("--verbose", action="store_true", help="Also log to the console.")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("whoami", help="Restore the saved session and print it.")

    p = sub.add_parser("login", help="Log in with an email or Aadhaar number.")
    p.add_argument("identifier")
    p.add_argument("--password", default=None, help="Prompted for when omitted.")

    sub.add_parser("logout", help="End the current session.")

    p = sub.add_parser("register", help="Create an account and log in.")
    p.add_argument("--username", required=True)
    p.add_argument("--full-name", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--phone", required=True)
    p.add_argument("--aadhaar", required=True)
    p.add_argument("--password", default=None, help="Prompted for when omitted.")

    sub.add_parser("stats", help="Show public report, activity and leaderboard stats.")
    return ap


COMMANDS = {
    "whoami": _cmd_whoami,
    "login": _cmd_login,
    "logout": _cmd_logout,
    "register": _cmd_register,
    "stats": _cmd_stats,
}


def main(argv: Optional[List[str]] = None, *, http: Any = None) -> int:
    ap = build_parser()
    try:
        args = ap.parse_args(argv)
    except SystemExit as e:
        return int(e.code or 0)

    app: Optional[ClientApp] = None
    try:
        app = build_app(args.root, http=http, console_log=bool(args.verbose))
        return asyncio.run(COMMANDS[args.command](app, args))
    except CivicError as e:
        if app is not None and app.logger:
            app.logger.error(f"{args.command} failed: {e.code}: {e.user_message}")
        print(f"Error: {e.user_message}", file=sys.stderr)
        return 1
    finally:
        if app is not None:
            app.close()


if __name__ == "__main__":
    sys.exit(main())
