"""Command-line interface for the Broken Access Control demo service."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from typing import TYPE_CHECKING, Sequence, Tuple

from accessdemo.config import Settings, resolve_seed_data
from accessdemo.database import Database, resolve_database_path
from accessdemo.errors import ServiceError
from accessdemo.models import USER_ROLE
from accessdemo.seed import seed_database, seed_roles
from accessdemo.users import UserService

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger("accessdemo.main")

_DEFAULT_SERVICE_URL = "http://localhost:8080"
_MIN_PASSWORD_LENGTH = 8


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Broken Access Control demo utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the demo database")
    subparsers.add_parser("seed", help="Create the demo roles and accounts if none exist")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port for the HTTP API (default: 8080)",
    )
    serve_parser.add_argument(
        "--secure-only",
        action="store_true",
        help="Do not mount the /vulnerable endpoints",
    )

    user_parser = subparsers.add_parser("create-user", help="Create an account interactively")
    user_parser.add_argument("email", help="Unique email address used to sign in")
    user_parser.add_argument("first_name", help="Given name")
    user_parser.add_argument("last_name", help="Family name")
    user_parser.add_argument("--role", default=USER_ROLE, help=f"Initial role (default: {USER_ROLE})")

    demo_parser = subparsers.add_parser(
        "demo", help="Replay the attack scenarios against a running service"
    )
    demo_parser.add_argument(
        "--service-url",
        default=_DEFAULT_SERVICE_URL,
        help=f"Base URL of a running service (default: {_DEFAULT_SERVICE_URL})",
    )
    demo_parser.add_argument("--user", default="user@example.com:password123", help="Regular account as email:password")
    demo_parser.add_argument("--admin", default="admin@example.com:admin123", help="Administrator account as email:password")
    demo_parser.add_argument("--victim-id", type=int, default=3, help="Id of the account to attack")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "seed", "create-user", "demo"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _split_credentials(raw: str) -> Tuple[str, str]:
    email, sep, password = raw.partition(":")
    if not sep or not email or not password:
        raise SystemExit(f"Credentials must be given as email:password, got {raw!r}")
    return email, password


def _initialise_database(settings: Settings) -> Database:
    db_path = resolve_database_path(settings.database_path)
    database = Database(db_path)
    database.initialize()
    logger.info("Database initialised at %s", db_path)
    return database


def _serve(*, database: Database, settings: Settings, host: str, port: int, secure_only: bool) -> None:
    from accessdemo.service import create_app
    import uvicorn

    logger.info("Starting demo API on http://%s:%s", host, port)
    app = create_app(
        database=database,
        settings=settings,
        include_vulnerable=False if secure_only else None,
    )
    uvicorn.run(app, host=host, port=port, log_level="info")


def _seed(database: Database, settings: Settings) -> None:
    report = seed_database(database, resolve_seed_data(settings))
    if not report.changed:
        print("Seed data already present; nothing was created.")
        return
    for name in report.roles_created:
        print(f"Created role {name}")
    for email in report.users_created:
        print(f"Created user {email}")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {_MIN_PASSWORD_LENGTH} characters): ")
        if len(password) < _MIN_PASSWORD_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _create_user(database: Database, settings: Settings, args: argparse.Namespace) -> int:
    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.")
        return 1

    seed_roles(database, resolve_seed_data(settings))
    service = UserService(database)
    try:
        user = service.create_user(
            args.email.strip(),
            password,
            args.first_name.strip(),
            args.last_name.strip(),
            args.role,
        )
    except ServiceError as exc:
        print(f"Failed to create user: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.first_name} {user.last_name} <{user.email}> ({args.role})")
    return 0


def _describe(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"{response.status_code}"
    if isinstance(payload, dict) and "error" in payload:
        return f"{response.status_code} {payload['error']}"
    if isinstance(payload, list):
        return f"{response.status_code} {len(payload)} record(s)"
    if isinstance(payload, dict):
        return f"{response.status_code} fields: {', '.join(sorted(payload))}"
    return f"{response.status_code}"


def _run_demo(
    service_url: str,
    user: Tuple[str, str],
    admin: Tuple[str, str],
    victim_id: int,
) -> int:
    """Replay each attack against the vulnerable API and its secure twin."""

    import httpx

    try:
        with httpx.Client(base_url=service_url.rstrip("/"), timeout=10.0) as client:
            me = client.get("/secure/users/me", auth=user)
            if me.status_code != 200:
                print(f"Cannot sign in as {user[0]}: {_describe(me)}")
                return 1
            own_id = int(me.json()["id"])

            print("IDOR: read another user's record")
            print("  vulnerable:", _describe(client.get(f"/vulnerable/users/{victim_id}")))
            print("  secure:    ", _describe(client.get(f"/secure/users/{victim_id}", auth=user)))

            print("Mass assignment: raise own balance and grant ROLE_ADMIN")
            attack = {
                "firstName": me.json()["firstName"],
                "lastName": me.json()["lastName"],
                "email": me.json()["email"],
                "accountBalance": 999999,
                "roles": [{"name": "ROLE_ADMIN"}],
            }
            print("  secure:    ", _describe(client.put(f"/secure/users/{own_id}", auth=user, json=attack)))
            roles = client.get("/secure/users/me", auth=user).json().get("roles", [])
            print(f"  roles after secure update: {', '.join(roles)}")

            print("Missing function-level access control: list every user")
            print("  vulnerable:", _describe(client.get("/vulnerable/users/all")))
            print("  secure:    ", _describe(client.get("/secure/users/all", auth=user)))
            print("  secure as administrator:", _describe(client.get("/secure/users/all", auth=admin)))

            print("Enumeration: scan ids 1-10")
            found = [
                candidate
                for candidate in range(1, 11)
                if client.get(f"/vulnerable/users/exists/{candidate}").json().get("exists")
            ]
            print(f"  existing ids: {found}")
    except httpx.HTTPError as exc:
        print(f"Failed to contact the demo service: {exc}", file=sys.stderr)
        return 1

    print("The mass-assignment attack was only replayed on the secure API; the vulnerable one would succeed.")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = Settings.from_env()

    if args.command == "demo":
        return _run_demo(
            args.service_url,
            _split_credentials(args.user),
            _split_credentials(args.admin),
            args.victim_id,
        )

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(
            database=database,
            settings=settings,
            host=args.host,
            port=args.port,
            secure_only=args.secure_only,
        )
    elif args.command == "seed":
        _seed(database, settings)
    elif args.command == "create-user":
        return _create_user(database, settings, args)
    elif args.command == "init-db":
        print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
