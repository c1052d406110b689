import argparse
import getpass
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from accessdemo.database import Database, resolve_database_path
from accessdemo.errors import ServiceError
from accessdemo.models import ADMIN_ROLE, USER_ROLE
from accessdemo.seed import seed_roles
from accessdemo.users import UserService


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an account in the access-control demo")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument("first_name", help="Given name")
    parser.add_argument("last_name", help="Family name")
    parser.add_argument(
        "--admin",
        action="store_true",
        help=f"Grant {ADMIN_ROLE} in addition to {USER_ROLE}",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to ACCESSDEMO_DB_PATH or data/accessdemo.sqlite3)",
    )
    return parser.parse_args(argv)


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < 8:
            print("Password must be at least 8 characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    password = prompt_for_password()

    db_env = args.db_path or os.getenv("ACCESSDEMO_DB_PATH")
    database = Database(resolve_database_path(db_env))
    database.initialize()
    # Only the roles; the demo accounts are left to `main.py seed`.
    seed_roles(database)

    service = UserService(database)
    try:
        user = service.create_user(args.email, password, args.first_name, args.last_name, USER_ROLE)
        if args.admin:
            service.add_admin_role(user.id)
    except ServiceError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    roles = ", ".join(service.roles_for(user.id))
    print(f"Created user #{user.id}: {user.first_name} {user.last_name} <{user.email}> [{roles}]")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
