"""
Administer users from the command line. Run from project root:
  python -m app.scripts.manage_user create USERNAME EMAIL PASSWORD
  python -m app.scripts.manage_user show USER_ID
  python -m app.scripts.manage_user grant USER_ID ROLE
  python -m app.scripts.manage_user revoke USER_ID ROLE
  python -m app.scripts.manage_user block USER_ID
  python -m app.scripts.manage_user delete USER_ID
ROLE is one of: Buyer, Artisan, Support, Administrator.
"""
import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.models import RoleName
from app.services import users as user_service
from app.services.users import UserServiceError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

ROLE_CHOICES = [role.label for role in RoleName]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage Mexy users (roles and blocking have no HTTP API).")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Register a user with the default role")
    create.add_argument("username")
    create.add_argument("email")
    create.add_argument("password")

    show = sub.add_parser("show", help="Print a user")
    show.add_argument("user_id", type=int)

    for name, help_text in (("grant", "Grant a role"), ("revoke", "Revoke a role")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("user_id", type=int)
        p.add_argument("role", choices=ROLE_CHOICES)

    block = sub.add_parser("block", help="Block a user (cannot be undone)")
    block.add_argument("user_id", type=int)

    delete = sub.add_parser("delete", help="Delete a user and its roles")
    delete.add_argument("user_id", type=int)
    return parser


def run(args: argparse.Namespace, db) -> str:
    """Execute one command against db; returns the line to print."""
    if args.command == "create":
        user = user_service.create_user(db, args.username, args.email, args.password, get_settings())
    elif args.command == "show":
        user = user_service.get_user(db, args.user_id)
    elif args.command == "grant":
        user = user_service.add_role(db, args.user_id, RoleName.from_label(args.role))
    elif args.command == "revoke":
        user = user_service.remove_role(db, args.user_id, RoleName.from_label(args.role))
    elif args.command == "block":
        user = user_service.block_user(db, args.user_id)
    else:
        user_service.delete_user(db, args.user_id)
        return f"Deleted user {args.user_id}."
    return user.model_dump_json()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    db = SessionLocal()
    try:
        print(run(args, db))
        return 0
    except UserServiceError as e:
        print(e.message, file=sys.stderr)
        return 1
    except SQLAlchemyError as e:
        # Store errors the service layer did not classify.
        logger.exception("Database error", extra={"command": args.command, "error_type": type(e).__name__})
        print("Database error; see the log for details.", file=sys.stderr)
        return 2
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
