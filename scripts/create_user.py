"""Create a user in the document store.

Usage:
  python scripts/create_user.py --name alice --email alice@example.com --password '...' --role User

Admins can only be created here (or by the first-run bootstrap); /register
always creates regular users.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from storefront.auth.crud import create_user
from storefront.config import load_config
from storefront.db import connect, init_db
from storefront.models import Role


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--name", required=True)
    ap.add_argument("--email", default="")
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=[r.value for r in Role], default=Role.USER.value)
    args = ap.parse_args()

    cfg = load_config()
    with connect(cfg.MONGO_URI, cfg.MONGO_DB_NAME) as db:
        init_db(db)
        u = create_user(db, name=args.name, email=args.email, password=args.password, role=Role(args.role))

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
