import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from storefront.auth.crud import bootstrap_admin_if_needed
from storefront.config import load_config
from storefront.db import connect, init_db


def main() -> None:
    cfg = load_config()
    with connect(cfg.MONGO_URI, cfg.MONGO_DB_NAME) as db:
        init_db(db)
        boot = bootstrap_admin_if_needed(db, cfg)

    if boot:
        print(f"Bootstrapped admin user: {boot.get('name')}")
    print(f"DB initialized: {cfg.MONGO_DB_NAME}")


if __name__ == "__main__":
    main()
