import os

from medly.db.init_db import create_tables, reset_store
from medly.db.session import SessionLocal, engine
from medly.store import SqlEntityStore


def main() -> None:
    if os.getenv("ENV", "development").lower() == "production" and os.getenv("MEDLY_ALLOW_RESET") != "1":
        raise SystemExit("Reset em producao exige MEDLY_ALLOW_RESET=1.")

    create_tables(engine)
    db = SessionLocal()
    try:
        seeded = reset_store(SqlEntityStore(db))
        print(f"Base recriada: {seeded}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
