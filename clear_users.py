from typing import Optional

from sqlalchemy import delete

from config import DATABASE_URL
from database import create_db_engine, create_session_factory
from models import User


def main(database_url: Optional[str] = None) -> int:
    """
    Delete all rows from the `users` table.

    This is a one-off maintenance script intended for local/dev use to
    clear all registered users from the database.
    """
    engine = create_db_engine(database_url or DATABASE_URL)
    db = create_session_factory(engine)()
    try:
        deleted = db.execute(delete(User)).rowcount
        db.commit()
        print(f"Deleted {deleted} users from the database.")
        return deleted
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    main()
