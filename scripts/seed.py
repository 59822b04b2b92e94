from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

from sqlmodel import Session, select

# --- make project root importable even if CWD is different ---
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from matchmaker.core.db import engine, init_db  # noqa: E402
from matchmaker.core.security import hash_password  # noqa: E402
from matchmaker.models.user import User  # noqa: E402

DEMO_USERS = (
    ("alice@example.com", "Alice"),
    ("bob@example.com", "Bob"),
    ("carol@example.com", "Carol"),
)
DEMO_PASSWORD = "SeedPass123!"


def run() -> None:
    env_file = os.environ.get("ENV_FILE", "matchmaker/.env")
    print(f"[seed] ENV_FILE={env_file}")

    init_db()
    created_users = 0
    expires_at = datetime.utcnow() + timedelta(days=365)

    with Session(engine) as session:
        for email, name in DEMO_USERS:
            user = session.exec(select(User).where(User.email == email)).first()
            if user:
                print(f"[seed] user already exists: {email}")
                continue
            session.add(
                User(
                    email=email,
                    name=name,
                    password_hash=hash_password(DEMO_PASSWORD),
                    subscription_expires_at=expires_at,
                )
            )
            created_users += 1
            print(f"[seed] created user: {email}")
        session.commit()

    print(f"[seed] done. users_created={created_users}")


if __name__ == "__main__":
    run()
