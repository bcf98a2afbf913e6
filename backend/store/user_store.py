"""
User persistence for the auth collaborator.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from models.user import User
from sqlite_db import SQLiteDatabase, new_id


def _to_user(row: Dict[str, Any]) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        password_hash=row["password_hash"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class UserStore:
    """Lookup and creation of user accounts."""

    def __init__(self, db: SQLiteDatabase):
        self._db = db

    async def create_user(self, email: str, name: str, password_hash: str) -> User:
        user = User(
            id=new_id(),
            email=email,
            name=name,
            password_hash=password_hash,
            created_at=datetime.now(timezone.utc),
        )
        await self._db.insert("users", {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "password_hash": user.password_hash,
            "created_at": user.created_at.isoformat(),
        })
        return user

    async def get_by_id(self, user_id: str) -> Optional[User]:
        row = await self._db.fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))
        return _to_user(row) if row else None

    async def get_by_email(self, email: str) -> Optional[User]:
        row = await self._db.fetch_one("SELECT * FROM users WHERE email = ?", (email,))
        return _to_user(row) if row else None
