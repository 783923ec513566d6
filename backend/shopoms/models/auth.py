from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ROLES = ("admin", "cashier")


class User(db.Model):
    """
    Staff accounts for login.

    Usernames are stored trimmed and lowercased so lookups are
    case-insensitive without a functional index.

    Rows are created by the `flask users create` seeding command only;
    nothing at runtime mutates them.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("role IN ('admin', 'cashier')", name="ck_users_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    display_name = db.Column(db.String(120), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default="cashier")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @staticmethod
    def normalize_username(username: str) -> str:
        return username.strip().lower()

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.display_name,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
        }
