from datetime import datetime
from enum import Enum

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from app.extensions import db, login_manager
from app.utils.helpers import utcnow, iso, as_aware


class Role(str, Enum):
    ADMIN = "admin"
    DEVELOPER = "developer"
    USER = "user"


# Keep simple text+CHECK for evolvable roles (no DB enum migration pain)
ROLE_CHOICES = tuple(r.value for r in Role)


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    image = db.Column(db.String(512), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(20), nullable=False, default=Role.USER.value, server_default=Role.USER.value)

    banned = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    ban_reason = db.Column(db.String(255), nullable=True)
    ban_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "role IN ('admin','developer','user')",
            name="ck_users_role_valid",
        ),
    )

    # helpers
    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def get_id(self) -> str:
        return str(self.id)

    def is_banned(self, now: datetime | None = None) -> bool:
        """A ban without an expiry is permanent; an expired ban no longer applies."""
        if not self.banned:
            return False
        if self.ban_expires_at is None:
            return True
        return as_aware(self.ban_expires_at) > (now or utcnow())

    @property
    def is_active(self) -> bool:
        return not self.is_banned()

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "image": self.image}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "image": self.image,
            "role": self.role,
            "banned": bool(self.banned),
            "ban_reason": self.ban_reason,
            "ban_expires_at": iso(self.ban_expires_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


@login_manager.user_loader
def load_user(user_id: str):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None
