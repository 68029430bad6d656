"""User model for dashboard authentication."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from emailflow.db.base import Base


class User(Base):
    """Dashboard user. Owns integration connections, settings and emails."""

    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<User(user_id={self.user_id}, email='{self.email}')>"
