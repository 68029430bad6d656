"""User settings model - sender avatar and ideal customer profile."""
from sqlalchemy import Column, Integer, String, Text, ForeignKey
from emailflow.db.base import Base


class UserSettings(Base):
    """Per-user profile used to shape generated email copy."""

    __tablename__ = "user_settings"

    settings_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.user_id'), unique=True, nullable=False)

    # Avatar (sender)
    avatar_name = Column(String(255), nullable=True)
    avatar_role = Column(String(255), nullable=True)
    avatar_company_name = Column(String(255), nullable=True)
    avatar_website = Column(String(500), nullable=True)
    avatar_bio = Column(Text, nullable=True)
    email_signature_html = Column(Text, nullable=True)

    # Ideal customer profile
    icp_description = Column(Text, nullable=True)
    icp_pain_points = Column(Text, nullable=True)
    icp_fears = Column(Text, nullable=True)
    icp_insecurities = Column(Text, nullable=True)
    icp_transformations = Column(Text, nullable=True)
    icp_key_objectives = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<UserSettings(user_id={self.user_id}, avatar_name='{self.avatar_name}')>"
