"""Email and experiment variant models."""
from enum import Enum as PyEnum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Text, JSON, ForeignKey, Index, UniqueConstraint
from emailflow.db.base import Base


class EmailType(str, PyEnum):
    """Email type."""
    TEMPLATE = "template"
    PRIORITY = "priority"
    EXPERIMENT = "experiment"


VARIANT_LETTERS = ("A", "B", "C", "D", "E")


class Email(Base):
    """Email model - a template, a scheduled priority broadcast, or an experiment."""

    __tablename__ = "emails"

    email_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.user_id'), nullable=True)
    type = Column(Enum(EmailType), nullable=False)
    name = Column(String(255), nullable=True)
    subject = Column(String(500), nullable=True)
    body_html = Column(Text, nullable=True)
    body_text = Column(Text, nullable=True)
    key_angle = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    version = Column(Integer, default=1, nullable=False)

    # Experiment only
    base_email_id = Column(Integer, ForeignKey('emails.email_id'), nullable=True)

    # Priority only; a missing bound is unbounded
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index('idx_email_type', 'type'),
        Index('idx_email_active', 'is_active'),
    )

    def has_content(self) -> bool:
        return bool(self.subject) and bool(self.body_html)

    def __repr__(self) -> str:
        return f"<Email(email_id={self.email_id}, type='{self.type}', name='{self.name}')>"


class ExperimentVariant(Base):
    """Experiment variant - one lettered content alternative of an experiment email."""

    __tablename__ = "experiment_variants"

    variant_id = Column(Integer, primary_key=True, autoincrement=True)
    email_id = Column(Integer, ForeignKey('emails.email_id', ondelete='CASCADE'), nullable=False, index=True)
    variant_letter = Column(String(1), nullable=False)
    subject = Column(String(500), nullable=True)
    body_html = Column(Text, nullable=True)
    body_text = Column(Text, nullable=True)
    key_angle = Column(Text, nullable=True)
    ai_parameters = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint('email_id', 'variant_letter', name='uq_variant_email_letter'),
    )

    def __repr__(self) -> str:
        return f"<ExperimentVariant(variant_id={self.variant_id}, email_id={self.email_id}, letter='{self.variant_letter}')>"
