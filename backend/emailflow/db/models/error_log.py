"""Error log model for failures recorded during batch jobs and integrations."""
from sqlalchemy import Column, Integer, String, Text, JSON, Index
from emailflow.db.base import Base


class ErrorLog(Base):
    """Error log - message, stack and structured context of a recorded failure."""

    __tablename__ = "error_logs"

    error_id = Column(Integer, primary_key=True, autoincrement=True)
    context = Column(String(255), nullable=False)
    error_message = Column(Text, nullable=False)
    stack_trace = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)

    __table_args__ = (
        Index('idx_error_context', 'context'),
        Index('idx_error_created_at', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<ErrorLog(error_id={self.error_id}, context='{self.context}')>"
