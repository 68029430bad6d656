"""Contact model, mirrored from the CRM by the contact sync job."""
from sqlalchemy import Column, Integer, String, JSON, Index
from emailflow.db.base import Base


class Contact(Base):
    """Contact model - audience member addressable through the CRM.

    `ghl_id` stays NULL until the contact has been synced; such contacts
    cannot receive email through the messaging API.
    """

    __tablename__ = "contacts"

    contact_id = Column(Integer, primary_key=True, autoincrement=True)
    ghl_id = Column(String(100), unique=True, nullable=True)
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    custom_fields = Column(JSON, nullable=False, default=dict)
    last_email_sequence = Column(Integer, default=0, nullable=False)
    contact_source = Column(String(50), nullable=True)  # ghl_sync, manual

    __table_args__ = (
        Index('idx_contact_ghl_id', 'ghl_id'),
    )

    def has_tag(self, tag: str) -> bool:
        return tag in (self.tags or [])

    def __repr__(self) -> str:
        return f"<Contact(contact_id={self.contact_id}, ghl_id='{self.ghl_id}', email='{self.email}')>"
