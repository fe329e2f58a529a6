"""WhatsApp message log."""

from sqlalchemy import Column, String, DateTime, Text, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from schoolops.models.base import Base, generate_cuid, utcnow


class WhatsAppMessage(Base):
    """
    Inbound and outbound WhatsApp messages exchanged through Twilio.

    Content is stored as received; inbound messages link to the activity
    they produced once processed.
    """

    __tablename__ = "whatsapp_messages"

    id = Column(String(25), primary_key=True, default=generate_cuid)

    wa_id = Column(String(64), nullable=True, unique=True)  # Twilio MessageSid
    from_number = Column(String(20), nullable=False)
    to_number = Column(String(20), nullable=True)
    message_type = Column(String(20), default="text", nullable=False)
    content = Column(Text, nullable=False)
    profile_name = Column(String(100), nullable=True)

    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    direction = Column(String(10), nullable=False)  # inbound, outbound
    status = Column(String(20), default="received", nullable=False)
    processed = Column(Boolean, default=False, nullable=False)

    related_activity_id = Column(
        String(25),
        ForeignKey("activities.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        Index("idx_whatsapp_messages_timestamp", "timestamp"),
    )

    related_activity = relationship("Activity")

    def __repr__(self) -> str:
        return f"<WhatsAppMessage(id={self.id}, direction={self.direction})>"
