"""LLM provider configuration and encrypted API key models."""

from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from schoolops.models.base import BaseModel, generate_cuid

SUPPORTED_PROVIDERS = ("claude", "gemini", "deepseek", "kimi")


class ApiKey(BaseModel):
    """
    Provider API key.

    Encrypted fields: encrypted_key (Fernet)
    """

    __tablename__ = "api_keys"

    key_id = Column(String(25), primary_key=True, default=generate_cuid)

    provider = Column(String(50), nullable=False)
    encrypted_key = Column(Text, nullable=False)  # Encrypted
    description = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<ApiKey(key_id={self.key_id}, provider={self.provider})>"


class LLMConfiguration(BaseModel):
    """
    A named provider/model configuration selectable from the dashboard.

    At most one row has is_default set; endpoints clear the flag on the others.
    """

    __tablename__ = "llm_configurations"

    id = Column(String(25), primary_key=True, default=generate_cuid)

    provider = Column(String(50), nullable=False)
    name = Column(String(100), nullable=False)
    model = Column(String(100), nullable=True)
    base_url = Column(String(500), nullable=True)

    api_key_id = Column(
        String(25),
        ForeignKey("api_keys.key_id", ondelete="SET NULL"),
        nullable=True,
    )

    # Status
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    # Provider-specific options (JSON)
    configuration = Column(Text, nullable=True)

    api_key = relationship("ApiKey")

    def __repr__(self) -> str:
        return f"<LLMConfiguration(id={self.id}, provider={self.provider})>"
