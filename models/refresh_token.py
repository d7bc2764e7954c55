"""
RefreshToken model: one row per issued refresh token.
Fields:
- id (String(36) UUID, primary key)
- username - FK to users.username
- token_hash - Argon2 hash of the raw token; the raw token is never stored
- expires_at
- revoked (bool) - flipped on rotation or logout, rows are never deleted
- created_at, updated_at
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from models.base_model import Base, BaseModel, _uuid_str


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    username = Column(
        String(30),
        ForeignKey("users.username", ondelete="CASCADE"),
        nullable=False,
    )
    token_hash = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_username_revoked", "username", "revoked"),
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()
        if getattr(self, "revoked", None) is None:
            self.revoked = False

    def __repr__(self):
        return f"<RefreshToken id={self.id} username={self.username} revoked={self.revoked}>"
