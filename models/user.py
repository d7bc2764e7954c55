from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from models.base_model import Base, BaseModel

USERNAME_MAX_LENGTH = 30


class User(BaseModel, Base):
    __tablename__ = "users"

    # immutable natural key; refresh tokens reference it
    username = Column(String(USERNAME_MAX_LENGTH), primary_key=True)
    password_hash = Column(String(255), nullable=False)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<User username={self.username}>"
