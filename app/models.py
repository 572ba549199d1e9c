import re
import uuid

from sqlalchemy import JSON, Column, DateTime, String, Uuid
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from .db import Base
from .errors import InvalidAccountIdentifier, TooManyUsernamesForPlatform
from .sources import Source

MAX_USERNAMES_PER_PLATFORM = 3

EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")

# platform -> Account attribute holding its usernames
PLATFORM_COLUMNS = {
    Source.CHESS_COM: "chess_usernames",
    Source.LICHESS: "lichess_usernames",
}


def normalize_email(raw) -> str:
    email = raw.strip().lower() if isinstance(raw, str) else ""
    if not email or not EMAIL_PATTERN.fullmatch(email):
        raise InvalidAccountIdentifier(f"Invalid account email: {raw!r}")
    return email


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    chess_usernames = Column(JSON, nullable=False, default=lambda: [])
    lichess_usernames = Column(JSON, nullable=False, default=lambda: [])
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @validates("email")
    def _normalize_email(self, key, value):
        return normalize_email(value)

    @validates("chess_usernames", "lichess_usernames")
    def _cap_usernames(self, key, value):
        usernames = list(value or [])
        if len(usernames) > MAX_USERNAMES_PER_PLATFORM:
            platform = (
                Source.CHESS_COM if key == "chess_usernames" else Source.LICHESS
            )
            raise TooManyUsernamesForPlatform(
                platform.value, MAX_USERNAMES_PER_PLATFORM
            )
        return usernames

    def usernames_for(self, platform: Source) -> list:
        return list(getattr(self, PLATFORM_COLUMNS[platform]) or [])
