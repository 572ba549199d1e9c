import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import (
    AccountNotFound,
    DuplicateAccount,
    UnsupportedPlatform,
    TooManyUsernamesForPlatform,
)
from .models import (
    MAX_USERNAMES_PER_PLATFORM,
    PLATFORM_COLUMNS,
    Account,
    normalize_email,
)
from .sources import Source

logger = logging.getLogger(__name__)


def get_account(db: Session, email: str) -> Optional[Account]:
    email = normalize_email(email)
    return db.query(Account).filter(Account.email == email).first()


def remaining_slots(account: Account, platform: Source) -> int:
    return max(0, MAX_USERNAMES_PER_PLATFORM - len(account.usernames_for(platform)))


def create_account(
    db: Session,
    email: str,
    chess_usernames: Iterable[str] = (),
    lichess_usernames: Iterable[str] = (),
) -> Account:
    email = normalize_email(email)
    # oversized lists are rejected by the model before anything is added
    account = Account(
        id=uuid.uuid4(),
        email=email,
        chess_usernames=[u.strip() for u in chess_usernames],
        lichess_usernames=[u.strip() for u in lichess_usernames],
    )

    db.add(account)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateAccount(f"Account {email} already exists") from exc

    db.refresh(account)
    logger.info("Created account %s", account.email)
    return account


def add_username(db: Session, email: str, platform: Source, username: str) -> Account:
    email = normalize_email(email)
    column = PLATFORM_COLUMNS.get(platform)
    if column is None:
        raise UnsupportedPlatform(f"{platform} usernames are not stored")

    account = get_account(db, email)
    if account is None:
        raise AccountNotFound(f"No account for {email}")

    current = account.usernames_for(platform)
    if len(current) >= MAX_USERNAMES_PER_PLATFORM:
        raise TooManyUsernamesForPlatform(platform.value, MAX_USERNAMES_PER_PLATFORM)

    setattr(account, column, current + [username.strip()])
    db.commit()
    db.refresh(account)
    logger.info("Added %s username %s to %s", platform.value, username, email)
    return account
