from datetime import datetime
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, Field

from .crud import remaining_slots
from .models import PLATFORM_COLUMNS
from .sources import Source

Username = Annotated[
    str, Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")
]


class AccountCreate(BaseModel):
    email: str
    chess_usernames: List[Username] = Field(default_factory=list)
    lichess_usernames: List[Username] = Field(default_factory=list)


class UsernameAdd(BaseModel):
    platform: Source
    username: Username


class UsernameKeystroke(BaseModel):
    username: str = ""


class AccountResponse(BaseModel):
    id: str
    email: str
    chess_usernames: List[str]
    lichess_usernames: List[str]
    remaining: Dict[str, int] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_account(cls, account) -> "AccountResponse":
        return cls(
            id=str(account.id),
            email=account.email,
            chess_usernames=list(account.chess_usernames or []),
            lichess_usernames=list(account.lichess_usernames or []),
            remaining={
                platform.value: remaining_slots(account, platform)
                for platform in PLATFORM_COLUMNS
            },
            created_at=account.created_at,
            updated_at=account.updated_at,
        )
