from enum import Enum


class FormError(Enum):
    """Inline form errors; rendered next to the field, never raised."""

    EMPTY_USERNAME = "Username is required"
    TOO_SHORT = "Username must be at least 3 characters long"
    INVALID_CHARACTERS = (
        "Username can only contain letters, numbers, underscores, or hyphens"
    )
    GAME_RECORD_REQUIRED = "PGN is required"
    SUBMISSION_FAILED = "Failed to submit username. Try again."

    @property
    def message(self) -> str:
        return self.value


class RegistryError(Exception):
    """Base class for everything raised outside the form."""


class ConfigurationMissing(RegistryError):
    pass


class ConnectionFailed(RegistryError):
    pass


class AccountStoreError(RegistryError):
    pass


class InvalidAccountIdentifier(AccountStoreError):
    pass


class AccountNotFound(AccountStoreError):
    pass


class DuplicateAccount(AccountStoreError):
    pass


class UnsupportedPlatform(AccountStoreError):
    pass


class TooManyUsernamesForPlatform(AccountStoreError):
    def __init__(self, platform: str, limit: int):
        super().__init__(f"You can only have up to {limit} {platform} usernames.")
        self.platform = platform
        self.limit = limit
