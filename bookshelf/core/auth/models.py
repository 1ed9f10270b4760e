from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

###############################################################################
# models:
#
# Use to define all non-database related entities only(NEVER add any business logic).
#
###############################################################################

# metadata keys checked, in order, for a human readable username
_USERNAME_KEYS = ("username", "user_name", "preferred_username", "name")
UNKNOWN_USERNAME = "unknown"


class AuthErrorKind(str, Enum):
    """Stable failure categories that callers branch on."""

    VALIDATION = "validation"
    PROVIDER = "provider"
    DUPLICATE_ACCOUNT = "duplicate_account"
    CODE_EXCHANGE = "code_exchange"
    IDENTITY_FETCH = "identity_fetch"
    PROFILE_WRITE = "profile_write"
    UNEXPECTED = "unexpected"


class CallbackStep(str, Enum):
    """Stages of the OAuth / email-confirmation callback flow."""

    START = "start"
    HAVE_CODE = "have_code"
    EXCHANGE_CODE = "exchange_code"
    FETCH_IDENTITY = "fetch_identity"
    RECONCILE_PROFILE = "reconcile_profile"
    COMPUTE_REDIRECT = "compute_redirect"
    DONE = "done"


class Identity(BaseModel):
    """
    Read-only view of the identity provider's user object.

    Only the fields the auth flows need are kept; the provider's session tokens
    never end up here.
    """

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    identities: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_user(cls, user: Any) -> "Identity":
        """Build an Identity from a supabase_auth ``User`` (or any object with the same attributes)."""
        identities: list[dict[str, Any]] = []
        for item in getattr(user, "identities", None) or []:
            if hasattr(item, "model_dump"):
                identities.append(item.model_dump(mode="json"))
            else:
                identities.append(dict(item))

        return cls(
            id=str(user.id),
            email=getattr(user, "email", None),
            user_metadata=dict(getattr(user, "user_metadata", None) or {}),
            identities=identities,
        )

    @property
    def display_name(self) -> str:
        for key in _USERNAME_KEYS:
            value = self.user_metadata.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return UNKNOWN_USERNAME


class AuthResult(BaseModel):
    """
    Uniform outcome of every auth action.

    ``status`` is display text only. Callers decide on ``error_kind`` (or ``ok``).
    """

    status: str
    user: Identity | None = None
    error_kind: AuthErrorKind | None = None

    @classmethod
    def success(cls, user: Identity | None = None) -> "AuthResult":
        return cls(status="success", user=user)

    @classmethod
    def failure(cls, kind: AuthErrorKind, message: str) -> "AuthResult":
        return cls(status=message, user=None, error_kind=kind)

    @property
    def ok(self) -> bool:
        return self.error_kind is None


class RedirectTo(BaseModel):
    location: str
    status_code: int = 303


class ReconcileOutcome(BaseModel):
    email: str
    created: bool
