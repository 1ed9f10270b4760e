from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from ..schemas import MyBase

###############################################################################
# schemas:
#
# Use to define all database related entities only(NEVER add any business logic).
#
###############################################################################


class UserProfile(MyBase, table=True):
    """
    Local profile kept in sync with the identity provider's users.
    One row per email, created on first sign-in or callback.
    """

    __tablename__ = "USER_PROFILE"
    __table_args__ = (UniqueConstraint("C_EMAIL", name="uk_user_profile_email"),)

    id: int | None = Field(default=None, primary_key=True, description="Primary key")
    email: str = Field(max_length=256, sa_column_kwargs={"name": "C_EMAIL"}, description="User email")
    username: str = Field(max_length=128, sa_column_kwargs={"name": "C_USERNAME"}, description="Display username")
