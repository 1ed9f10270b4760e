from datetime import datetime

from sqlalchemy import text
from sqlmodel import Field, SQLModel

###############################################################################
# schemas:
#
# Use to define all database related entities only(NEVER add any business logic).
#
###############################################################################


class MyBase(SQLModel):
    """
    Base class for all tables: soft-delete flag plus audit timestamps.

    ## Basic usage
    class Book(MyBase, table=True):
        id: int = Field(primary_key=True)
        title: str

    book = Book(title="Dune")
    print(book.is_active)  # True
    """

    in_used: int = Field(
        default=1,
        sa_column_kwargs={
            "name": "N_IN_USED",
            "server_default": "1",
        },
        description="1=active, 0=soft deleted",
    )
    created_at: datetime | None = Field(
        default=None,
        sa_column_kwargs={
            "name": "D_CREATED_AT",
            "server_default": text("CURRENT_TIMESTAMP"),
        },
        description="Creation timestamp",
    )
    updated_at: datetime | None = Field(
        default=None,
        sa_column_kwargs={
            "name": "D_UPDATED_AT",
            "server_default": text("CURRENT_TIMESTAMP"),
        },
        description="Last update timestamp",
    )
    deleted_at: datetime | None = Field(
        default=None,
        sa_column_kwargs={
            "name": "D_DELETED_AT",
        },
        description="Soft deleting timestamp",
    )

    @property
    def is_active(self) -> bool:
        """Check if record is active (in_used=1)."""
        return self.in_used == 1
