from ..exceptions import DBError
from ..logger import get_logger
from .exceptions import ProfileWriteError
from .models import Identity, ReconcileOutcome
from .repositories import ProfileRepository

logger = get_logger(__name__)


class ProfileReconciler:
    """Makes sure every authenticated identity has exactly one local profile."""

    def __init__(self, repository: ProfileRepository | None = None) -> None:
        self._repository = repository or ProfileRepository()

    async def ensure_profile(self, identity: Identity) -> ReconcileOutcome:
        """
        Create the profile for ``identity`` if it does not exist yet.

        An existing profile is left untouched and reported as ``created=False``.

        Raises:
            ProfileWriteError: If the identity has no email or the write fails
        """
        email = (identity.email or "").strip().lower()
        if not email:
            raise ProfileWriteError(f"Identity {identity.id} has no email, cannot reconcile profile")

        try:
            created = await self._repository.insert_if_absent(email, identity.display_name)
        except DBError as e:
            raise ProfileWriteError(f"Failed to write profile for {email}: {e.message}") from e

        logger.debug(f"Profile reconciled for {email}", created=created)
        return ReconcileOutcome(email=email, created=created)
