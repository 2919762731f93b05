"""Permission service - read/write access to the shared media store.

Holds the process-wide permission snapshot. The snapshot is replaced as a
whole whenever the permission prompt completes; readers never see a
half-updated state.
"""
import logging
import threading
from dataclasses import dataclass
from typing import List, Mapping, Union

from ...infrastructure.storage import CapabilityTier

logger = logging.getLogger(__name__)

READ_EXTERNAL_STORAGE = "android.permission.READ_EXTERNAL_STORAGE"
WRITE_EXTERNAL_STORAGE = "android.permission.WRITE_EXTERNAL_STORAGE"


@dataclass(frozen=True)
class PermissionState:
    """Snapshot of shared-store access."""
    can_read: bool = False
    can_write: bool = False


class PermissionService:
    """Service for shared-store permission state.

    Responsibilities:
    - Apply the implicit write grant on scoped-storage tiers
    - Merge permission prompt results into a new snapshot
    - Report which permissions still need to be requested
    """

    def __init__(self, tier: Union[str, CapabilityTier] = CapabilityTier.MODERN):
        self.tier = CapabilityTier.parse(tier)
        self._state = PermissionState(can_write=self.implicit_write)
        self._lock = threading.Lock()

    @property
    def implicit_write(self) -> bool:
        """Scoped and modern tiers let apps write to the shared store without a grant."""
        return self.tier is not CapabilityTier.LEGACY

    @property
    def state(self) -> PermissionState:
        return self._state

    def refresh(self, read_granted: bool, write_granted: bool) -> PermissionState:
        """Replace the snapshot from the platform's current grants.

        Args:
            read_granted: READ_EXTERNAL_STORAGE is granted
            write_granted: WRITE_EXTERNAL_STORAGE is granted

        Returns:
            The new snapshot
        """
        state = PermissionState(
            can_read=bool(read_granted),
            can_write=bool(write_granted) or self.implicit_write,
        )
        self._swap(state)
        return state

    def on_permission_result(self, results: Mapping[str, bool]) -> PermissionState:
        """Apply the outcome of a permission prompt.

        Permissions missing from results keep their previous value.
        """
        current = self._state
        return self.refresh(
            results.get(READ_EXTERNAL_STORAGE, current.can_read),
            results.get(WRITE_EXTERNAL_STORAGE, current.can_write),
        )

    def permissions_to_request(self) -> List[str]:
        """Permissions the UI should prompt for, given the current snapshot."""
        state = self._state
        missing = []
        if not state.can_write:
            missing.append(WRITE_EXTERNAL_STORAGE)
        if not state.can_read:
            missing.append(READ_EXTERNAL_STORAGE)
        return missing

    def _swap(self, state: PermissionState) -> None:
        with self._lock:
            previous, self._state = self._state, state
        if previous != state:
            logger.info(
                "Permission state changed: read=%s write=%s", state.can_read, state.can_write
            )
