"""
Holder of the current entitlement snapshot.

Readers take the current reference without locking; rebinding an attribute is
atomic, so a reader sees either the old snapshot or the new one and never a
mix.  The writer lock only serializes the compare-and-swap in replace() and
the version counter, and is never held across I/O.
"""

import threading

from licensekeeper.licensing.errors import StaleReplaceRejected
from licensekeeper.licensing.snapshot import EntitlementSnapshot


class EntitlementStore:
    """Single-writer, many-reader container for EntitlementSnapshot."""

    def __init__(self, initial: EntitlementSnapshot = None):
        self._snapshot = initial or EntitlementSnapshot.unloaded()
        self._write_lock = threading.Lock()
        self._next_ticket = self._snapshot.version + 1

    def read(self) -> EntitlementSnapshot:
        """Return the latest snapshot."""
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def next_version(self) -> int:
        """
        Reserve a version number for an attempt that is about to start.
        Attempts started later always receive higher numbers.
        """
        with self._write_lock:
            ticket = self._next_ticket
            self._next_ticket += 1
            return ticket

    def replace(self, new_snapshot: EntitlementSnapshot, strict: bool = False) -> bool:
        """
        Install new_snapshot if it is newer than the stored one.

        Returns True when installed and False when discarded.  With strict=True
        a discarded snapshot raises StaleReplaceRejected instead.
        """
        with self._write_lock:
            current = self._snapshot
            if new_snapshot.version <= current.version:
                if strict:
                    raise StaleReplaceRejected(current.version, new_snapshot.version)
                return False
            self._snapshot = new_snapshot
            # Keep tickets ahead of snapshots numbered outside next_version()
            self._next_ticket = max(self._next_ticket, new_snapshot.version + 1)
            return True
