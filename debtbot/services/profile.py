"""
Profile Lookup

Used once per party, on first contact, to pick a default display name.
The messaging platform's profile API sits behind this interface; the
static implementation serves tests and the local chat console.
"""

from abc import ABC, abstractmethod
from typing import Optional


class ProfileLookup(ABC):
    """Source of a party's given name."""

    @abstractmethod
    async def given_name(self, party_id: str) -> Optional[str]:
        """
        Return the party's given name, or None if unknown.

        Implementations must not raise for unknown parties.
        """
        pass


class StaticProfileLookup(ProfileLookup):
    """Profile lookup backed by a fixed mapping."""

    def __init__(self, names: Optional[dict[str, str]] = None):
        self._names = dict(names or {})

    def register(self, party_id: str, name: str) -> None:
        self._names[party_id] = name

    async def given_name(self, party_id: str) -> Optional[str]:
        return self._names.get(party_id)
