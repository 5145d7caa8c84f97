from dataclasses import dataclass


@dataclass
class PresenceEntry:
    connection_id: str
    user_type: str
    user_id: str

    def to_wire(self) -> dict:
        return {
            "connectionId": self.connection_id,
            "userType": self.user_type,
            "userId": self.user_id,
        }


class PresenceRegistry:
    """Connections that have joined, keyed by connection id.

    Lives in process memory only and must be mutated from the event loop
    that owns it.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PresenceEntry] = {}

    def join(self, connection_id: str, user_type: str, user_id: str) -> PresenceEntry:
        entry = PresenceEntry(connection_id, user_type, user_id)
        self._entries[connection_id] = entry
        return entry

    def leave(self, connection_id: str) -> PresenceEntry | None:
        return self._entries.pop(connection_id, None)

    def get(self, connection_id: str) -> PresenceEntry | None:
        return self._entries.get(connection_id)

    def entries(self) -> list[PresenceEntry]:
        return list(self._entries.values())

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
