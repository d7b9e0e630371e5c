"""Shared ceremony state and the merge-safe transforms applied to it.

Writes to the remote document are a non-atomic read-modify-write, so every
transform passed to ``SyncClient.mutate`` must combine the loaded value with
the new intent (set union, logical OR) rather than replace it. Union and OR are
commutative and idempotent, which keeps concurrent check-ins from different
sessions from clobbering each other. A future field that is not naturally
mergeable (a counter, a free-text value) would reintroduce lost updates.

Merging only protects entries the writer actually loaded. A session with no
cached snapshot whose read fails starts from ``default_state``; a write that
then succeeds replaces the remote guest list with just its own additions.
``SyncClient`` logs a warning when it writes on top of the default state.
"""

import json
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable

Transform = Callable[["SharedState"], "SharedState"]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RevealConfig:
    """Provisioned ceremony settings, read-only for clients."""

    reveal_name: str = ""
    required_reveals: int = 0
    admin_passcode: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "revealName": self.reveal_name,
            "requiredReveals": self.required_reveals,
            "adminPasscode": self.admin_passcode,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RevealConfig":
        try:
            required = int(data.get("requiredReveals", 0))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid requiredReveals: {e}") from e
        if required < 0:
            raise ValueError(f"requiredReveals must be >= 0, got {required}")
        return cls(
            reveal_name=str(data.get("revealName", "")),
            required_reveals=required,
            admin_passcode=str(data.get("adminPasscode", "")),
        )


@dataclass(frozen=True)
class SharedState:
    """The single shared document every session reads and writes."""

    is_name_revealed: bool = False
    authenticated_guests: frozenset[str] = field(default_factory=frozenset)
    config: RevealConfig = field(default_factory=RevealConfig)
    last_updated: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire format."""
        return {
            "isNameRevealed": self.is_name_revealed,
            "authenticatedGuests": sorted(self.authenticated_guests),
            "config": self.config.to_dict(),
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SharedState":
        """Parse the wire format.

        Raises:
            ValueError: If a field has the wrong shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        guests = data.get("authenticatedGuests", [])
        if not isinstance(guests, list):
            raise ValueError("authenticatedGuests must be a list")

        config_data = data.get("config") or {}
        if not isinstance(config_data, dict):
            raise ValueError("config must be an object")

        try:
            last_updated = int(data.get("lastUpdated", 0))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid lastUpdated: {e}") from e

        return cls(
            is_name_revealed=bool(data.get("isNameRevealed", False)),
            authenticated_guests=frozenset(str(g) for g in guests),
            config=RevealConfig.from_dict(config_data),
            last_updated=last_updated,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "SharedState":
        """Parse a serialized document.

        Raises:
            ValueError: If the text is not valid JSON or not a SharedState.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid state JSON: {e}") from e
        return cls.from_dict(data)


def default_state(config: RevealConfig | None = None) -> SharedState:
    """State returned when neither the remote store nor the cache has a value."""
    return SharedState(
        is_name_revealed=False,
        authenticated_guests=frozenset(),
        config=config or RevealConfig(),
        last_updated=now_ms(),
    )


def merge_states(base: SharedState, other: SharedState) -> SharedState:
    """Join two states field by field: guest union, reveal OR.

    Config and version come from ``base``.
    """
    return replace(
        base,
        is_name_revealed=base.is_name_revealed or other.is_name_revealed,
        authenticated_guests=base.authenticated_guests | other.authenticated_guests,
    )


def add_guest(guest_id: str) -> Transform:
    """Transform that checks a guest in by set union with the loaded value."""

    def apply(state: SharedState) -> SharedState:
        return replace(
            state,
            authenticated_guests=state.authenticated_guests | {guest_id},
        )

    return apply


def reveal_name() -> Transform:
    """Transform that reveals the name by logical OR with the loaded value."""

    def apply(state: SharedState) -> SharedState:
        # Terminal flag: only ever moves false -> true.
        return replace(state, is_name_revealed=True)

    return apply
