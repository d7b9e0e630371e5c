"""Ceremony rules: guest check-in passcodes and the reveal gate.

Passcodes only gate the UI flow. They are not a security boundary, anyone
with store access can edit the document directly.
"""

from dataclasses import dataclass

from .config import GuestConfig
from .state import RevealConfig, SharedState


class PasscodeError(ValueError):
    """An entered passcode did not match."""


@dataclass
class RevealProgress:
    checked_in: int
    required: int
    revealed: bool

    @property
    def remaining(self) -> int:
        return max(self.required - self.checked_in, 0)

    @property
    def can_reveal(self) -> bool:
        return not self.revealed and self.checked_in >= self.required

    def describe(self) -> str:
        if self.revealed:
            return "The name has been revealed!"
        if self.can_reveal:
            return "All set! The name can be revealed."
        return f"{self.remaining} more guests needed to reveal the name"


def find_guest(roster: list[GuestConfig], guest_id: str) -> GuestConfig | None:
    for guest in roster:
        if guest.id == guest_id:
            return guest
    return None


def verify_guest(roster: list[GuestConfig], guest_id: str, passcode: str) -> GuestConfig:
    """Check a guest's passcode against the roster.

    Raises:
        KeyError: The guest is not on the roster.
        PasscodeError: The passcode is empty or wrong.
    """
    guest = find_guest(roster, guest_id)
    if guest is None:
        raise KeyError(f"Unknown guest: {guest_id}")
    if not passcode.strip():
        raise PasscodeError("Please enter a passcode")
    if passcode.strip() != guest.passcode:
        raise PasscodeError("Incorrect passcode")
    return guest


def verify_admin(config: RevealConfig, passcode: str) -> None:
    """Raises PasscodeError unless ``passcode`` is the admin passcode."""
    if not passcode.strip():
        raise PasscodeError("Please enter a passcode")
    if not config.admin_passcode or passcode.strip() != config.admin_passcode:
        raise PasscodeError("Incorrect passcode. Please try again.")


def reveal_progress(
    state: SharedState, roster: list[GuestConfig] | None = None
) -> RevealProgress:
    """Count checked-in guests against the required number.

    With a roster, only guests on it count; ids the roster does not know
    (test entries, typos) are ignored.
    """
    if roster:
        known = {g.id for g in roster}
        checked_in = len(state.authenticated_guests & known)
    else:
        checked_in = len(state.authenticated_guests)

    return RevealProgress(
        checked_in=checked_in,
        required=state.config.required_reveals,
        revealed=state.is_name_revealed,
    )


def can_reveal(state: SharedState, roster: list[GuestConfig] | None = None) -> bool:
    return reveal_progress(state, roster).can_reveal
