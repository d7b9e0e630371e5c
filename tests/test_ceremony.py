"""Tests for passcode checks and the reveal gate."""

import pytest

from namereveal.ceremony import (
    PasscodeError,
    can_reveal,
    find_guest,
    reveal_progress,
    verify_admin,
    verify_guest,
)
from namereveal.config import GuestConfig
from namereveal.state import RevealConfig, SharedState

ROSTER = [
    GuestConfig(id="1", name="Ada", passcode="0420"),
    GuestConfig(id="2", name="Grace", passcode="1337"),
    GuestConfig(id="3", name="Edsger", passcode="2718"),
]


def make_state(*guests: str, required: int = 2, revealed: bool = False) -> SharedState:
    return SharedState(
        is_name_revealed=revealed,
        authenticated_guests=frozenset(guests),
        config=RevealConfig(reveal_name="Juniper", required_reveals=required, admin_passcode="sesame"),
    )


class TestVerifyGuest:

    def test_correct_passcode(self):
        guest = verify_guest(ROSTER, "2", " 1337 ")
        assert guest.name == "Grace"

    def test_wrong_passcode(self):
        with pytest.raises(PasscodeError, match="Incorrect"):
            verify_guest(ROSTER, "2", "0000")

    def test_empty_passcode(self):
        with pytest.raises(PasscodeError, match="enter a passcode"):
            verify_guest(ROSTER, "2", "   ")

    def test_unknown_guest(self):
        with pytest.raises(KeyError):
            verify_guest(ROSTER, "99", "1337")

    def test_find_guest(self):
        assert find_guest(ROSTER, "3").name == "Edsger"
        assert find_guest(ROSTER, "4") is None


class TestVerifyAdmin:

    def test_correct(self):
        verify_admin(RevealConfig(admin_passcode="sesame"), "sesame")

    def test_wrong(self):
        with pytest.raises(PasscodeError):
            verify_admin(RevealConfig(admin_passcode="sesame"), "open")

    def test_unset_admin_passcode_never_matches(self):
        with pytest.raises(PasscodeError):
            verify_admin(RevealConfig(admin_passcode=""), "anything")


class TestRevealProgress:

    def test_not_enough_guests(self):
        progress = reveal_progress(make_state("1"))

        assert progress.checked_in == 1
        assert progress.remaining == 1
        assert progress.can_reveal is False
        assert progress.describe() == "1 more guests needed to reveal the name"

    def test_threshold_reached(self):
        progress = reveal_progress(make_state("1", "2"))

        assert progress.can_reveal is True
        assert progress.remaining == 0
        assert "can be revealed" in progress.describe()

    def test_already_revealed(self):
        progress = reveal_progress(make_state("1", "2", revealed=True))

        assert progress.can_reveal is False
        assert progress.describe() == "The name has been revealed!"

    def test_roster_filters_unknown_ids(self):
        """Test ids that are not on the roster do not count toward the threshold."""
        state = make_state("1", "intruder")

        assert can_reveal(state) is True
        assert can_reveal(state, ROSTER) is False
        assert reveal_progress(state, ROSTER).checked_in == 1

    def test_zero_required(self):
        assert can_reveal(make_state(required=0)) is True
