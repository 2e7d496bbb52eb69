"""Tests for icon resolution."""

from __future__ import annotations

import pytest

from idolyst.ascend.seed import BADGE_SEED_DATA, REWARD_SEED_DATA, validate_catalogue
from idolyst.icons import (
    IconName,
    IconResolutionError,
    notification_icon,
    resolve_icon,
    validate_icons,
)
from idolyst.notifications.service import VALID_TYPES


class TestResolveIcon:
    def test_kebab_case(self) -> None:
        assert resolve_icon("message-circle") is IconName.MESSAGE_CIRCLE

    def test_snake_and_upper_case(self) -> None:
        assert resolve_icon("BADGE_CHECK") is IconName.BADGE_CHECK

    def test_value_is_glyph_name(self) -> None:
        assert resolve_icon("trophy").value == "Trophy"

    @pytest.mark.parametrize("name", ["", "unicorn", "message circle"])
    def test_unknown_raises(self, name: str) -> None:
        with pytest.raises(IconResolutionError) as exc_info:
            resolve_icon(name)
        assert exc_info.value.name == name


def test_validate_icons_stops_on_unknown() -> None:
    with pytest.raises(IconResolutionError):
        validate_icons(["rocket", "nope"])


def test_seed_catalogue_icons_resolve() -> None:
    validate_catalogue()
    assert len(validate_icons(b["icon"] for b in BADGE_SEED_DATA)) == len(BADGE_SEED_DATA)
    assert len(validate_icons(r["icon"] for r in REWARD_SEED_DATA)) == len(REWARD_SEED_DATA)


def test_every_notification_type_has_icon() -> None:
    for type_ in VALID_TYPES:
        assert isinstance(notification_icon(type_), IconName)


def test_unknown_notification_type_raises() -> None:
    with pytest.raises(IconResolutionError):
        notification_icon("carrier_pigeon")
