"""Tests for the event type constants."""

import pytest

from save_tray.core.events import Events, get_all_event_types, is_valid_event_type


class TestEventTypes:
    @pytest.mark.unit
    def test_all_event_types_use_domain_action_format(self):
        for event_type in get_all_event_types():
            domain, _, action = event_type.partition(":")
            assert domain and action, event_type

    @pytest.mark.unit
    def test_event_types_are_sorted_and_unique(self):
        event_types = get_all_event_types()

        assert event_types == sorted(set(event_types))
        assert len(event_types) == 8

    @pytest.mark.unit
    def test_is_valid_event_type(self):
        assert is_valid_event_type(Events.CHECK_RESOLVED)
        assert is_valid_event_type("tray:clear_requested")
        assert not is_valid_event_type("tray:explode")
