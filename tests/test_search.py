"""Tests for local filtering, the debounced search controller and selection state."""

import asyncio
import time

import pytest

from skvk_screens.errors import FetchError, OfflineError
from skvk_screens.models import PlaybackIndicator, Place
from skvk_screens.search import (DebouncedSearchController, SelectionSet,
                                 filter_items, playback_indicator,
                                 track_labels)

from fakes import FakeLocations

DELAY = 0.05


class TestFilterItems:
    def test_matches_title_case_insensitively(self, tracks):
        assert filter_items(tracks, "aarti", track_labels) == [tracks[0]]

    def test_matches_subtitle(self, tracks):
        assert filter_items(tracks, "EVEN", track_labels) == [tracks[1]]

    def test_empty_query_returns_everything_in_order(self, tracks):
        assert filter_items(tracks, "", track_labels) == tracks
        assert filter_items(tracks, "   ", track_labels) == tracks

    def test_surrounding_spaces_are_part_of_the_query(self, tracks):
        assert filter_items(tracks, "n ", track_labels) == []
        assert filter_items(tracks, " sangam", track_labels) == [tracks[0]]
        assert filter_items(tracks, "aarti ", track_labels) == [tracks[0]]

    def test_is_idempotent(self, tracks):
        once = filter_items(tracks, "an", track_labels)
        assert filter_items(once, "an", track_labels) == once

    def test_does_not_mutate_source(self, tracks):
        original = list(tracks)
        result = filter_items(tracks, "bhajan", track_labels)
        result.clear()
        assert tracks == original

    def test_empty_query_returns_a_copy(self, tracks):
        assert filter_items(tracks, "", track_labels) is not tracks

    def test_no_match(self, tracks):
        assert filter_items(tracks, "kirtan", track_labels) == []


class TestSelectionSet:
    def test_toggle_flips_membership(self):
        selection = SelectionSet()
        assert selection.toggle("b1") is True
        assert selection.is_selected("b1")
        assert selection.toggle("b1") is False
        assert not selection.is_selected("b1")

    def test_double_toggle_restores_original(self):
        selection = SelectionSet({"a", "b"})
        before = selection.ids
        selection.toggle("a")
        selection.toggle("a")
        selection.toggle("c")
        selection.toggle("c")
        assert selection.ids == before

    def test_container_protocol(self):
        selection = SelectionSet(["x"])
        selection.add("y")
        selection.remove("missing")
        assert "x" in selection
        assert len(selection) == 2
        assert set(selection) == {"x", "y"}


class TestPlaybackIndicator:
    def test_other_rows_are_idle(self):
        assert playback_indicator("t1", "t2", True) is PlaybackIndicator.IDLE
        assert playback_indicator("t1", None, False) is PlaybackIndicator.IDLE

    def test_current_row(self):
        assert playback_indicator("t1", "t1", True) is PlaybackIndicator.CURRENT_PLAYING
        assert playback_indicator("t1", "t1", False) is PlaybackIndicator.CURRENT_PAUSED


def make_controller(locations, **kwargs):
    changes = []
    controller = DebouncedSearchController(
        locations.search, on_change=lambda: changes.append(1), min_length=3, delay=DELAY, **kwargs
    )
    return controller, changes


@pytest.mark.asyncio
async def test_short_queries_never_fetch():
    locations = FakeLocations()
    controller, _ = make_controller(locations)
    for text in ["", "d", "de", "  ", "a  "]:
        controller.on_input(text)
    await asyncio.sleep(DELAY * 3)
    await controller.wait_idle()
    assert locations.queries == []
    assert controller.results == []


@pytest.mark.asyncio
async def test_rapid_input_only_fetches_last_query():
    locations = FakeLocations()
    controller, _ = make_controller(locations)
    for text in ["del", "delh", "delhi"]:
        controller.on_input(text)
        await asyncio.sleep(DELAY / 5)
    await asyncio.sleep(DELAY * 2)
    await controller.wait_idle()
    assert locations.queries == ["delhi"]
    assert controller.fetch_count == 1
    assert controller.results == [Place("delhi city", 1.0, 2.0)]


@pytest.mark.asyncio
async def test_fetch_fires_after_quiet_interval_from_last_keystroke():
    locations = FakeLocations()
    controller, _ = make_controller(locations)
    controller.on_input("de")
    await asyncio.sleep(DELAY / 5)
    started = time.monotonic()
    controller.on_input("del")
    assert controller.has_pending_timer
    await asyncio.sleep(DELAY / 2)
    assert locations.queries == []
    await controller.wait_idle()
    assert locations.queries == ["del"]
    assert time.monotonic() - started >= DELAY * 0.9


@pytest.mark.asyncio
async def test_stale_result_is_discarded():
    locations = FakeLocations(hold=True)
    controller, _ = make_controller(locations)

    controller.on_input("agra")
    await asyncio.sleep(DELAY * 2)
    assert locations.queries == ["agra"]

    controller.on_input("pune")
    await asyncio.sleep(DELAY * 2)
    assert locations.queries == ["agra", "pune"]

    locations.release("pune")
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert controller.results == [Place("pune city", 1.0, 2.0)]

    locations.release("agra")
    await controller.wait_idle()
    assert controller.results == [Place("pune city", 1.0, 2.0)]
    assert controller.query == "pune"


@pytest.mark.asyncio
async def test_reset_during_in_flight_fetch_discards_result():
    locations = FakeLocations(hold=True)
    controller, _ = make_controller(locations)
    controller.on_input("mumbai")
    await asyncio.sleep(DELAY * 2)
    controller.reset()
    locations.release("mumbai")
    await controller.wait_idle()
    assert controller.results == []
    assert controller.query == ""
    assert not controller.is_loading


@pytest.mark.asyncio
async def test_short_input_clears_previous_results():
    locations = FakeLocations()
    controller, changes = make_controller(locations)
    controller.on_input("goa")
    await asyncio.sleep(DELAY * 2)
    await controller.wait_idle()
    assert controller.results
    controller.on_input("go")
    assert controller.results == []
    assert changes


@pytest.mark.asyncio
async def test_failure_sets_generic_error_and_keeps_results():
    locations = FakeLocations()
    controller, _ = make_controller(locations, error_message="Failed to search locations. Please try again.")
    controller.on_input("goa")
    await asyncio.sleep(DELAY * 2)
    await controller.wait_idle()
    previous = controller.results

    locations.error = FetchError("HTTP 500 from nominatim")
    controller.on_input("goal")
    await asyncio.sleep(DELAY * 2)
    await controller.wait_idle()
    assert controller.error == "Failed to search locations. Please try again."
    assert controller.results == previous
    assert not controller.is_loading


@pytest.mark.asyncio
async def test_unexpected_failure_uses_controller_message():
    locations = FakeLocations(error=RuntimeError("boom"))
    controller, _ = make_controller(locations, error_message="Failed to search locations. Please try again.")
    controller.on_input("goa")
    await asyncio.sleep(DELAY * 2)
    await controller.wait_idle()
    assert controller.error == "Failed to search locations. Please try again."
    assert "boom" not in controller.error


@pytest.mark.asyncio
async def test_offline_failure_surfaces_offline_message():
    locations = FakeLocations(error=OfflineError())
    controller, _ = make_controller(locations)
    controller.on_input("goa")
    await asyncio.sleep(DELAY * 2)
    await controller.wait_idle()
    assert controller.error == OfflineError.user_message


@pytest.mark.asyncio
async def test_stale_failure_is_ignored():
    locations = FakeLocations(hold=True, error=FetchError("timeout"))
    controller, _ = make_controller(locations)
    controller.on_input("agra")
    await asyncio.sleep(DELAY * 2)
    controller.on_input("ag")
    locations.release("agra")
    await controller.wait_idle()
    assert controller.error is None


@pytest.mark.asyncio
async def test_cancel_stops_pending_timer():
    locations = FakeLocations()
    controller, _ = make_controller(locations)
    controller.on_input("chennai")
    controller.cancel()
    await asyncio.sleep(DELAY * 2)
    await controller.wait_idle()
    assert locations.queries == []
