"""Tests for the candidate store query and its snapshot cache."""

import logging
from unittest.mock import MagicMock, call, patch

import pytest

from match_engine.core.config import get_settings
from match_engine.db.candidates import (
    CandidateCache,
    CandidateStore,
    StoreUnavailable,
    fetch_candidate_rows,
    get_candidate_store,
    invalidate_candidate_cache,
)
from tests.fakes.fake_store import CountingFetcher, FakeClock
from tests.fixtures_matcher import CARDBOARD_TUBE, make_playdate


def _store(ttl=300.0):
    clock = FakeClock()
    fetcher = CountingFetcher(make_playdate("a", [CARDBOARD_TUBE]))
    store = CandidateStore(CandidateCache(ttl_seconds=ttl, clock=clock), fetch_rows=fetcher)
    return store, fetcher, clock


class TestCandidateStoreCaching:
    def test_second_call_within_ttl_uses_cache(self):
        store, fetcher, clock = _store()

        first = store.get_candidates()
        clock.advance(299)
        second = store.get_candidates()

        assert fetcher.calls == 1
        assert second == first

    def test_call_after_ttl_refetches(self):
        store, fetcher, clock = _store()

        store.get_candidates()
        clock.advance(300)
        store.get_candidates()

        assert fetcher.calls == 2

    def test_invalidate_forces_refetch_within_ttl(self):
        store, fetcher, clock = _store()

        store.get_candidates()
        clock.advance(1)
        store.invalidate()
        store.get_candidates()

        assert fetcher.calls == 2

    def test_invalidate_does_not_disturb_captured_rows(self):
        store, fetcher, _ = _store()

        rows = store.get_candidates()
        store.invalidate()

        assert rows[0].id == "a"

    def test_fetch_failure_propagates_and_is_not_cached(self):
        fetcher = CountingFetcher(error=StoreUnavailable("down"))
        store = CandidateStore(CandidateCache(ttl_seconds=300, clock=FakeClock()), fetch_rows=fetcher)

        with pytest.raises(StoreUnavailable):
            store.get_candidates()

        fetcher.error = None
        fetcher.rows = make_playdate("a")
        assert len(store.get_candidates()) == 1
        assert fetcher.calls == 2

    def test_empty_result_is_cached(self):
        fetcher = CountingFetcher([])
        store = CandidateStore(CandidateCache(ttl_seconds=300, clock=FakeClock()), fetch_rows=fetcher)

        assert store.get_candidates() == []
        assert store.get_candidates() == []
        assert fetcher.calls == 1


def test_invalidate_candidate_cache_targets_process_store():
    get_candidate_store.cache_clear()
    try:
        with patch("match_engine.db.candidates.CandidateStore.invalidate") as mock_invalidate:
            invalidate_candidate_cache()
        mock_invalidate.assert_called_once()
    finally:
        get_candidate_store.cache_clear()


# =============================================================================
# Store query
# =============================================================================


@pytest.fixture
def mock_supabase():
    """Mock Supabase client."""
    with patch("match_engine.db.candidates.get_supabase") as mock:
        yield mock.return_value


def _set_response(mock_supabase, data):
    response = MagicMock()
    response.data = data
    (
        mock_supabase.table.return_value.select.return_value.eq.return_value
        .in_.return_value.order.return_value.range.return_value.execute.return_value
    ) = response


def _playdate_record(playdate_id, links, **overrides):
    record = {
        "id": playdate_id,
        "slug": playdate_id,
        "title": playdate_id.title(),
        "headline": None,
        "primary_function": None,
        "arc_emphasis": ["explore"],
        "context_tags": ["indoors"],
        "friction_dial": 2,
        "start_in_120s": True,
        "required_forms": ["cardboard"],
        "slots_optional": None,
        "find_again_mode": None,
        "substitutions_notes": None,
        "playdate_materials": links,
    }
    record.update(overrides)
    return record


def _link(material_id, title, form, do_not_use=False):
    return {
        "materials_cache": {
            "id": material_id,
            "title": title,
            "form_primary": form,
            "do_not_use": do_not_use,
        }
    }


class TestFetchCandidateRows:
    def test_flattens_materials_sorted_by_title(self, mock_supabase):
        _set_response(mock_supabase, [
            _playdate_record("a", [
                _link("m2", "tube", "cardboard"),
                _link("m1", "box", "cardboard"),
            ]),
        ])

        rows = fetch_candidate_rows()

        assert [r.material_id for r in rows] == ["m1", "m2"]
        assert all(r.id == "a" for r in rows)
        assert rows[0].material_form_primary == "cardboard"
        assert rows[0].slots_optional == []
        mock_supabase.table.assert_called_once_with("playdates_cache")

    def test_filters_ready_public_channels(self, mock_supabase):
        _set_response(mock_supabase, [])

        fetch_candidate_rows()

        query = mock_supabase.table.return_value.select.return_value
        query.eq.assert_called_once_with("status", "ready")
        query.eq.return_value.in_.assert_called_once_with(
            "release_channel", ["sampler", "pack-only"]
        )

    def test_playdate_without_materials_yields_one_bare_row(self, mock_supabase):
        _set_response(mock_supabase, [_playdate_record("a", [])])

        rows = fetch_candidate_rows()

        assert len(rows) == 1
        assert rows[0].material_id is None

    def test_do_not_use_materials_are_dropped(self, mock_supabase):
        _set_response(mock_supabase, [
            _playdate_record("a", [_link("m1", "glitter", "craft", do_not_use=True)]),
        ])

        rows = fetch_candidate_rows()

        assert len(rows) == 1
        assert rows[0].material_id is None

    def test_query_failure_raises_store_unavailable(self, mock_supabase):
        mock_supabase.table.side_effect = Exception("connection reset")

        with pytest.raises(StoreUnavailable, match="connection reset"):
            fetch_candidate_rows()

    def test_malformed_row_raises_store_unavailable(self, mock_supabase):
        _set_response(mock_supabase, [{"id": "a", "playdate_materials": []}])

        with pytest.raises(StoreUnavailable):
            fetch_candidate_rows()

    def test_null_and_non_string_array_items_are_dropped(self, mock_supabase):
        _set_response(mock_supabase, [
            _playdate_record("a", [], context_tags=["indoors", None], required_forms=[7, "paper"]),
            _playdate_record("b", []),
        ])

        rows = fetch_candidate_rows()

        assert [r.id for r in rows] == ["a", "b"]
        assert rows[0].context_tags == ["indoors"]
        assert rows[0].required_forms == ["paper"]

    def test_reads_catalogue_in_pages(self, mock_supabase):
        settings = get_settings().model_copy(update={"MATCHER_CANDIDATE_PAGE_SIZE": 2})
        pages = [
            [_playdate_record("a", []), _playdate_record("b", [])],
            [_playdate_record("c", [])],
        ]
        query = (
            mock_supabase.table.return_value.select.return_value.eq.return_value
            .in_.return_value.order.return_value
        )
        query.range.return_value.execute.side_effect = [MagicMock(data=page) for page in pages]

        with patch("match_engine.db.candidates.get_settings", return_value=settings):
            rows = fetch_candidate_rows()

        assert [r.id for r in rows] == ["a", "b", "c"]
        assert query.range.call_args_list == [call(0, 1), call(2, 3)]


def test_refresh_logs_row_count_and_timing(caplog):
    store, _, _ = _store()

    with caplog.at_level(logging.INFO, logger="match_engine.db.candidates"):
        store.get_candidates()

    record = next(r for r in caplog.records if r.getMessage() == "Refreshed candidate cache")
    assert record.extra_data["rows"] == 1
    assert record.extra_data["elapsed_ms"] >= 0
