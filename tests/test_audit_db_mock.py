"""Tests for access audit writes with mocked Supabase."""

from unittest.mock import patch

from match_engine.db.audit import log_access


@patch("match_engine.db.audit.get_supabase")
def test_log_access_inserts_row(mock_sb):
    log_access("u1", "org-1", "matcher_search", "203.0.113.7", ["materials", "forms"])

    mock_sb.return_value.table.assert_called_once_with("access_audit_logs")
    row = mock_sb.return_value.table.return_value.insert.call_args.args[0]
    assert row == {
        "user_id": "u1",
        "org_id": "org-1",
        "playdate_id": None,
        "pack_id": None,
        "action": "matcher_search",
        "ip_address": "203.0.113.7",
        "fields_accessed": ["materials", "forms"],
    }


@patch("match_engine.db.audit.get_supabase")
def test_log_access_failure_is_swallowed(mock_sb):
    mock_sb.return_value.table.side_effect = Exception("insert failed")

    # Must not raise
    log_access("u1", None, "matcher_search", None, [])
