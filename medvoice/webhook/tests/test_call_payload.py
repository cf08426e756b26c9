"""
Tests for flattening sanitized webhook fields into a CallPayload.
"""

from datetime import datetime, timezone

from medvoice.webhook.payload import CallPayload


class TestCallPayload:

    def test_top_level_beats_call_wrapper(self):
        payload = CallPayload.from_sanitized({
            "call_id": "top",
            "bot_id": "bot_top",
            "call": {"call_id": "inner", "bot_id": "bot_inner", "bot_name": "Sarah"},
        })
        assert payload.call_id == "top"
        assert payload.bot_identifier == "bot_top"
        assert payload.bot_name == "Sarah"

    def test_empty_call_object_still_counts_as_wrapper(self):
        assert CallPayload.from_sanitized({"call": {}}).has_call_wrapper
        assert not CallPayload.from_sanitized({"call": "x"}).has_call_wrapper
        assert not CallPayload.from_sanitized({}).has_call_wrapper

    def test_patient_id_used_as_medical_id(self):
        assert CallPayload.from_sanitized({"patient_id": "MED003"}).medical_id == "MED003"

    def test_timestamps(self):
        payload = CallPayload.from_sanitized({
            "start_time": "2024-05-01T10:00:00Z",
            "end_time": "1714557690",
        })
        assert payload.started_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert payload.elapsed_seconds() == 90.0

    def test_millisecond_epoch(self):
        payload = CallPayload.from_sanitized({"start_time": "1714557600000"})
        assert payload.started_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    def test_unparseable_timestamps_ignored(self):
        payload = CallPayload.from_sanitized({"start_time": "yesterday", "end_time": "nan"})
        assert payload.started_at is None
        assert payload.ended_at is None
        assert payload.elapsed_seconds() is None

    def test_negative_elapsed_ignored(self):
        payload = CallPayload.from_sanitized({
            "start_time": "2024-05-01T10:05:00Z",
            "end_time": "2024-05-01T10:00:00Z",
        })
        assert payload.elapsed_seconds() is None

    def test_name_hint_sources(self):
        assert CallPayload(customer_name="Ann").structured_name_hint() == "Ann"
        assert CallPayload(analysis={"caller_name": "<b>Bo</b>"}).structured_name_hint() == "Bo"
        assert CallPayload(structured_data={"name": "  "}).structured_name_hint() is None

    def test_attempt_must_be_int(self):
        assert CallPayload.from_sanitized({"call": {"attempt": True}}).attempt is None
        assert CallPayload.from_sanitized({"call": {"attempt": 2}}).attempt == 2
