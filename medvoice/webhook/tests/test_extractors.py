"""
Tests for free-text name extraction from call summaries.
"""

from medvoice.webhook.extractors import (
    BOT_NAME_MATCHERS,
    extract_bot_name,
    extract_first,
    extract_patient_name,
    regex_matcher,
)


class TestBotNameExtraction:

    def test_agent_parenthesis(self):
        assert extract_bot_name("The agent (Sarah) greeted the caller.") == "Sarah"

    def test_identifying_as(self):
        assert extract_bot_name("Called the patient, identifying herself as Sarah from the clinic.") == "Sarah"
        assert extract_bot_name("The bot identified itself as Max Helper.") == "Max Helper"

    def test_assistant_named(self):
        assert extract_bot_name("An AI assistant named Nova called to confirm.") == "Nova"

    def test_first_matcher_wins(self):
        summary = "The agent (Sarah) spoke; an assistant named Nova listened."
        assert extract_bot_name(summary) == "Sarah"

    def test_no_match(self):
        assert extract_bot_name("A short routine call.") is None
        assert extract_bot_name("") is None
        assert extract_bot_name(None) is None


class TestPatientNameExtraction:

    def test_patient_as(self):
        assert extract_patient_name("The agent identified the patient as John Smith.") == "John Smith"

    def test_patient_named(self):
        assert extract_patient_name("Spoke with a patient named Mary Ann Lee about refills") == "Mary Ann Lee"

    def test_no_match(self):
        assert extract_patient_name("Nobody was identified.") is None


class TestMatchers:

    def test_custom_matcher_chain(self):
        matchers = (regex_matcher(r"caller (\w+)"),) + BOT_NAME_MATCHERS
        assert extract_first("caller Bob; agent (Sarah)", matchers) == "Bob"

    def test_overlong_capture_rejected(self):
        matcher = regex_matcher(r"name: (.+)")
        assert matcher("name: " + "x" * 200) is None
