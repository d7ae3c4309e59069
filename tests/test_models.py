"""Tests for darkriver.models."""

import pytest
from pydantic import ValidationError

from darkriver.models import MailEntry, ParticipantProgress, StageTemplate, Trigger


class TestTrigger:
    def test_keywords_stripped(self) -> None:
        t = Trigger(keywords=["  ready ", "", "go"])
        assert t.keywords == ["ready", "go"]

    def test_defaults(self) -> None:
        t = Trigger(keywords=["x"])
        assert t.mode == "substring"
        assert t.case_sensitive is False

    def test_empty_keywords_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Trigger(keywords=[])
        with pytest.raises(ValidationError):
            Trigger(keywords=["  "])

    def test_invalid_mode_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Trigger(keywords=["x"], mode="regex")


class TestStageTemplate:
    def test_plain_string_trigger(self) -> None:
        s = StageTemplate(stage=2, subject="S", body="B", trigger="agree", next_stage=3)
        assert s.trigger == Trigger(keywords=["agree"])

    def test_blank_string_trigger_is_none(self) -> None:
        s = StageTemplate(stage=1, subject="S", body="B", trigger="  ")
        assert s.trigger is None

    def test_stage_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            StageTemplate(stage=0, subject="S", body="B")

    def test_subject_required(self) -> None:
        with pytest.raises(ValidationError):
            StageTemplate(stage=1, subject="", body="B")

    def test_terminal_without_edge(self) -> None:
        assert StageTemplate(stage=1, subject="S", body="B").is_terminal

    def test_terminal_self_loop(self) -> None:
        s = StageTemplate(stage=4, subject="S", body="B", trigger="x", next_stage=4)
        assert s.is_terminal

    def test_not_terminal_with_edge(self) -> None:
        s = StageTemplate(stage=1, subject="S", body="B", trigger="x", next_stage=2)
        assert not s.is_terminal

    def test_serialise_roundtrip(self) -> None:
        s = StageTemplate(stage=1, subject="S", body="B", trigger="x", next_stage=2, is_initial=True)
        assert StageTemplate.model_validate(s.model_dump()) == s


class TestMailEntry:
    def test_ids_unique(self) -> None:
        a = MailEntry(subject="s", body="b")
        b = MailEntry(subject="s", body="b")
        assert a.id != b.id

    def test_defaults(self) -> None:
        e = MailEntry(subject="s", body="b")
        assert e.read is False
        assert e.matched is None
        assert e.timestamp


class TestParticipantProgress:
    def test_inbox_entry_lookup(self) -> None:
        entry = MailEntry(subject="s", body="b")
        p = ParticipantProgress(participant_id="p", current_stage=1, inbox=[entry])
        assert p.inbox_entry(entry.id) is entry
        assert p.inbox_entry("nope") is None
