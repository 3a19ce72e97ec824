"""Tests for jarvis.planner.drafts — extraction, formatting, edits."""
from __future__ import annotations

import pytest

from jarvis.core.constants import ANNOUNCEMENT, POLL
from jarvis.planner import drafts


class TestExtractContent:

    @pytest.mark.parametrize("message,draft_type,expected", [
        ("announce meeting tonight at 7pm", ANNOUNCEMENT, "meeting tonight at 7pm"),
        ("Announcement: dues due friday", ANNOUNCEMENT, "dues due friday"),
        ("can you send an announcement saying dues are due friday", ANNOUNCEMENT, "dues are due friday"),
        ("tell everyone that practice is cancelled", ANNOUNCEMENT, "practice is cancelled"),
        ("poll who's coming saturday", POLL, "who's coming saturday"),
        ("make a poll asking who's coming to formal", POLL, "who's coming to formal"),
        ("ask everyone if they want pizza", POLL, "they want pizza"),
        ("meeting moved to 8", ANNOUNCEMENT, "meeting moved to 8"),
    ])
    def test_strips_command_phrasing(self, message: str, draft_type: str, expected: str):
        assert drafts.extract_content(message, draft_type) == expected


class TestCommands:

    @pytest.mark.parametrize("message", ["announce", "make an announcement", "poll", "make a poll", "poll please"])
    def test_bare_commands(self, message: str):
        assert drafts.is_just_command(message)

    def test_command_with_content_is_not_bare(self):
        assert not drafts.is_just_command("announce meeting at 7")

    def test_command_type(self):
        assert drafts.command_type("make an announcement") == ANNOUNCEMENT
        assert drafts.command_type("create a poll!") == POLL
        assert drafts.command_type("hello") is None

    def test_bare_command_restricted_to_type(self):
        assert not drafts.is_just_command("poll", ANNOUNCEMENT)


class TestFormatContent:

    @pytest.mark.parametrize("content,expected", [
        ("who's coming", "who's coming?"),
        ("who's coming?", "who's coming?"),
        ("who's coming!.", "who's coming?"),
        ("  pizza or tacos  ", "pizza or tacos?"),
    ])
    def test_polls_end_with_one_question_mark(self, content: str, expected: str):
        assert drafts.format_content(content, POLL) == expected

    def test_announcements_verbatim(self):
        assert drafts.format_content(" meeting at 7! ", ANNOUNCEMENT) == "meeting at 7!"


class TestLinksAndMandatory:

    def test_needs_link_when_rsvp_without_url(self):
        assert drafts.needs_link("rsvp for formal by friday")

    def test_url_satisfies_link(self):
        assert not drafts.needs_link("rsvp at https://forms.example.com/formal")

    def test_plain_content_needs_no_link(self):
        assert not drafts.needs_link("meeting tonight at 7")

    def test_extract_links_trims_punctuation(self):
        assert drafts.extract_links("sign up: https://x.example.com/a. thanks") == ["https://x.example.com/a"]

    @pytest.mark.parametrize("message", ["skip", "no link", "none"])
    def test_skip_link(self, message: str):
        assert drafts.is_skip_link(message)

    @pytest.mark.parametrize("text", ["mandatory chapter meeting", "attendance is required", "you must attend"])
    def test_mandatory_cues(self, text: str):
        assert drafts.looks_mandatory(text)

    def test_social_event_not_mandatory(self):
        assert not drafts.looks_mandatory("who wants to get pizza")


class TestApplyEdit:

    def test_replacement(self):
        assert drafts.apply_edit("meeting at 7", "no it should say meeting at 8", ANNOUNCEMENT) == "meeting at 8"

    def test_change_it_to(self):
        assert drafts.apply_edit("meeting at 7", "change it to meeting at 9", ANNOUNCEMENT) == "meeting at 9"

    def test_additive(self):
        assert drafts.apply_edit("Meeting at 7", "add bring snacks", ANNOUNCEMENT) == "Meeting at 7. bring snacks"

    def test_additive_is_idempotent(self):
        once = drafts.apply_edit("Meeting at 7", "add bring snacks", ANNOUNCEMENT)
        assert drafts.apply_edit(once, "add bring snacks", ANNOUNCEMENT) == once

    def test_tone_instruction(self):
        assert drafts.apply_edit("meeting at 7", "make it more aggressive", ANNOUNCEMENT) == "MEETING AT 7!!"

    def test_full_replacement(self):
        new = drafts.apply_edit("meeting at 7", "meeting moved to 8pm in room 204", ANNOUNCEMENT)
        assert new == "meeting moved to 8pm in room 204"

    def test_poll_replacement_keeps_question_mark(self):
        assert drafts.apply_edit("who's coming?", "just say who's free friday", POLL) == "who's free friday?"


class TestTone:

    @pytest.mark.parametrize("message,tone", [
        ("make it funnier", "funny"),
        ("shorter", "short"),
        ("more friendly pls", "friendly"),
        ("make it more professional", "serious"),
    ])
    def test_detect_tone(self, message: str, tone: str):
        assert drafts.detect_tone(message) == tone

    def test_long_messages_are_not_tone_instructions(self):
        assert drafts.detect_tone("change the location to the house and make it longer please ok") is None

    @pytest.mark.parametrize("tone", ["aggressive", "friendly", "funny", "serious", "short", "long"])
    def test_tones_are_idempotent(self, tone: str):
        once = drafts.apply_tone("meeting at 7. bring snacks", tone, ANNOUNCEMENT)
        assert drafts.apply_tone(once, tone, ANNOUNCEMENT) == once

    def test_friendly(self):
        assert drafts.apply_tone("meeting at 7", "friendly", ANNOUNCEMENT) == "hey everyone! meeting at 7 😊"

    def test_serious_strips_emoji_and_lol(self):
        assert drafts.apply_tone("meeting at 7!! lol 😂", "serious", ANNOUNCEMENT) == "Meeting at 7."

    def test_short_keeps_first_sentence(self):
        assert drafts.apply_tone("Meeting at 7. Bring snacks.", "short", ANNOUNCEMENT) == "Meeting at 7."
