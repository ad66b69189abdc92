"""
Tests for message content validation.

Test Organization:
    TestSanitizeContent: Normalization of raw text
    TestMessageValidator: Structural checks and their order
    TestSpamPolicy: Repetition, shouting and symbol heuristics
    TestRateLimitPolicy: Per-author message budget
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from chat.constants import ERROR_CODES, MESSAGE_CONFIG
from chat.tests.factories import DirectMessageFactory, MessageFactory
from chat.validation import (
    MessageValidator,
    rate_limit_policy,
    sanitize_content,
    spam_policy,
)


class TestSanitizeContent:
    def test_collapses_whitespace(self):
        assert sanitize_content("  hello \n\n  world\t ") == "hello world"

    def test_strips_script_blocks(self):
        assert sanitize_content("hi <script>alert(1)</script>there") == "hi there"

    def test_strips_javascript_urls(self):
        assert sanitize_content("click javascript:void(0)") == "click void(0)"

    def test_strips_inline_handlers(self):
        assert "onclick" not in sanitize_content('<b onclick="x()">bold</b>')

    def test_squeezes_repeated_characters(self):
        assert sanitize_content("nooooooooo") == "noooo"


class TestMessageValidator:
    """Tests for MessageValidator.validate() without policies."""

    def test_returns_sanitized_content(self):
        result = MessageValidator().validate("  good   morning  ")

        assert result.success
        assert result.data == "good morning"

    @pytest.mark.parametrize("content", ["", "   ", None, 42])
    def test_empty_or_non_text_is_invalid(self, content):
        result = MessageValidator().validate(content)

        assert result.error_code == ERROR_CODES.INVALID_MESSAGE_CONTENT

    def test_exactly_max_length_is_accepted(self):
        result = MessageValidator().validate("a" * MESSAGE_CONFIG.MAX_CONTENT_LENGTH)

        assert result.success

    def test_over_max_length_is_too_long(self):
        """
        Why it matters: Length is checked on the trimmed raw text, before
        sanitizing could shorten it under the limit.
        """
        result = MessageValidator().validate("a" * (MESSAGE_CONFIG.MAX_CONTENT_LENGTH + 1))

        assert result.error_code == ERROR_CODES.MESSAGE_TOO_LONG

    def test_empty_after_sanitizing(self):
        result = MessageValidator().validate("<script>steal()</script>")

        assert result.error_code == ERROR_CODES.MESSAGE_VALIDATION_ERROR

    def test_policies_run_in_order_and_first_failure_wins(self):
        calls = []

        def first(content, author_id):
            calls.append("first")
            return "first failed"

        def second(content, author_id):
            calls.append("second")
            return None

        result = MessageValidator(policies=(first, second)).validate("hello", "u1")

        assert result.error == "first failed"
        assert result.error_code == ERROR_CODES.MESSAGE_VALIDATION_ERROR
        assert calls == ["first"]

    def test_policy_receives_sanitized_content_and_author(self):
        seen = {}

        def record(content, author_id):
            seen.update(content=content, author_id=author_id)
            return None

        MessageValidator(policies=(record,)).validate("  spaced   out  ", "author-1")

        assert seen == {"content": "spaced out", "author_id": "author-1"}


class TestSpamPolicy:
    def test_normal_sentence_passes(self):
        assert spam_policy("Are we still meeting at noon tomorrow?", None) is None

    def test_short_punctuated_reply_passes(self):
        assert spam_policy("ok?!", None) is None

    def test_repeated_words_are_spam(self):
        assert spam_policy("buy buy buy buy buy buy buy now", None) is not None

    def test_shouting_is_spam(self):
        assert spam_policy("THIS IS VERY IMPORTANT NEWS", None) is not None

    def test_symbol_noise_is_spam(self):
        assert spam_policy("$$$ !!! ### @@@ win", None) is not None


@pytest.mark.django_db
class TestRateLimitPolicy:
    """Tests for rate_limit_policy()."""

    def test_under_limit_passes(self, alice, room):
        MessageFactory.create_batch(3, room=room, author=alice)

        assert rate_limit_policy("hello", alice.id) is None

    def test_room_and_direct_messages_share_the_budget(self, alice, bob, room):
        """
        Why it matters: Splitting traffic between rooms and DMs must not
        double the allowance.
        """
        half = MESSAGE_CONFIG.RATE_LIMIT_MESSAGES // 2
        MessageFactory.create_batch(half, room=room, author=alice)
        DirectMessageFactory.create_batch(
            MESSAGE_CONFIG.RATE_LIMIT_MESSAGES - half, sender=alice, receiver=bob
        )

        assert rate_limit_policy("hello", alice.id) is not None

    def test_deleted_messages_still_count(self, alice, room):
        messages = MessageFactory.create_batch(
            MESSAGE_CONFIG.RATE_LIMIT_MESSAGES, room=room, author=alice
        )
        for message in messages:
            message.soft_delete()

        assert rate_limit_policy("hello", alice.id) is not None

    def test_old_messages_fall_out_of_the_window(self, alice, room):
        window = timedelta(seconds=MESSAGE_CONFIG.RATE_LIMIT_WINDOW_SECONDS + 1)
        with freeze_time(timezone.now() - window):
            MessageFactory.create_batch(
                MESSAGE_CONFIG.RATE_LIMIT_MESSAGES, room=room, author=alice
            )

        assert rate_limit_policy("hello", alice.id) is None

    def test_default_validator_applies_rate_limit(self, alice, room):
        MessageFactory.create_batch(
            MESSAGE_CONFIG.RATE_LIMIT_MESSAGES, room=room, author=alice
        )

        result = MessageValidator.default().validate("one more", alice.id)

        assert result.error_code == ERROR_CODES.MESSAGE_VALIDATION_ERROR
