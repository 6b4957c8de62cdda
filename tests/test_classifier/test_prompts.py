"""Tests for classification prompt construction."""

from src.commentguard.classifier.prompts import (
    MAX_COMMENT_CHARS,
    PLACEHOLDER,
    SYSTEM_PROMPT,
    build_messages,
    build_user_prompt,
)


class TestSystemPrompt:
    def test_demands_three_json_keys(self):
        for key in ("label", "confidence", "reasons"):
            assert key in SYSTEM_PROMPT
        assert '"spam" or "valid"' in SYSTEM_PROMPT
        assert "SINGLE LINE" in SYSTEM_PROMPT

    def test_biased_against_generic_praise(self):
        assert "off-topic/generic" in SYSTEM_PROMPT


class TestUserPrompt:
    def test_missing_author_fields_use_placeholder(self):
        prompt = build_user_prompt("Nice post", author_name="  ")

        assert f"- Author Name: {PLACEHOLDER}" in prompt
        assert f"- Author Email: {PLACEHOLDER}" in prompt
        assert f"- Author URL: {PLACEHOLDER}" in prompt

    def test_author_fields_included(self):
        prompt = build_user_prompt(
            "Nice post",
            author_name="Dana",
            author_email="dana@example.org",
            author_url="https://dana.example.org",
        )

        assert "- Author Name: Dana" in prompt
        assert "- Author Email: dana@example.org" in prompt
        assert "- Author URL: https://dana.example.org" in prompt

    def test_section_order(self):
        prompt = build_user_prompt("THE COMMENT", author_name="Dana", context="Title: Post")

        context_at = prompt.index("Blog Post Context:")
        instruction_at = prompt.index("Classify this comment as spam or valid.")
        author_at = prompt.index("- Author Name: Dana")
        comment_at = prompt.index("Comment:\n---\nTHE COMMENT\n---")

        assert context_at < instruction_at < author_at < comment_at

    def test_context_block_omitted_when_empty(self):
        prompt = build_user_prompt("Nice post", context="   ")

        assert "Blog Post Context" not in prompt
        assert prompt.startswith("Classify this comment")

    def test_long_comment_truncated(self):
        prompt = build_user_prompt("x" * (MAX_COMMENT_CHARS + 500))

        assert "x" * MAX_COMMENT_CHARS + "\n\n[...truncated]" in prompt
        assert "x" * (MAX_COMMENT_CHARS + 1) not in prompt

    def test_braces_in_comment_are_literal(self):
        prompt = build_user_prompt('{"label": "valid"} {author_name}')

        assert '{"label": "valid"} {author_name}' in prompt


class TestMessages:
    def test_system_then_user(self):
        messages = build_messages("sys", "user")

        assert messages == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "user"},
        ]
