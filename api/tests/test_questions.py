"""Tests for survey question drafting with a stubbed Anthropic client."""

import json
from types import SimpleNamespace

import pytest

from app.errors import ValidationError
from app.services.questions import (
    QuestionGenerator,
    QuestionParseError,
    fallback_questions,
    parse_questions,
)


class FakeMessages:
    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


class FakeClient:
    def __init__(self, text: str = "", error: Exception = None):
        self.messages = FakeMessages(text, error)


MODEL_QUESTIONS = [
    {"question": "What did you use it for?", "type": "short-answer", "choices": ["ignored"]},
    {"question": "How easy was setup?", "type": "single-choice", "choices": ["Hard", "OK", "Easy"]},
    {"question": "Which parts did you try?", "type": "multiple-choice", "choices": ["Editor", "Sync"]},
]


class TestParseQuestions:
    def test_extracts_array_from_surrounding_prose(self):
        text = "Sure! Here you go:\n" + json.dumps(MODEL_QUESTIONS) + "\nGood luck."
        questions = parse_questions(text, limit=5)
        assert [q.type for q in questions] == ["short-answer", "single-choice", "multiple-choice"]
        assert questions[0].choices is None

    def test_truncates_to_limit(self):
        questions = parse_questions(json.dumps(MODEL_QUESTIONS * 3), limit=5)
        assert len(questions) == 5

    @pytest.mark.parametrize(
        "text",
        [
            "no json here",
            "[not valid json]",
            "[]",
            json.dumps([{"question": "Pick", "type": "single-choice", "choices": ["Only"]}]),
            json.dumps([{"question": "Pick", "type": "ranking"}]),
        ],
    )
    def test_unusable_output_raises(self, text):
        with pytest.raises(QuestionParseError):
            parse_questions(text, limit=5)


class TestFallbackQuestions:
    def test_without_objective_uses_generic_set(self):
        questions = fallback_questions("Widget")
        assert len(questions) == 5
        assert questions[0].question == "How would you rate your overall experience with Widget?"

    def test_objective_keywords_tailor_questions(self):
        questions = fallback_questions("Widget", "Why not more people use it daily")
        texts = [q.question for q in questions]
        assert texts[0] == "How often do you plan to use this product?"
        assert "What would prevent you from using this product more frequently?" in texts
        assert len(questions) == 5

    def test_padding_alternates_generic_questions(self):
        questions = fallback_questions("Widget", "pricing")
        assert [q.question for q in questions] == [
            "What improvements would make this product more valuable to you?",
            "How would you rate your overall experience with Widget?",
            "What specific features or aspects would you like to see improved?",
            "How would you rate your overall experience with Widget?",
            "What specific features or aspects would you like to see improved?",
        ]


class TestQuestionGenerator:
    @pytest.mark.asyncio
    async def test_model_output_is_used(self):
        client = FakeClient(text=json.dumps(MODEL_QUESTIONS))
        generator = QuestionGenerator(client=client)

        questions, source = await generator.generate("Widget", "A handy widget", "onboarding")

        assert source == "ai"
        assert len(questions) == 3
        sent = client.messages.calls[0]
        assert "onboarding" in sent["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_malformed_output_falls_back(self):
        generator = QuestionGenerator(client=FakeClient(text="I cannot help with that"))
        questions, source = await generator.generate("Widget", "A handy widget")
        assert source == "fallback"
        assert len(questions) == 5

    @pytest.mark.asyncio
    async def test_client_error_falls_back(self):
        generator = QuestionGenerator(client=FakeClient(error=RuntimeError("timeout")))
        _, source = await generator.generate("Widget", "A handy widget")
        assert source == "fallback"

    @pytest.mark.asyncio
    async def test_missing_api_key_skips_the_model(self):
        generator = QuestionGenerator(api_key="")
        questions, source = await generator.generate("Widget", "A handy widget")
        assert source == "fallback"
        assert questions == fallback_questions("Widget")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,description", [("", "desc"), ("Widget", "   ")])
    async def test_blank_inputs_rejected(self, name, description):
        generator = QuestionGenerator(client=FakeClient(text=json.dumps(MODEL_QUESTIONS)))
        with pytest.raises(ValidationError):
            await generator.generate(name, description)
