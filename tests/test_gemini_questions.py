import json
from types import SimpleNamespace

import pytest

from alarms.errors import QuestionServiceError
from alarms.models import Question, QuestionFormat, QuestionType
from gemini_questions import (
    GeminiQuestionClient,
    build_question_prompt,
    parse_question_payload,
    parse_validation_payload,
)


class FakeModels:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append((model, contents, config))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


def _client(*replies):
    models = FakeModels(replies)
    client = GeminiQuestionClient("key", "gemini-test", client=SimpleNamespace(models=models))
    return client, models


def test_prompt_mentions_category_and_format():
    prompt = build_question_prompt(QuestionType.WORD_SCRAMBLE, QuestionFormat.MULTIPLE_CHOICE)
    assert "Word Scrambles" in prompt
    assert "mcqOptions" in prompt
    assert "mcqOptions" not in build_question_prompt(QuestionType.VERBAL_MATH, QuestionFormat.OPEN_ENDED)


def test_parse_open_ended_payload():
    question = parse_question_payload(
        json.dumps({"questionText": "Unscramble: TAC", "correctAnswer": "CAT"}), QuestionType.WORD_SCRAMBLE
    )
    assert question.text == "Unscramble: TAC"
    assert question.format is QuestionFormat.OPEN_ENDED
    assert question.category is QuestionType.WORD_SCRAMBLE


def test_parse_multiple_choice_payload():
    raw = json.dumps(
        {
            "questionText": "What is 3 x 3?",
            "correctAnswer": "9",
            "mcqOptions": [
                {"text": "9", "isCorrect": True},
                {"text": "6", "isCorrect": False},
                {"text": "12", "isCorrect": False},
                {"text": "3", "isCorrect": False},
            ],
        }
    )
    question = parse_question_payload(raw, QuestionType.SIMPLE_MATH)
    assert question.format is QuestionFormat.MULTIPLE_CHOICE
    assert question.correct_option.text == "9"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps({"questionText": "Missing answer"}),
        json.dumps({"questionText": "", "correctAnswer": "x"}),
        json.dumps(
            {
                "questionText": "Two right answers",
                "correctAnswer": "a",
                "mcqOptions": [{"text": "a", "isCorrect": True}, {"text": "b", "isCorrect": True}],
            }
        ),
    ],
)
def test_malformed_question_payload_raises(raw):
    with pytest.raises(QuestionServiceError):
        parse_question_payload(raw, QuestionType.SIMPLE_MATH)


def test_parse_validation_payload():
    assert parse_validation_payload('{"isCorrect": true}') is True
    assert parse_validation_payload('{"isCorrect": false}') is False
    with pytest.raises(QuestionServiceError):
        parse_validation_payload('{"isCorrect": "yes"}')
    with pytest.raises(QuestionServiceError):
        parse_validation_payload("{}")


def test_generate_question_sends_prompt_to_model():
    client, models = _client(json.dumps({"questionText": "2 + 2?", "correctAnswer": "4"}))
    question = client.generate_question(QuestionType.SIMPLE_MATH, QuestionFormat.OPEN_ENDED)

    assert question.correct_answer == "4"
    model, contents, config = models.calls[0]
    assert model == "gemini-test"
    assert "Simple Math with a Twist" in contents
    assert config.response_mime_type == "application/json"


def test_validate_answer_uses_model_verdict():
    client, models = _client('{"isCorrect": true}')
    question = Question(text="What is 5 + 5?", correct_answer="10", category=QuestionType.SIMPLE_MATH)
    assert client.validate_answer(question, "ten")
    assert '"ten"' in models.calls[0][1]


def test_transport_errors_become_question_service_errors():
    client, _ = _client(RuntimeError("network down"))
    with pytest.raises(QuestionServiceError):
        client.generate_question(QuestionType.SIMPLE_MATH, QuestionFormat.OPEN_ENDED)


def test_empty_response_is_an_error():
    client, _ = _client("")
    with pytest.raises(QuestionServiceError):
        client.validate_answer(
            Question(text="q", correct_answer="a", category=QuestionType.SIMPLE_MATH), "a"
        )
