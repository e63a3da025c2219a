import json
import logging
from typing import Optional

import google.genai as genai
from google.genai import types

from alarms.errors import QuestionServiceError
from alarms.models import MCQOption, Question, QuestionFormat, QuestionType

logger = logging.getLogger(__name__)

GENERATOR_INSTRUCTION = (
    "You are a helpful assistant that generates educational questions for an alarm app "
    "that requires users to answer questions to stop the alarm."
)
VALIDATOR_INSTRUCTION = "You are a helpful assistant that evaluates answers to educational questions."

CATEGORY_GUIDANCE = {
    QuestionType.SIMPLE_MATH: (
        " Similar to: 'What is (37 × 4) - 23 + 18?' or 'Calculate: 125 ÷ 5 × 3 - 17'. The difficulty "
        "should be moderate - requiring a few steps of calculation but not too complex."
    ),
    QuestionType.WORD_SCRAMBLE: (
        " Similar to: 'Unscramble: PPLAE' (which would be 'APPLE'). Use common words that are scrambled."
    ),
    QuestionType.READING_COMPREHENSION: (
        " Similar to: 'Marie walked to the store on Monday. She bought milk for $2.50, eggs for $3.25, "
        "and bread for $1.75. How much did Marie spend in total?'. Keep it short but require careful reading."
    ),
    QuestionType.VERBAL_MATH: (
        " Similar to: 'If you have eight apples and give three to your friend, how many apples do you "
        "have left?'. Use everyday scenarios with simple arithmetic."
    ),
}


def build_question_prompt(category: QuestionType, question_format: QuestionFormat) -> str:
    prompt = f"Generate a {category.value} question"
    if question_format is QuestionFormat.MULTIPLE_CHOICE:
        prompt += " with exactly 4 multiple-choice options (one correct, three incorrect)."
    else:
        prompt += " that can be answered with a short text answer."
    prompt += CATEGORY_GUIDANCE[category]
    prompt += (
        "\n\nRespond with a JSON object in this exact format:\n"
        "{\n"
        '  "questionText": "The question text here",\n'
        '  "correctAnswer": "The correct answer here (as a string)"'
    )
    if question_format is QuestionFormat.MULTIPLE_CHOICE:
        prompt += (
            ',\n  "mcqOptions": [\n'
            '    {"text": "First option (the correct one)", "isCorrect": true},\n'
            '    {"text": "Second option", "isCorrect": false},\n'
            '    {"text": "Third option", "isCorrect": false},\n'
            '    {"text": "Fourth option", "isCorrect": false}\n'
            "  ]"
        )
    prompt += "\n}"
    prompt += (
        "\n\nMake sure the difficulty level is appropriate for someone who has just woken up "
        "and needs to become alert."
    )
    return prompt


def build_validation_prompt(question: Question, answer: str) -> str:
    return (
        f'I have a question: "{question.text}"\n'
        f'The correct answer is: "{question.correct_answer}"\n'
        f'The user answered: "{answer}"\n\n'
        "Is the user's answer correct? Consider different formats, equivalents, minor typos, "
        "and reasonable variations of the answer.\n"
        'Think carefully and return only a JSON response in the format {"isCorrect": true} or {"isCorrect": false}'
    )


def parse_question_payload(raw: str, category: QuestionType) -> Question:
    """Turn the model's JSON reply into a Question of the requested category."""
    try:
        data = json.loads(raw)
        text = str(data["questionText"]).strip()
        answer = str(data["correctAnswer"]).strip()
        options = [
            MCQOption(text=str(item["text"]), is_correct=bool(item.get("isCorrect", False)))
            for item in data.get("mcqOptions") or []
        ]
        if not text or not answer:
            raise ValueError("empty question text or answer")
        question_format = QuestionFormat.MULTIPLE_CHOICE if options else QuestionFormat.OPEN_ENDED
        return Question(
            text=text,
            correct_answer=answer,
            category=category,
            format=question_format,
            options=options,
        )
    except (TypeError, KeyError, ValueError, AttributeError) as exc:
        raise QuestionServiceError(f"Malformed question payload: {exc}") from exc


def parse_validation_payload(raw: str) -> bool:
    try:
        data = json.loads(raw)
        verdict = data["isCorrect"]
    except (TypeError, KeyError, ValueError) as exc:
        raise QuestionServiceError(f"Malformed validation payload: {exc}") from exc
    if not isinstance(verdict, bool):
        raise QuestionServiceError(f"isCorrect must be a boolean, got {verdict!r}")
    return verdict


class GeminiQuestionClient:
    def __init__(self, api_key: str, model_name: str, timeout_ms: int = 30000, client=None):
        self.client = client or genai.Client(api_key=api_key, http_options=types.HttpOptions(timeout=timeout_ms))
        self.model_name = model_name
        logger.info("Gemini question client ready (model=%s)", model_name)

    def generate_question(self, category: QuestionType, question_format: QuestionFormat) -> Question:
        raw = self._complete(GENERATOR_INSTRUCTION, build_question_prompt(category, question_format))
        return parse_question_payload(raw, category)

    def validate_answer(self, question: Question, answer: str) -> bool:
        raw = self._complete(VALIDATOR_INSTRUCTION, build_validation_prompt(question, answer))
        return parse_validation_payload(raw)

    def _complete(self, system_instruction: str, prompt: str) -> str:
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            response_mime_type="application/json",
        )
        try:
            response = self.client.models.generate_content(model=self.model_name, contents=prompt, config=config)
        except Exception as exc:
            raise QuestionServiceError(f"Gemini request failed: {exc}") from exc
        text: Optional[str] = getattr(response, "text", None)
        if not text:
            raise QuestionServiceError("Gemini returned an empty response")
        return text
