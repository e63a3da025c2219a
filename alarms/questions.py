from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional, Sequence

from .models import MCQOption, Question, QuestionFormat, QuestionType, normalize_answer

logger = logging.getLogger(__name__)


def _bank(category: QuestionType, *pairs) -> List[Question]:
    return [Question(text=text, correct_answer=answer, category=category) for text, answer in pairs]


FALLBACK_BANK: Dict[QuestionType, List[Question]] = {
    QuestionType.SIMPLE_MATH: _bank(
        QuestionType.SIMPLE_MATH,
        ("What is (37 × 4) - 23 + 18?", "143"),
        ("Calculate: 125 ÷ 5 × 3 - 17", "58"),
        ("What is the result of 16² - 24 × 3?", "184"),
        ("Solve: 72 ÷ 8 + 17 × 2", "43"),
        ("Calculate: (45 - 18) × (6 + 2) ÷ 3", "72"),
    ),
    QuestionType.WORD_SCRAMBLE: _bank(
        QuestionType.WORD_SCRAMBLE,
        ("Unscramble: PPLAE", "APPLE"),
        ("Unscramble: OMPTEURC", "COMPUTER"),
        ("Unscramble: KSABRFATE", "BREAKFAST"),
        ("Unscramble: UOATNMIN", "MOUNTAIN"),
        ("Unscramble: ENOHPTLEE", "TELEPHONE"),
    ),
    QuestionType.READING_COMPREHENSION: _bank(
        QuestionType.READING_COMPREHENSION,
        (
            "Marie walked to the store on Monday. She bought milk, eggs, and bread. The milk cost $2.50, "
            "the eggs cost $3.25, and the bread cost $1.75. How much did Marie spend in total?",
            "$7.50",
        ),
        (
            "John has 3 blue shirts, 4 white shirts, and 2 black shirts in his closet. If he randomly "
            "selects a shirt, what is the probability he selects a white shirt? Express your answer as a fraction.",
            "4/9",
        ),
        (
            "The library is open from 9 AM to 8 PM on weekdays, 10 AM to 6 PM on Saturdays, and 12 PM "
            "to 5 PM on Sundays. How many hours is the library open in a week?",
            "68",
        ),
        ("Sarah planted 12 rose bushes in 3 equal rows. How many rose bushes are in each row?", "4"),
        (
            "A recipe requires 2.5 cups of flour to make 2 dozen cookies. How many cups of flour are "
            "needed to make 3 dozen cookies?",
            "3.75",
        ),
    ),
    QuestionType.VERBAL_MATH: _bank(
        QuestionType.VERBAL_MATH,
        ("If you have eight apples and give three to your friend, how many apples do you have left?", "5"),
        ("A train travels at 60 miles per hour. How far will it travel in 2.5 hours?", "150"),
        ("If a shirt costs $24 and is on sale for 25% off, what is the sale price?", "$18"),
        ("Two friends split a bill of $45. If one paid $5 more than the other, how much did the one who paid less pay?", "$20"),
        ("If you read 15 pages every day, how many pages will you read in two weeks?", "210"),
    ),
}

DEFAULT_QUESTION = ("What is 5 + 5?", "10")

DISTRACTORS = {
    QuestionType.WORD_SCRAMBLE: ["BANANA", "ORANGE", "LAPTOP"],
    QuestionType.READING_COMPREHENSION: ["$6.75", "70", "3"],
}
NUMERIC_FALLBACK_DISTRACTORS = ["25", "42", "100"]


def _distractors_for(question: Question) -> List[str]:
    if question.category in (QuestionType.SIMPLE_MATH, QuestionType.VERBAL_MATH):
        digits = "".join(ch for ch in question.correct_answer if ch.isdigit())
        if digits:
            number = int(digits)
            return [str(number + 1), str(number - 1), str(number * 2)]
        return list(NUMERIC_FALLBACK_DISTRACTORS)
    return list(DISTRACTORS.get(question.category, []))


def convert_to_mcq(question: Question, rng: Optional[random.Random] = None) -> Question:
    """Multiple-choice copy of an open-ended question: the answer plus three shuffled distractors."""
    rng = rng or random.Random()
    correct = normalize_answer(question.correct_answer)
    wrong: List[str] = []
    for candidate in _distractors_for(question):
        if normalize_answer(candidate) != correct and candidate not in wrong:
            wrong.append(candidate)
    while len(wrong) < 3:
        wrong.append(f"Option {len(wrong) + 1}")
    options = [MCQOption(text=question.correct_answer, is_correct=True)]
    options.extend(MCQOption(text=text) for text in wrong[:3])
    rng.shuffle(options)
    return Question(
        text=question.text,
        correct_answer=question.correct_answer,
        category=question.category,
        format=QuestionFormat.MULTIPLE_CHOICE,
        options=options,
    )


class QuestionProvider:
    """Produces questions and judges answers, with a local bank behind the remote service.

    ``remote`` is anything with ``generate_question(category, format)`` and
    ``validate_answer(question, answer)``; it is only used when
    ``use_ai_validation`` is on.
    """

    def __init__(
        self,
        remote=None,
        prefer_multiple_choice: bool = False,
        use_ai_validation: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self.remote = remote
        self.prefer_multiple_choice = prefer_multiple_choice
        self.use_ai_validation = use_ai_validation
        self.rng = rng or random.Random()

    @property
    def ai_enabled(self) -> bool:
        return self.use_ai_validation and self.remote is not None

    @property
    def preferred_format(self) -> QuestionFormat:
        if self.prefer_multiple_choice:
            return QuestionFormat.MULTIPLE_CHOICE
        return QuestionFormat.OPEN_ENDED

    def choose_category(self, categories: Sequence[QuestionType]) -> Optional[QuestionType]:
        if not categories:
            return None
        return self.rng.choice(list(categories))

    def generate(self, category: QuestionType) -> Question:
        category = QuestionType(category)
        if self.ai_enabled:
            try:
                question = self.remote.generate_question(category, self.preferred_format)
                # The remote side does not get to pick the category.
                question.category = category
                return question
            except Exception as exc:
                logger.warning("Remote question generation failed for %s, using local bank: %s", category.value, exc)
        return self.fallback_question(category)

    def generate_random(self, categories: Sequence[QuestionType]) -> Question:
        category = self.choose_category(categories)
        if category is None:
            text, answer = DEFAULT_QUESTION
            return Question(text=text, correct_answer=answer, category=QuestionType.SIMPLE_MATH)
        return self.generate(category)

    def judge(self, question: Question, answer: str) -> bool:
        if question.format is QuestionFormat.MULTIPLE_CHOICE:
            return question.is_correct(answer)
        if self.ai_enabled:
            try:
                return bool(self.remote.validate_answer(question, answer))
            except Exception as exc:
                logger.warning("Remote answer validation failed, using exact comparison: %s", exc)
        return question.is_correct(answer)

    def fallback_question(self, category: QuestionType) -> Question:
        template = self.rng.choice(FALLBACK_BANK[category])
        question = Question(text=template.text, correct_answer=template.correct_answer, category=category)
        if self.prefer_multiple_choice:
            return convert_to_mcq(question, self.rng)
        return question

    def sample_question(self) -> Question:
        """A bank question for previews, drawn from the first entry of each category."""
        template = self.rng.choice([bank[0] for bank in FALLBACK_BANK.values()])
        question = Question(text=template.text, correct_answer=template.correct_answer, category=template.category)
        if self.prefer_multiple_choice:
            return convert_to_mcq(question, self.rng)
        return question
