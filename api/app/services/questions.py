"""Survey question drafting for the product upload form.

Asks Claude for 3-5 questions tailored to the product and the founder's
feedback objective, and falls back to a static, keyword-tailored list when
no API key is configured or the model output cannot be used. The result
only pre-fills a form: the lifecycle rules validate whatever the founder
finally saves.
"""

import json
import re
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from app.config import settings
from app.errors import ValidationError
from app.gateway.records import CHOICE_TYPES, QuestionSpec
from app.metrics import question_generation

log = structlog.get_logger(__name__)

MAX_OUTPUT_TOKENS = 1500
TEMPERATURE = 0.3

SYSTEM_PROMPT = (
    "You are an expert survey designer specializing in user research. Create "
    "specific survey questions that directly address the stated feedback "
    "objective, drilling into that area rather than asking generic questions. "
    "Focus on actionable insights that help a founder make decisions."
)

LIKERT_GUIDE = (
    "For ALL single-choice questions use a 5-point Likert scale, e.g.\n"
    '- Agreement: "Strongly Disagree", "Disagree", "Neutral", "Agree", "Strongly Agree"\n'
    '- Frequency: "Never", "Rarely", "Sometimes", "Often", "Always"\n'
    '- Quality: "Poor", "Fair", "Good", "Very Good", "Excellent"\n'
    '- Satisfaction: "Very Dissatisfied", "Dissatisfied", "Neutral", "Satisfied", "Very Satisfied"\n'
    "Multiple-choice questions get specific contextual options instead.\n"
)

OUTPUT_FORMAT = (
    "Return ONLY a JSON array in this exact format:\n"
    '[{"question": "string", "type": "short-answer" | "single-choice" | "multiple-choice", '
    '"choices": ["option1", "option2"]}]\n'
    "Include choices only for choice types."
)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class QuestionParseError(ValueError):
    """Raised when model output is not a usable question list."""


def build_prompt(product_name: str, description: str, feedback_objective: Optional[str]) -> str:
    if feedback_objective:
        return (
            f'You are generating survey questions for a product called "{product_name}" '
            f"({description}).\n\n"
            f'The primary goal is to gather feedback on: "{feedback_objective}"\n\n'
            "Generate 3-5 targeted questions; every question must help understand that "
            "objective. Mix short-answer questions (to learn why) with choice questions "
            "(for quick quantitative signal).\n"
            + LIKERT_GUIDE
            + OUTPUT_FORMAT
        )
    return (
        f'Generate 3-5 survey questions for a product called "{product_name}" with '
        f'description: "{description}".\n\n'
        "Questions must be specific and actionable, cover usability, value, design and "
        "features, and at least 2 must be choice-based.\n"
        + LIKERT_GUIDE
        + OUTPUT_FORMAT
    )


def parse_questions(text: str, limit: int) -> list[QuestionSpec]:
    """Extract the first JSON array from model output and validate each entry."""
    match = _JSON_ARRAY.search(text)
    if match is None:
        raise QuestionParseError("no JSON array in model output")
    try:
        raw_questions = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise QuestionParseError(f"invalid JSON: {exc}") from exc
    if not isinstance(raw_questions, list) or not raw_questions:
        raise QuestionParseError("expected a non-empty JSON array")

    questions: list[QuestionSpec] = []
    for raw in raw_questions[:limit]:
        try:
            question = QuestionSpec.model_validate(raw)
        except PydanticValidationError as exc:
            raise QuestionParseError(f"invalid question entry: {raw!r}") from exc
        if not question.question.strip():
            raise QuestionParseError("question text is empty")
        if question.type in CHOICE_TYPES and len(question.choices or []) < 2:
            raise QuestionParseError("choice questions need at least 2 options")
        if question.type not in CHOICE_TYPES:
            question = question.model_copy(update={"choices": None})
        questions.append(question)
    return questions


def _q(text: str, choices: Optional[list[str]] = None, multiple: bool = False) -> QuestionSpec:
    if choices is None:
        return QuestionSpec(question=text, type="short-answer")
    return QuestionSpec(
        question=text,
        type="multiple-choice" if multiple else "single-choice",
        choices=choices,
    )


def generic_questions(product_name: str) -> list[QuestionSpec]:
    return [
        _q(
            f"How would you rate your overall experience with {product_name}?",
            ["Very Poor", "Poor", "Average", "Good", "Excellent"],
        ),
        _q(
            "How easy was it to use this product?",
            ["Very Difficult", "Difficult", "Neutral", "Easy", "Very Easy"],
        ),
        _q("What specific features did you find most valuable?"),
        _q(
            "How likely are you to continue using this product?",
            ["Not Likely", "Unlikely", "Neutral", "Likely", "Very Likely"],
        ),
        _q("What challenges did you encounter while using the product?"),
    ]


def fallback_questions(
    product_name: str,
    feedback_objective: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[QuestionSpec]:
    """Static question set, tailored by keywords in the feedback objective."""
    limit = settings.max_questions if limit is None else limit
    if not feedback_objective:
        return generic_questions(product_name)[:limit]

    objective = feedback_objective.lower()
    questions: list[QuestionSpec] = []

    if any(word in objective for word in ("daily", "regularly", "often")):
        questions.append(_q(
            "How often do you plan to use this product?",
            ["Daily", "Several times a week", "Once a week", "A few times a month", "Rarely or never"],
        ))
    if any(word in objective for word in ("why not", "prevent", "barrier")):
        questions.append(_q(
            "What would prevent you from using this product more frequently?",
            [
                "It's not useful enough",
                "Too complicated to use",
                "Not integrated into my workflow",
                "I prefer other solutions",
                "Other",
            ],
            multiple=True,
        ))
        questions.append(_q("Please explain in more detail what prevents you from using this product"))
    if any(word in objective for word in ("satisfied", "satisfaction", "happy")):
        questions.append(_q(
            "How satisfied are you with this product?",
            ["Very Dissatisfied", "Dissatisfied", "Neutral", "Satisfied", "Very Satisfied"],
        ))
    if "feature" in objective or "use" in objective:
        questions.append(_q(
            "Which features did you find most useful?",
            ["Feature A", "Feature B", "Feature C", "Feature D"],
            multiple=True,
        ))
    if any(word in objective for word in ("design", "ui", "interface", "layout")):
        questions.append(_q(
            "How would you rate the visual design and user interface?",
            ["Poor", "Below Average", "Average", "Above Average", "Excellent"],
        ))

    if len(questions) < 3:
        questions.append(_q("What improvements would make this product more valuable to you?"))

    while len(questions) < limit:
        questions.append(_q(
            f"How would you rate your overall experience with {product_name}?",
            ["Very Poor", "Poor", "Average", "Good", "Excellent"],
        ))
        if len(questions) >= limit:
            break
        questions.append(_q("What specific features or aspects would you like to see improved?"))

    return questions[:limit]


class QuestionGenerator:
    def __init__(self, client=None, api_key: Optional[str] = None, model: Optional[str] = None) -> None:
        self._api_key = settings.anthropic_api_key if api_key is None else api_key
        self._model = model or settings.question_model
        self._client = client
        self._skip = client is None and not self._api_key
        if self._skip:
            log.warning("question_generator_no_api_key")

    def _get_client(self):
        if self._client is None:
            import anthropic
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def generate(
        self,
        product_name: str,
        description: str,
        feedback_objective: Optional[str] = None,
    ) -> tuple[list[QuestionSpec], str]:
        """Draft questions for a product.

        Returns:
            (questions, source) where source is "ai" or "fallback".

        Raises:
            ValidationError: product name or description is blank.
        """
        if not product_name.strip() or not description.strip():
            raise ValidationError("Product name and description are required")
        objective = (feedback_objective or "").strip() or None

        if self._skip:
            return self._fallback(product_name, objective, reason="no_api_key")

        try:
            response = await self._get_client().messages.create(
                model=self._model,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_prompt(product_name, description, objective)}],
                max_tokens=MAX_OUTPUT_TOKENS,
                temperature=TEMPERATURE,
            )
            questions = parse_questions(response.content[0].text, settings.max_questions)
        except QuestionParseError as exc:
            return self._fallback(product_name, objective, reason=str(exc))
        except Exception as exc:
            # Client/transport failures only cost the founder a pre-filled form
            return self._fallback(product_name, objective, reason=repr(exc))

        question_generation.labels(source="ai").inc()
        log.info("questions_generated", product_name=product_name, count=len(questions))
        return questions, "ai"

    def _fallback(
        self, product_name: str, objective: Optional[str], reason: str
    ) -> tuple[list[QuestionSpec], str]:
        question_generation.labels(source="fallback").inc()
        log.warning("question_generation_fallback", product_name=product_name, reason=reason)
        return fallback_questions(product_name, objective), "fallback"
