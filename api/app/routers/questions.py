"""Survey question drafting.

POST /api/v1/questions/generate -- draft review questions for a product
"""

from fastapi import APIRouter, Depends

from app.dependencies import CurrentUser
from app.middleware.rate_limiter import WriteRateLimit
from app.schemas.question import QuestionGenerationRequest, QuestionGenerationResponse
from app.services.questions import QuestionGenerator

router = APIRouter(prefix="/api/v1", tags=["questions"])


def get_question_generator() -> QuestionGenerator:
    return QuestionGenerator()


@router.post("/questions/generate", response_model=QuestionGenerationResponse)
async def generate_questions(
    body: QuestionGenerationRequest,
    user: CurrentUser,
    _rate: WriteRateLimit,
    generator: QuestionGenerator = Depends(get_question_generator),
) -> QuestionGenerationResponse:
    """Draft 1-5 review questions from the product name, description and objective.

    Never fails because of the language model: when it is unavailable or
    answers with something unusable, template questions are returned with
    source="fallback".
    """
    questions, source = await generator.generate(
        body.product_name, body.description, body.feedback_objective
    )
    return QuestionGenerationResponse(questions=questions, source=source)
