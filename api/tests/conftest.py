"""Shared fixtures: an in-memory gateway plus user and product factories.

Every test gets a fresh MemoryGateway, so nothing leaks between tests and
no database or Redis is needed.
"""

from typing import Optional

import pytest

from app.gateway.base import USERS
from app.gateway.memory import MemoryGateway
from app.gateway.records import QuestionSpec
from app.services.products import create_product
from app.services.users import initialize_user


def short_answer(text: str = "What did you think of it?") -> QuestionSpec:
    return QuestionSpec(question=text, type="short-answer")


def single_choice(text: str = "Would you recommend it?", choices: Optional[list[str]] = None) -> QuestionSpec:
    return QuestionSpec(question=text, type="single-choice", choices=choices or ["Yes", "No"])


@pytest.fixture
def gateway() -> MemoryGateway:
    return MemoryGateway()


@pytest.fixture
def make_user(gateway):
    """Async factory: await make_user("alice", karma=120)."""

    async def _make(user_id: str, karma: Optional[int] = None, display_name: str = ""):
        user = await initialize_user(gateway, user_id, email=None, display_name=display_name)
        if karma is not None:
            await gateway.update(USERS, user_id, {"karma_points": karma})
            user = user.model_copy(update={"karma_points": karma})
        return user

    return _make


@pytest.fixture
def make_product(gateway):
    """Async factory for a complete product, published unless publish=False."""

    async def _make(owner_id: str, publish: bool = True, **fields):
        fields.setdefault("name", "Widget")
        fields.setdefault("description", "A handy widget")
        fields.setdefault("link", "https://widget.example.com")
        fields.setdefault("review_schema", [short_answer()])
        return await create_product(gateway, owner_id, publish=publish, **fields)

    return _make
