"""Tests for product create/update/publish over the in-memory gateway."""

import pytest

from app.errors import AlreadyPublishedError, EditNotAllowedError, ForbiddenError, NotFoundError, ValidationError
from app.gateway.base import PRODUCTS
from app.gateway.records import ProductImage, QuestionSpec
from app.services.products import (
    add_image,
    create_product,
    ensure_owner,
    get_product,
    list_products,
    publish_product,
    update_product,
)
from app.services.users import get_user
from conftest import short_answer


class TestCreateProduct:
    @pytest.mark.asyncio
    async def test_incomplete_draft_is_allowed(self, gateway, make_user):
        await make_user("alice")
        product = await create_product(
            gateway, "alice", name="", description="", link="", review_schema=[]
        )
        assert product.status == "draft"
        assert (await get_product(gateway, product.id)).name == ""

    @pytest.mark.asyncio
    async def test_product_id_is_linked_to_owner(self, gateway, make_user, make_product):
        await make_user("alice")
        product = await make_product("alice", publish=False)
        assert (await get_user(gateway, "alice")).product_ids == [product.id]

    @pytest.mark.asyncio
    async def test_choices_are_cleaned_on_create(self, gateway, make_user, make_product):
        await make_user("alice")
        product = await make_product(
            "alice",
            publish=False,
            review_schema=[QuestionSpec(question="Pick", type="single-choice", choices=["A", "", "B", ""])],
        )
        stored = await get_product(gateway, product.id)
        assert stored.review_schema[0].choices == ["A", "B"]

    @pytest.mark.asyncio
    async def test_create_and_publish(self, make_user, make_product):
        await make_user("alice")
        product = await make_product("alice", publish=True)
        assert product.status == "published"

    @pytest.mark.asyncio
    async def test_create_and_publish_incomplete_writes_nothing(self, gateway, make_user):
        await make_user("alice")
        with pytest.raises(ValidationError):
            await create_product(
                gateway, "alice", name="Widget", description="", link="x",
                review_schema=[short_answer()], publish=True,
            )
        assert await gateway.query(PRODUCTS, {}) == []
        assert (await get_user(gateway, "alice")).product_ids == []

    @pytest.mark.asyncio
    async def test_unknown_owner_rolls_back_product(self, gateway, make_product):
        with pytest.raises(NotFoundError):
            await make_product("nobody", publish=False)
        assert await gateway.query(PRODUCTS, {}) == []

    @pytest.mark.asyncio
    async def test_legacy_image_url_is_kept_without_images(self, gateway, make_user, make_product):
        await make_user("alice")
        product = await make_product("alice", publish=False, image_url="https://cdn.example.com/a.png")
        assert product.image_url == "https://cdn.example.com/a.png"


class TestPublishProduct:
    @pytest.mark.asyncio
    async def test_publish_then_publish_again(self, gateway, make_user, make_product):
        await make_user("alice")
        draft = await make_product("alice", publish=False)

        published = await publish_product(gateway, draft.id)
        assert published.status == "published"

        with pytest.raises(AlreadyPublishedError):
            await publish_product(gateway, draft.id)

    @pytest.mark.asyncio
    async def test_edit_after_publish_is_rejected(self, gateway, make_user, make_product):
        await make_user("alice")
        product = await make_product("alice", publish=True)

        with pytest.raises(EditNotAllowedError):
            await update_product(gateway, product.id, name="Renamed")
        assert (await get_product(gateway, product.id)).name == "Widget"

    @pytest.mark.asyncio
    async def test_incomplete_draft_cannot_publish(self, gateway, make_user, make_product):
        await make_user("alice")
        draft = await make_product("alice", publish=False, review_schema=[])
        with pytest.raises(ValidationError):
            await publish_product(gateway, draft.id)
        assert (await get_product(gateway, draft.id)).status == "draft"

    @pytest.mark.asyncio
    async def test_unknown_product(self, gateway):
        with pytest.raises(NotFoundError):
            await publish_product(gateway, "missing")


class TestUpdateProduct:
    @pytest.mark.asyncio
    async def test_partial_update_leaves_other_fields(self, gateway, make_user, make_product):
        await make_user("alice")
        draft = await make_product("alice", publish=False, feedback_objective="onboarding")

        updated = await update_product(gateway, draft.id, name="Widget 2")

        stored = await get_product(gateway, draft.id)
        assert updated.name == stored.name == "Widget 2"
        assert stored.description == "A handy widget"
        assert stored.feedback_objective == "onboarding"

    @pytest.mark.asyncio
    async def test_objective_can_be_cleared(self, gateway, make_user, make_product):
        await make_user("alice")
        draft = await make_product("alice", publish=False, feedback_objective="onboarding")
        await update_product(gateway, draft.id, feedback_objective="  ")
        assert (await get_product(gateway, draft.id)).feedback_objective is None

    @pytest.mark.asyncio
    async def test_images_get_a_single_primary(self, gateway, make_user, make_product):
        await make_user("alice")
        draft = await make_product("alice", publish=False)
        await update_product(
            gateway,
            draft.id,
            images=[ProductImage(url="a", is_primary=True), ProductImage(url="b", is_primary=True)],
        )
        stored = await get_product(gateway, draft.id)
        assert [i.is_primary for i in stored.images] == [True, False]
        assert stored.image_url == "a"

    @pytest.mark.asyncio
    async def test_add_image_to_draft(self, gateway, make_user, make_product):
        await make_user("alice")
        draft = await make_product("alice", publish=False)
        await add_image(gateway, draft.id, "https://cdn.example.com/1.png")
        product = await add_image(gateway, draft.id, "https://cdn.example.com/2.png")
        assert [i.url for i in product.images] == [
            "https://cdn.example.com/1.png",
            "https://cdn.example.com/2.png",
        ]
        assert product.images[0].is_primary


class TestListing:
    @pytest.mark.asyncio
    async def test_filters_by_status_and_owner(self, gateway, make_user, make_product):
        await make_user("alice")
        await make_user("bob")
        live = await make_product("alice", publish=True)
        draft = await make_product("alice", publish=False)
        other = await make_product("bob", publish=True)

        published_ids = {p.id for p in await list_products(gateway, status="published")}
        assert published_ids == {live.id, other.id}
        assert {p.id for p in await list_products(gateway, owner_id="alice")} == {live.id, draft.id}

    @pytest.mark.asyncio
    async def test_only_owner_passes_ownership_check(self, make_user, make_product):
        await make_user("alice")
        product = await make_product("alice")
        ensure_owner(product, "alice")
        with pytest.raises(ForbiddenError):
            ensure_owner(product, "bob")
