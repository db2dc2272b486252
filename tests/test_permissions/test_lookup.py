from __future__ import annotations

import pytest

from conftest import PUBLIC, READER, set_enabled
from fieldguard.errors import SchemaNotFound
from fieldguard.schemas.permissions import PermissionRecord


@pytest.mark.asyncio
async def test_model_scope_lookup(lookup, reconciled):
    permission = await lookup.lookup(READER, "Article")

    assert permission is not None
    assert permission.scope == "model"
    assert permission.attribute is None
    assert permission.enabled is True


@pytest.mark.asyncio
async def test_attribute_scope_lookup(lookup, reconciled):
    title = await lookup.lookup(READER, "Article", "title")
    secret = await lookup.lookup(READER, "Article", "secret")

    assert (title.attribute, title.enabled) == ("title", True)
    assert (secret.attribute, secret.enabled) == ("secret", False)


@pytest.mark.asyncio
async def test_undeclared_attribute_is_denied_even_with_a_record(lookup, reconciled):
    await reconciled.create(
        PermissionRecord(role=READER.id, model="Article", scope="attribute", attribute="extra", enabled=True)
    )

    assert await lookup.lookup(READER, "Article", "extra") is None


@pytest.mark.asyncio
async def test_missing_record_is_denied(lookup, store):
    assert await lookup.lookup(READER, "Article") is None
    assert await lookup.lookup(READER, "Article", "title") is None


@pytest.mark.asyncio
async def test_no_role_falls_back_to_public(lookup, reconciled):
    permission = await lookup.lookup(None, "Article", "title")

    assert permission.role == PUBLIC.id


@pytest.mark.asyncio
async def test_plugin_model_lookup_uses_plugin_namespace(lookup, registry, reconciled):
    file_model = await registry.get_model("File", "upload")

    permission = await lookup.lookup(READER, file_model, "hash")

    assert permission.type == "upload"
    assert permission.enabled is False


@pytest.mark.asyncio
async def test_lookup_sees_latest_store_state(lookup, reconciled):
    assert (await lookup.lookup(READER, "Article", "title")).enabled is True

    await set_enabled(reconciled, {"role": READER.id, "model": "Article", "attribute": "title"}, False)

    assert (await lookup.lookup(READER, "Article", "title")).enabled is False


@pytest.mark.asyncio
async def test_unknown_model_name_raises(lookup, reconciled):
    with pytest.raises(SchemaNotFound):
        await lookup.lookup(READER, "Ghost")
