from __future__ import annotations

import asyncio

import pytest

from conftest import PUBLIC, READER, RecordingStore, FakeRoleSource, set_enabled
from fieldguard.content.registry import SchemaRegistry
from fieldguard.content.schema import AssociationDef, AttributeDef, ModelSchema
from fieldguard.errors import SchemaNotFound, SerializationTimeout
from fieldguard.permissions.lookup import PermissionLookup
from fieldguard.permissions.reconcile import ReconciliationEngine
from fieldguard.permissions.serializer import DROP, FilteringSerializer
from fieldguard.permissions.values import MODEL_MARKER, ModelRecord, to_value


def article(**fields) -> ModelRecord:
    return ModelRecord(model="Article", fields=fields)


@pytest.mark.asyncio
async def test_private_and_unknown_fields_are_dropped(serializer, reconciled):
    result = await serializer.serialize(READER, article(id=1, title="hi", secret="x", extra="y"))
    assert result == {"id": 1, "title": "hi"}


@pytest.mark.asyncio
async def test_structural_fields_pass_through(serializer, reconciled):
    record = article(_id="abc", createdAt="2024-01-01", updatedAt="2024-01-02", title="t")
    result = await serializer.serialize(READER, record)
    assert result == {"_id": "abc", "createdAt": "2024-01-01", "updatedAt": "2024-01-02", "title": "t"}


@pytest.mark.asyncio
async def test_disabled_model_hides_the_whole_record(serializer, reconciled):
    await set_enabled(reconciled, {"role": READER.id, "model": "Article", "scope": "model"}, False)

    assert await serializer.serialize(READER, article(id=1, title="hi")) is None


@pytest.mark.asyncio
async def test_disabled_attribute_is_dropped(serializer, reconciled):
    await set_enabled(reconciled, {"role": READER.id, "model": "Article", "attribute": "title"}, False)

    assert await serializer.serialize(READER, article(id=1, title="hi")) == {"id": 1}


@pytest.mark.asyncio
async def test_nested_association_is_filtered_with_target_permissions(serializer, reconciled):
    record = article(
        id=1,
        title="hi",
        author=ModelRecord(model="User", fields={"id": 7, "username": "ann", "email": "ann@example.com"}),
    )

    result = await serializer.serialize(READER, record)

    assert result == {"id": 1, "title": "hi", "author": {"id": 7, "username": "ann"}}


@pytest.mark.asyncio
async def test_nested_model_without_permission_is_dropped(serializer, reconciled):
    await set_enabled(reconciled, {"role": READER.id, "model": "User", "scope": "model"}, False)
    record = article(id=1, title="hi", author={"id": 7, "username": "ann"})

    assert await serializer.serialize(READER, record) == {"id": 1, "title": "hi"}


@pytest.mark.asyncio
async def test_nested_model_without_any_record_is_dropped(serializer, reconciled):
    user_model = await reconciled.find_one({"role": READER.id, "model": "User", "scope": "model"})
    await reconciled.delete(user_model)
    record = article(id=1, title="hi", author=ModelRecord(model="User", fields={"id": 7, "username": "ann"}))

    assert await serializer.serialize(READER, record) == {"id": 1, "title": "hi"}


@pytest.mark.asyncio
async def test_collection_association_filters_each_element(serializer, reconciled):
    user = ModelRecord(
        model="User",
        fields={
            "id": 7,
            "username": "ann",
            "articles": [{"id": 1, "title": "a", "secret": "s"}, {"id": 2, "title": "b"}],
        },
    )

    result = await serializer.serialize(READER, user)

    assert result == {"id": 7, "username": "ann", "articles": [{"id": 1, "title": "a"}, {"id": 2, "title": "b"}]}


@pytest.mark.asyncio
async def test_collection_elements_dropped_when_target_hidden(serializer, reconciled):
    await set_enabled(reconciled, {"role": READER.id, "model": "Article", "scope": "model"}, False)
    user = ModelRecord(model="User", fields={"id": 7, "articles": [{"id": 1, "title": "a"}]})

    assert await serializer.serialize(READER, user) == {"id": 7, "articles": []}


@pytest.mark.asyncio
async def test_unpopulated_references_and_empty_values_pass_through(serializer, reconciled):
    result = await serializer.serialize(READER, article(id=1, title="", author=7))
    assert result == {"id": 1, "title": "", "author": 7}

    result = await serializer.serialize(READER, article(id=2, title=0, author=None))
    assert result == {"id": 2, "title": 0, "author": None}


@pytest.mark.asyncio
async def test_plain_containers_keep_their_shape(serializer, reconciled):
    payload = {"data": [article(id=1, title="a", secret="s")], "meta": {"total": 1, "tags": ("x", "y")}}

    result = await serializer.serialize(READER, payload)

    assert result == {"data": [{"id": 1, "title": "a"}], "meta": {"total": 1, "tags": ["x", "y"]}}


@pytest.mark.asyncio
async def test_scalars_are_returned_unchanged(serializer, reconciled):
    assert await serializer.serialize(READER, 42) == 42
    assert await serializer.serialize(READER, "text") == "text"
    assert await serializer.serialize(READER, None) is None


@pytest.mark.asyncio
async def test_self_reference_terminates(serializer, reconciled):
    raw = {MODEL_MARKER: "Article", "id": 1, "title": "hi"}
    raw["author"] = {MODEL_MARKER: "User", "id": 7, "username": "ann", "articles": [raw]}

    result = await serializer.serialize(READER, to_value(raw))

    assert result == {"id": 1, "title": "hi", "author": {"id": 7, "username": "ann", "articles": []}}


@pytest.mark.asyncio
async def test_depth_cap_drops_deep_branches(registry, lookup, reconciled):
    shallow = FilteringSerializer(registry, lookup, max_depth=2)

    result = await shallow.serialize(READER, {"a": {"b": {"c": {"d": 1}}}})

    assert result == {"a": {"b": {}}}


@pytest.mark.asyncio
async def test_unknown_root_model_raises(serializer, reconciled):
    with pytest.raises(SchemaNotFound):
        await serializer.serialize(READER, ModelRecord(model="Ghost", fields={"id": 1}))


@pytest.mark.asyncio
async def test_unknown_association_target_is_dropped(roles):
    page = ModelSchema(
        name="Page",
        attributes={"title": AttributeDef("title"), "ghost": AttributeDef("ghost")},
        associations=(AssociationDef(alias="ghost", target_model="Ghost", nature="oneWay"),),
    )
    registry = SchemaRegistry([page])
    store = RecordingStore()
    await ReconciliationEngine(registry, store).reconcile([READER])
    serializer = FilteringSerializer(registry, PermissionLookup(registry, store, roles))

    record = ModelRecord(model="Page", fields={"id": 1, "title": "home", "ghost": {"id": 2}})

    assert await serializer.serialize(READER, record) == {"id": 1, "title": "home"}


@pytest.mark.asyncio
async def test_markers_never_reach_the_output(serializer, reconciled):
    raw = {MODEL_MARKER: "Article", "__plugin__": None, "__v": 3, "id": 1, "title": "hi"}

    assert await serializer.serialize(READER, to_value(raw)) == {"id": 1, "title": "hi"}


@pytest.mark.asyncio
async def test_field_policy_can_transform_or_drop(registry, lookup, reconciled):
    def policy(field):
        if field.attribute == "username":
            return DROP
        if field.attribute == "title":
            return field.value.upper()
        return field.value

    custom = FilteringSerializer(registry, lookup, field_policy=policy)
    record = article(id=1, title="hi", author={"id": 7, "username": "ann"})

    assert await custom.serialize(READER, record) == {"id": 1, "title": "HI", "author": {"id": 7}}


@pytest.mark.asyncio
async def test_missing_role_uses_public_permissions(serializer, reconciled):
    await set_enabled(reconciled, {"role": PUBLIC.id, "model": "Article", "attribute": "title"}, False)

    assert await serializer.serialize(None, article(id=1, title="hi")) == {"id": 1}
    assert await serializer.serialize(READER, article(id=1, title="hi")) == {"id": 1, "title": "hi"}


class SlowStore(RecordingStore):
    async def find_one(self, filters):
        await asyncio.sleep(1)
        return await super().find_one(filters)


@pytest.mark.asyncio
async def test_timeout_raises(registry):
    store = SlowStore()
    serializer = FilteringSerializer(
        registry,
        PermissionLookup(registry, store, FakeRoleSource([PUBLIC, READER])),
        timeout=0.05,
    )

    with pytest.raises(SerializationTimeout):
        await serializer.serialize(READER, article(id=1, title="hi"))


@pytest.mark.asyncio
async def test_model_nested_under_plain_attribute_is_filtered_as_its_own_model(serializer, reconciled):
    raw = {MODEL_MARKER: "Article", "id": 1, "title": {MODEL_MARKER: "User", "username": "ann", "email": "private@x"}}

    result = await serializer.serialize(READER, to_value(raw))

    assert result == {"id": 1, "title": {"username": "ann"}}


@pytest.mark.asyncio
async def test_hidden_model_nested_under_plain_attribute_is_dropped(serializer, reconciled):
    await set_enabled(reconciled, {"role": READER.id, "model": "User", "scope": "model"}, False)
    raw = {MODEL_MARKER: "Article", "id": 1, "title": [{MODEL_MARKER: "User", "email": "private@x"}, "plain"]}

    result = await serializer.serialize(READER, to_value(raw))

    assert result == {"id": 1, "title": ["plain"]}


@pytest.mark.asyncio
async def test_models_inside_structural_fields_are_filtered(serializer, reconciled):
    raw = {
        MODEL_MARKER: "Article",
        "id": {MODEL_MARKER: "User", "username": "ann", "email": "private@x"},
        "createdAt": {MODEL_MARKER: "Ghost", "secret": "x"},
        "title": "hi",
    }

    result = await serializer.serialize(READER, to_value(raw))

    assert result == {"id": {"username": "ann"}, "title": "hi"}
    assert not any(isinstance(v, ModelRecord) for v in result.values())
