import pytest

from asset_ledger.errors import BadRequestError, ConflictError, NotFoundError
from asset_ledger.schemas import ContainerCreate, ContainerFilters, ContainerUpdate, ItemCreate
from asset_ledger.services import container_svc, item_svc

pytestmark = pytest.mark.asyncio


async def _box(name="Box", location="Shelf 1", **kw):
    return await container_svc.create_container(ContainerCreate(name=name, location=location, **kw))


async def _put_in(container_id, name="thing"):
    return await item_svc.create_item(
        ItemCreate(name=name, container_id=container_id, storage_type="container")
    )


async def test_create_draws_label_and_get_returns_it(db):
    c = await _box(description="cables")
    assert c.id == "0001"
    got = await container_svc.get_container(c.id)
    assert (got.name, got.location, got.description) == ("Box", "Shelf 1", "cables")
    assert got.is_disposed is False and got.item_count == 0
    assert await container_svc.container_exists(c.id)
    assert not await container_svc.container_exists("ZZZZ")


async def test_items_and_containers_share_the_label_pool(db):
    i = await item_svc.create_item(ItemCreate(name="mic"))
    c = await _box()
    j = await item_svc.create_item(ItemCreate(name="amp"))
    assert [i.label_id, c.id, j.label_id] == ["0001", "0002", "0003"]


async def test_delete_occupancy_scenario(db):
    c = await _box()
    await container_svc.delete_container(c.id)
    with pytest.raises(NotFoundError):
        await container_svc.get_container(c.id)

    c = await _box()
    item = await _put_in(c.id)
    with pytest.raises(ConflictError, match="Cannot delete container with items"):
        await container_svc.delete_container(c.id)
    await item_svc.delete_item(item.id)
    await container_svc.delete_container(c.id)
    assert not await container_svc.container_exists(c.id)


async def test_disposed_items_do_not_occupy(db):
    c = await _box()
    item = await _put_in(c.id)
    assert (await container_svc.get_container(c.id)).item_count == 1
    await item_svc.dispose_item(item.id)
    assert (await container_svc.get_container(c.id)).item_count == 0
    await container_svc.delete_container(c.id)


async def test_delete_missing_container(db):
    with pytest.raises(NotFoundError):
        await container_svc.delete_container("ZZZZ")


async def test_update_partial_and_dispose_guard(db):
    c = await _box(description="d")
    u = await container_svc.update_container(c.id, ContainerUpdate(location="Shelf 2"))
    assert (u.name, u.location, u.description) == ("Box", "Shelf 2", "d")
    assert u.updated_at > c.updated_at
    with pytest.raises(BadRequestError, match="No fields to update"):
        await container_svc.update_container(c.id, ContainerUpdate())
    await _put_in(c.id)
    with pytest.raises(ConflictError):
        await container_svc.update_container(c.id, ContainerUpdate(is_disposed=True))
    assert (await container_svc.get_container(c.id)).is_disposed is False


async def test_list_hides_disposed_by_default(db):
    a = await _box("A")
    b = await _box("B")
    await container_svc.update_container(b.id, ContainerUpdate(is_disposed=True))
    default = await container_svc.list_containers()
    assert [c.id for c in default.items] == [a.id]
    every = await container_svc.list_containers(ContainerFilters(include_disposed=True))
    assert {c.id for c in every.items} == {a.id, b.id}
    only = await container_svc.list_containers(ContainerFilters(is_disposed=True))
    assert [c.id for c in only.items] == [b.id]


async def test_list_search_location_and_item_count_sort(db):
    a = await _box("Red crate", "Lab")
    b = await _box("Blue crate", "Lab")
    c = await _box("Shelf bin", "Store")
    await _put_in(b.id, "x")
    await _put_in(b.id, "y")
    await _put_in(c.id, "z")
    res = await container_svc.list_containers(ContainerFilters(search="CRATE"))
    assert {x.id for x in res.items} == {a.id, b.id}
    res = await container_svc.list_containers(ContainerFilters(location="Lab"), sort_by="name", sort_order="asc")
    assert [x.name for x in res.items] == ["Blue crate", "Red crate"]
    res = await container_svc.list_containers(None, sort_by="item_count", sort_order="desc")
    assert [(x.id, x.item_count) for x in res.items] == [(b.id, 2), (c.id, 1), (a.id, 0)]


async def test_by_location_orders_by_name_and_skips_disposed(db):
    z = await _box("Zeta", "Hall")
    a = await _box("Alpha", "Hall")
    gone = await _box("Beta", "Hall")
    await _box("Other", "Elsewhere")
    await container_svc.update_container(gone.id, ContainerUpdate(is_disposed=True))
    rows = await container_svc.containers_by_location("Hall")
    assert [r.id for r in rows] == [a.id, z.id]


async def test_bulk_delete_is_all_or_nothing(db):
    a = await _box("A")
    b = await _box("B")
    c = await _box("C")
    await _put_in(b.id)
    with pytest.raises(ConflictError, match=b.id):
        await container_svc.bulk_delete([a.id, b.id, c.id])
    for x in (a, b, c):
        assert await container_svc.container_exists(x.id)
    assert await container_svc.bulk_delete([a.id, c.id]) == 2
    assert not await container_svc.container_exists(a.id)


async def test_bulk_rejects_empty_and_unknown(db):
    a = await _box()
    with pytest.raises(BadRequestError):
        await container_svc.bulk_delete([])
    with pytest.raises(NotFoundError):
        await container_svc.bulk_delete([a.id, "ZZZZ"])
    assert await container_svc.container_exists(a.id)


async def test_bulk_update_disposed_status(db):
    a = await _box("A")
    b = await _box("B")
    await _put_in(b.id)
    with pytest.raises(ConflictError):
        await container_svc.bulk_update_disposed_status([a.id, b.id], True)
    assert (await container_svc.get_container(a.id)).is_disposed is False
    assert await container_svc.bulk_update_disposed_status([a.id], True) == 1
    after = await container_svc.get_container(a.id)
    assert after.is_disposed is True and after.updated_at > a.updated_at
    # undispose is not guarded
    assert await container_svc.bulk_update_disposed_status([a.id, b.id], False) == 2
