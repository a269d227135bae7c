import pytest

from asset_ledger.errors import BadRequestError, ConflictError, InternalServerError, NotFoundError
from asset_ledger.schemas import ContainerCreate, ItemCreate, ItemFilters, ItemUpdate, LoanCreate
from asset_ledger.services import container_svc, item_svc, loan_svc

pytestmark = pytest.mark.asyncio


async def _make(name, **kw):
    return await item_svc.create_item(ItemCreate(name=name, **kw))


async def _corrupt_connection_names(db, item_id, value):
    async with db.transaction() as conn:
        p = conn.dialect.placeholder
        await conn.execute(f"UPDATE items SET connection_names = {p(1)} WHERE id = {p(2)}", (value, item_id))


async def test_get_after_create_returns_request_fields_and_defaults(db):
    req = ItemCreate(
        name="Wireless Mic",
        model_number="SM58",
        remarks="stage A",
        purchase_year=2023,
        purchase_amount=12800.0,
        durability_years=5,
        connection_names=["XLR", "USB-C"],
        cable_color_pattern=["red", "blue", "red"],
        storage_location="Room 101",
        qr_code_type="qr",
    )
    created = await item_svc.create_item(req)
    got = await item_svc.get_item(created.id)
    for field, value in req.model_dump(exclude_unset=True).items():
        assert getattr(got, field) == value, field
    assert got.storage_type == "location"
    assert got.is_on_loan is False and got.is_disposed is False
    assert got.is_depreciation_target is False
    assert len(got.label_id) == 4
    assert got.created_at is not None and got.created_at.tzinfo is not None


async def test_labels_are_drawn_from_the_shared_counter(db):
    a = await _make("A")
    b = await _make("B")
    assert (a.label_id, b.label_id) == ("0001", "0002")
    assert (await item_svc.get_item_by_label("0002")).id == b.id


async def test_supplied_label_is_validated(db):
    with pytest.raises(BadRequestError):
        await _make("bad", label_id="abc")
    await _make("first", label_id="00ZZ")
    with pytest.raises(ConflictError):
        await _make("second", label_id="00ZZ")


async def test_allocation_skips_manually_taken_label(db):
    await _make("manual", label_id="0001")
    auto = await _make("auto")
    assert auto.label_id == "0002"


async def test_missing_item(db):
    with pytest.raises(NotFoundError):
        await item_svc.get_item(999)
    with pytest.raises(NotFoundError):
        await item_svc.get_item_by_label("ZZZZ")


async def test_partial_update_changes_only_supplied_field(db):
    item = await _make("Old", remarks="keep", connection_names=["HDMI"], purchase_year=2020)
    before = await item_svc.get_item(item.id)
    after = await item_svc.update_item(item.id, ItemUpdate(name="New"))
    assert after.name == "New"
    for field in ("label_id", "remarks", "connection_names", "purchase_year", "storage_type",
                  "is_on_loan", "is_disposed", "created_at"):
        assert getattr(after, field) == getattr(before, field), field
    assert after.updated_at > before.updated_at


async def test_updated_at_strictly_increases_on_rapid_updates(db):
    item = await _make("tick")
    stamps = [item.updated_at]
    for i in range(5):
        stamps.append((await item_svc.update_item(item.id, ItemUpdate(remarks=str(i)))).updated_at)
    assert all(b > a for a, b in zip(stamps, stamps[1:]))


async def test_empty_update_is_bad_request(db):
    item = await _make("x")
    with pytest.raises(BadRequestError, match="No fields to update"):
        await item_svc.update_item(item.id, ItemUpdate())


async def test_update_label_checks_uniqueness(db):
    a = await _make("a")
    b = await _make("b")
    with pytest.raises(ConflictError):
        await item_svc.update_item(b.id, ItemUpdate(label_id=a.label_id))
    same = await item_svc.update_item(b.id, ItemUpdate(label_id=b.label_id, remarks="r"))
    assert same.label_id == b.label_id


async def test_filter_conjunction_is_intersection(db):
    box = await container_svc.create_container(ContainerCreate(name="Box", location="Shelf"))
    specs = [
        ("Camera A", dict()),
        ("Camera B", dict(container_id=box.id, storage_type="container")),
        ("Tripod", dict(container_id=box.id, storage_type="container")),
        ("camera c", dict()),
    ]
    ids = {}
    for name, kw in specs:
        ids[name] = (await _make(name, **kw)).id
    await item_svc.dispose_item(ids["camera c"])

    async def idset(**kw):
        res = await item_svc.list_items(ItemFilters(**kw), per_page=100)
        return {i.id for i in res.items}

    a = await idset(search="CAMERA")
    b = await idset(is_disposed=False)
    c = await idset(storage_type="container")
    assert a == {ids["Camera A"], ids["Camera B"], ids["camera c"]}
    assert await idset(search="CAMERA", is_disposed=False) == a & b
    assert await idset(search="camera", storage_type="container") == a & c
    assert await idset(container_id=box.id, is_disposed=False, search="tri") == {ids["Tripod"]}


async def test_pagination_visits_every_row_once_in_order(db):
    names = ["delta", "alpha", "charlie", "alpha", "bravo", "echo"]
    for n in names:
        await _make(n)
    seen = []
    for page in (1, 2, 3):
        res = await item_svc.list_items(None, sort_by="name", sort_order="asc", page=page, per_page=2)
        assert res.total == 6
        seen += res.items
    assert len({i.id for i in seen}) == 6
    assert [i.name for i in seen] == sorted(names)
    dup = [i.id for i in seen if i.name == "alpha"]
    assert dup == sorted(dup)
    empty = await item_svc.list_items(None, page=4, per_page=2)
    assert empty.items == [] and empty.total == 6


async def test_unknown_sort_key_falls_back_to_created_at(db):
    first = await _make("z")
    second = await _make("a")
    res = await item_svc.list_items(None, sort_by="password", sort_order="desc")
    assert [i.id for i in res.items] == [second.id, first.id]


async def test_delete_refused_while_on_loan(db):
    item = await _make("Projector")
    loan = await loan_svc.create_loan(LoanCreate(item_id=item.id, student_number="s1", student_name="A"))
    with pytest.raises(ConflictError, match="on loan"):
        await item_svc.delete_item(item.id)
    await loan_svc.return_loan(loan.id)
    await item_svc.delete_item(item.id)
    with pytest.raises(NotFoundError):
        await item_svc.get_item(item.id)


async def test_delete_refused_with_active_loan_row(db):
    item = await _make("Speaker")
    await loan_svc.create_loan(LoanCreate(item_id=item.id, student_number="s1", student_name="A"))
    # flag cleared by hand; the open loan row still blocks deletion
    async with db.transaction() as conn:
        p = conn.dialect.placeholder
        await conn.execute(
            f"UPDATE items SET is_on_loan = {conn.dialect.bool_literal(False)} WHERE id = {p(1)}", (item.id,)
        )
    with pytest.raises(ConflictError, match="active loans"):
        await item_svc.delete_item(item.id)


async def test_dispose_and_undispose(db):
    item = await _make("Old amp")
    d = await item_svc.dispose_item(item.id)
    assert d.is_disposed is True and d.updated_at > item.updated_at
    u = await item_svc.undispose_item(item.id)
    assert u.is_disposed is False and u.updated_at > d.updated_at


async def test_dispose_on_loan_item_is_permitted(db):
    item = await _make("Laptop")
    await loan_svc.create_loan(LoanCreate(item_id=item.id, student_number="s1", student_name="A"))
    d = await item_svc.dispose_item(item.id)
    assert d.is_disposed is True and d.is_on_loan is True


async def test_container_storage_requires_existing_container(db):
    with pytest.raises(BadRequestError):
        await _make("loose", storage_type="container")
    with pytest.raises(BadRequestError):
        await _make("ghost", storage_type="container", container_id="ZZZZ")


async def test_suggestions(db):
    await _make("a", connection_names=["USB", "HDMI"], storage_location="Room B")
    await _make("b", connection_names=["HDMI", "XLR"], storage_location="Room A")
    await _make("c", storage_location="Room B")
    assert await item_svc.connection_name_suggestions() == ["HDMI", "USB", "XLR"]
    assert await item_svc.storage_location_suggestions() == ["Room A", "Room B"]


async def test_malformed_json_is_strict_by_default(db):
    item = await _make("broken", connection_names=["ok"])
    await _corrupt_connection_names(db, item.id, "[not json")
    with pytest.raises(InternalServerError, match="connection_names"):
        await item_svc.get_item(item.id)


async def test_malformed_json_lenient_mode(db):
    item = await _make("broken", connection_names=["ok"])
    await _corrupt_connection_names(db, item.id, "[not json")
    db.strict_json = False
    got = await item_svc.get_item(item.id)
    assert got.connection_names is None


async def test_search_folds_case_beyond_ascii(db):
    hit = await _make("Éclair Monitor")
    await _make("Eclair Stand")
    for term in ("éclair", "ÉCLAIR", "monitor"):
        res = await item_svc.list_items(ItemFilters(search=term))
        assert [i.id for i in res.items] == [hit.id], term


async def test_search_treats_wildcards_literally(db):
    pct = await _make("50% duty fan")
    await _make("500W amp")
    under = await _make("cable_a")
    await _make("cableXa")
    res = await item_svc.list_items(ItemFilters(search="50%"))
    assert [i.id for i in res.items] == [pct.id]
    res = await item_svc.list_items(ItemFilters(search="cable_"))
    assert [i.id for i in res.items] == [under.id]
