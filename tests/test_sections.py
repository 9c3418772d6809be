import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.api.v1.sections import service as sections
from app.api.v1.sections.schemas import SectionCreate, SectionUpdate
from app.core.exceptions import DuplicateSection, HasDependents, InvalidClassLabel
from app.core.models import ClassSection


async def test_create_uses_next_free_identifier(db_session, ctx) -> None:
    first = await sections.create_section(db_session, ctx, SectionCreate(class_name="5"))
    second = await sections.create_section(db_session, ctx, SectionCreate(class_name="5"))
    other = await sections.create_section(db_session, ctx, SectionCreate(class_name="6"))

    assert (first.section_identifier, second.section_identifier) == ("A", "B")
    assert other.section_identifier == "A"
    assert await sections.next_section_identifier(db_session, ctx, "5") == "C"


async def test_duplicate_identifier_in_class_is_rejected(db_session, ctx) -> None:
    await sections.create_section(db_session, ctx, SectionCreate(class_name="5", section_identifier="a"))

    with pytest.raises(DuplicateSection):
        await sections.create_section(db_session, ctx, SectionCreate(class_name="5", section_identifier="A"))


async def test_edit_into_existing_identifier_is_rejected(db_session, ctx) -> None:
    await sections.create_section(db_session, ctx, SectionCreate(class_name="5", section_identifier="A"))
    b = await sections.create_section(db_session, ctx, SectionCreate(class_name="5", section_identifier="B"))

    with pytest.raises(DuplicateSection):
        await sections.update_section(db_session, ctx, b.id, SectionUpdate(section_identifier="A"))

    renamed = await sections.update_section(db_session, ctx, b.id, SectionUpdate(section_identifier="C"))
    assert renamed.section_identifier == "C"


async def test_unknown_class_label_is_rejected(db_session, ctx) -> None:
    with pytest.raises(InvalidClassLabel):
        await sections.create_section(db_session, ctx, SectionCreate(class_name="13"))


async def test_delete_section_with_students_is_rejected(db_session, ctx, make_section, make_student) -> None:
    section = await make_section(ctx, "4", "A")
    await make_student(ctx, section)

    with pytest.raises(HasDependents):
        await sections.delete_section(db_session, ctx, section.id)

    remaining = await db_session.execute(select(ClassSection.id))
    assert remaining.scalars().all() == [section.id]


async def test_delete_empty_section(db_session, ctx, make_section) -> None:
    section = await make_section(ctx, "4", "B")

    assert await sections.delete_section(db_session, ctx, section.id) is True
    assert await sections.get_section(db_session, ctx, section.id) is None


async def test_move_section_with_students_to_other_class_is_rejected(
    db_session, ctx, make_section, make_student
) -> None:
    section = await make_section(ctx, "4", "A")
    await make_student(ctx, section)

    with pytest.raises(HasDependents):
        await sections.update_section(db_session, ctx, section.id, SectionUpdate(class_name="5"))


async def test_list_classes_orders_ladder(db_session, ctx, make_section, make_student) -> None:
    ten = await make_section(ctx, "10", "A")
    await make_section(ctx, "UKG", "A")
    await make_section(ctx, "2", "B")
    await make_student(ctx, ten)

    classes = await sections.list_classes(db_session, ctx)

    assert [c.class_name for c in classes] == ["UKG", "2", "10"]
    assert classes[1].next_section_identifier == "A"
    assert classes[2].sections[0].student_count == 1


async def test_section_api_incharge_and_notifications(client: AsyncClient, school, notifier) -> None:
    headers = school["headers"]
    staff = await client.post(
        "/api/v1/staff",
        json={"full_name": "Meera Iyer", "email": "meera@greenfield.example.com", "designation": "none"},
        headers=headers,
    )
    assert staff.status_code == 201, staff.text
    assert staff.json()["designation"] is None

    created = await client.post(
        "/api/v1/sections",
        json={"class_name": "7", "section_incharge_id": "none"},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    section = created.json()
    assert section["section_identifier"] == "A"
    assert section["section_incharge_id"] is None
    assert notifier.last.title == "Section Added"

    r = await client.put(
        f"/api/v1/sections/{section['id']}/incharge", json={"staff_id": staff.json()["id"]}, headers=headers
    )
    assert r.status_code == 200, r.text
    assert r.json()["section_incharge_id"] == staff.json()["id"]

    dup = await client.post("/api/v1/sections", json={"class_name": "7", "section_identifier": "A"}, headers=headers)
    assert dup.status_code == 409
    assert notifier.last.title == "Duplicate Section"

    nxt = await client.get("/api/v1/sections/next-identifier", params={"class_name": "7"}, headers=headers)
    assert nxt.json()["section_identifier"] == "B"


async def test_section_api_other_school_cannot_see(client: AsyncClient, school, db_session) -> None:
    from app.core.models import Tenant

    other = Tenant(school_code="SCH-ZZZZ", school_name="Elsewhere", status="ACTIVE")
    db_session.add(other)
    await db_session.commit()
    foreign = ClassSection(tenant_id=other.id, class_name="3", section_identifier="A")
    db_session.add(foreign)
    await db_session.commit()

    r = await client.get(f"/api/v1/sections/{foreign.id}", headers=school["headers"])
    assert r.status_code == 404
    listed = await client.get("/api/v1/sections", headers=school["headers"])
    assert listed.json() == []
