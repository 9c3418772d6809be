import asyncio
import uuid
from datetime import date

import pytest
from fastapi import WebSocketDisconnect, status
from httpx import AsyncClient

from app.api.v1.students import service as students
from app.api.v1.students.router import live_section_students
from app.api.v1.students.schemas import StudentCreate
from app.core.change_feed import Collection
from app.core.enums import StudentStatus, TimelineEventType
from app.core.exceptions import SectionNotFound, ServiceError, StudentNotFound


async def test_admission_writes_events_in_one_commit(db_session, ctx, make_section) -> None:
    section = await make_section(ctx, "3", "B")

    student = await students.admit_student(
        db_session,
        ctx,
        StudentCreate(
            admission_number="2001",
            full_name="Kabir Singh",
            admission_class="3",
            class_section_id=section.id,
        ),
        today=date(2025, 4, 10),
    )

    assert student.current_class == "3"
    assert student.class_section_id == section.id
    assert student.status == StudentStatus.ACTIVE
    timeline = await students.get_timeline(db_session, ctx, student.id)
    by_type = {e.type: e for e in timeline}
    assert set(by_type) == {"ADMISSION", "CLASS_ASSIGNMENT"}
    assert by_type["ADMISSION"].details == {"class": "3", "academicYear": "2025-2026"}
    assert by_type["CLASS_ASSIGNMENT"].description == "Assigned to Class 3 - Section B."


async def test_admission_without_section(db_session, ctx, count_events) -> None:
    student = await students.admit_student(
        db_session, ctx, StudentCreate(admission_number="7", full_name="Ira", admission_class=" UKG ")
    )

    assert student.current_class == "UKG"
    assert student.class_section_id is None
    assert await count_events(ctx, student.id) == 1


async def test_admission_rejects_unknown_section_and_duplicates(db_session, ctx, make_student) -> None:
    with pytest.raises(SectionNotFound):
        await students.admit_student(
            db_session,
            ctx,
            StudentCreate(admission_number="9", full_name="X", admission_class="1", class_section_id=uuid.uuid4()),
        )

    existing = await make_student(ctx)
    with pytest.raises(ServiceError) as exc:
        await students.admit_student(
            db_session,
            ctx,
            StudentCreate(admission_number=existing.admission_number, full_name="Y", admission_class="1"),
        )
    assert exc.value.status_code == 409


async def test_next_admission_number(db_session, ctx, make_student) -> None:
    assert await students.next_admission_number(db_session, ctx) is None

    await make_student(ctx)
    await make_student(ctx)

    assert await students.next_admission_number(db_session, ctx) == "1003"


async def test_change_section_records_assignment(db_session, ctx, make_section, make_student) -> None:
    four_a = await make_section(ctx, "4", "A")
    five_c = await make_section(ctx, "5", "C")
    student = await make_student(ctx, four_a)

    moved = await students.change_section(db_session, ctx, student.id, five_c.id)

    assert moved.class_section_id == five_c.id
    assert moved.current_class == "5"
    timeline = await students.get_timeline(db_session, ctx, student.id)
    assert timeline[0].type == TimelineEventType.CLASS_ASSIGNMENT.value
    assert timeline[0].description == "Assigned to Class 5 - Section C."

    with pytest.raises(ServiceError) as exc:
        await students.change_section(db_session, ctx, student.id, five_c.id)
    assert exc.value.status_code == 400


async def test_status_change_requires_reason(db_session, ctx, make_student, count_events) -> None:
    student = await make_student(ctx)

    with pytest.raises(ServiceError):
        await students.set_status(db_session, ctx, student.id, StudentStatus.INACTIVE, reason="  ")
    assert await count_events(ctx, student.id, TimelineEventType.STATUS_CHANGE) == 0

    inactive = await students.set_status(
        db_session, ctx, student.id, StudentStatus.INACTIVE, reason="Moved to another city"
    )
    assert inactive.status == StudentStatus.INACTIVE
    assert inactive.inactive_reason == "Moved to another city"

    active = await students.set_status(db_session, ctx, student.id, StudentStatus.ACTIVE)
    assert active.inactive_reason is None

    timeline = await students.get_timeline(db_session, ctx, student.id)
    assert [e.description for e in timeline] == ["Marked active.", "Marked inactive: Moved to another city"]


async def test_same_status_writes_nothing(db_session, ctx, make_student, count_events) -> None:
    student = await make_student(ctx)

    await students.set_status(db_session, ctx, student.id, StudentStatus.ACTIVE)

    assert await count_events(ctx, student.id) == 0


async def test_timeline_for_unknown_student(db_session, ctx) -> None:
    with pytest.raises(StudentNotFound):
        await students.get_timeline(db_session, ctx, uuid.uuid4())


async def test_list_students_filters(db_session, ctx, make_section, make_student) -> None:
    two = await make_section(ctx, "2", "A")
    ukg = await make_section(ctx, "UKG", "A")
    a = await make_student(ctx, two, full_name="A")
    b = await make_student(ctx, ukg, full_name="B")
    await students.set_status(db_session, ctx, a.id, StudentStatus.INACTIVE, reason="Left")

    everyone = await students.list_students(db_session, ctx)
    assert [s.full_name for s in everyone] == ["B", "A"]
    in_two = await students.list_students(db_session, ctx, class_name="2")
    assert [s.id for s in in_two] == [a.id]
    active = await students.list_students(db_session, ctx, student_status=StudentStatus.ACTIVE)
    assert [s.id for s in active] == [b.id]


async def test_student_api_flow(client: AsyncClient, school, notifier) -> None:
    headers = school["headers"]
    section = (await client.post("/api/v1/sections", json={"class_name": "1"}, headers=headers)).json()

    created = await client.post(
        "/api/v1/students",
        json={
            "admission_number": "501",
            "full_name": "Nisha Rao",
            "admission_class": "1",
            "class_section_id": section["id"],
        },
        headers=headers,
    )
    assert created.status_code == 201, created.text
    assert notifier.last.title == "Student Added"
    assert notifier.last.description == "Nisha Rao has been successfully added to the school."
    student_id = created.json()["id"]

    nxt = await client.get("/api/v1/students/next-admission-number", headers=headers)
    assert nxt.json()["admission_number"] == "502"

    r = await client.put(
        f"/api/v1/students/{student_id}/status", json={"status": "Inactive"}, headers=headers
    )
    assert r.status_code == 422

    r = await client.put(
        f"/api/v1/students/{student_id}/status",
        json={"status": "Inactive", "reason": "Transferred"},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "Inactive"

    listed = await client.get("/api/v1/students", params={"status": "Inactive"}, headers=headers)
    assert [s["id"] for s in listed.json()] == [student_id]

    timeline = await client.get(f"/api/v1/students/{student_id}/timeline", headers=headers)
    assert timeline.json()[0]["type"] == "STATUS_CHANGE"
    assert len(timeline.json()) == 3


async def test_student_api_unknown_student(client: AsyncClient, school) -> None:
    r = await client.get(f"/api/v1/students/{uuid.uuid4()}", headers=school["headers"])
    assert r.status_code == 404


class FakeSocket:
    """Stands in for a websocket client that listens until told to hang up."""

    def __init__(self) -> None:
        self.accepted = False
        self.close_code = None
        self.sent = []
        self._hangup = asyncio.Event()

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000, reason=None) -> None:
        self.close_code = code

    async def send_json(self, data) -> None:
        self.sent.append(data)

    async def receive_text(self) -> str:
        await self._hangup.wait()
        raise WebSocketDisconnect(code=1000)

    def disconnect(self) -> None:
        self._hangup.set()


async def _wait_for(condition) -> None:
    async def _poll() -> None:
        while not condition():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=2)


async def test_live_section_view_streams_changes(db_session, school, feed, make_section, make_student) -> None:
    ctx = school["ctx"]
    token = school["headers"]["Authorization"].split()[1]
    four = await make_section(ctx, "4")
    five = await make_section(ctx, "5")
    student = await make_student(ctx, four, full_name="Meera")
    socket = FakeSocket()

    task = asyncio.create_task(
        live_section_students(socket, five.id, token=token, db=db_session, feed=feed)
    )
    await _wait_for(lambda: len(socket.sent) == 1)
    assert socket.accepted
    assert socket.sent[0] == []
    assert feed.subscriber_count(ctx.tenant_id, Collection.STUDENTS) == 1

    await students.change_section(db_session, ctx, student.id, five.id, feed)
    await _wait_for(lambda: len(socket.sent) == 2)
    assert [s["full_name"] for s in socket.sent[1]] == ["Meera"]
    assert socket.sent[1][0]["id"] == str(student.id)

    socket.disconnect()
    await asyncio.wait_for(task, timeout=2)
    assert feed.subscriber_count(ctx.tenant_id, Collection.STUDENTS) == 0


async def test_live_section_view_rejects_bad_token_and_foreign_section(db_session, school, feed) -> None:
    socket = FakeSocket()
    await live_section_students(socket, uuid.uuid4(), token="not-a-token", db=db_session, feed=feed)
    assert socket.close_code == status.WS_1008_POLICY_VIOLATION
    assert not socket.accepted

    token = school["headers"]["Authorization"].split()[1]
    socket = FakeSocket()
    await live_section_students(socket, uuid.uuid4(), token=token, db=db_session, feed=feed)
    assert socket.close_code == status.WS_1008_POLICY_VIOLATION
    assert not socket.accepted
    assert feed.subscriber_count(school["ctx"].tenant_id, Collection.STUDENTS) == 0
