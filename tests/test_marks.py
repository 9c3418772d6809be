import io
import uuid

import pytest
from httpx import AsyncClient
from openpyxl import load_workbook
from sqlalchemy import select

from app.api.v1.marks import service as marks
from app.api.v1.marks.schemas import ExamCreate, MarkEntry, SubjectCreate
from app.core.enums import TimelineEventType
from app.core.exceptions import ServiceError, StudentNotFound
from app.core.models import PerformanceRecord


@pytest.fixture()
def exam_with_subjects(db_session, ctx):
    async def _make(class_name: str = "5"):
        exam = await marks.create_exam(
            db_session, ctx, ExamCreate(exam_name="Half Yearly", year=2025, class_name=class_name)
        )
        maths = await marks.create_subject(db_session, ctx, exam.id, SubjectCreate(subject_name="Maths", max_marks=50))
        english = await marks.create_subject(db_session, ctx, exam.id, SubjectCreate(subject_name="English"))
        return exam, maths, english

    return _make


async def test_saving_again_overwrites(db_session, ctx, make_section, make_student, exam_with_subjects) -> None:
    student = await make_student(ctx, await make_section(ctx, "5"))
    _, maths, _ = await exam_with_subjects()

    await marks.save_marks(db_session, ctx, maths.id, [MarkEntry(student_id=student.id, marks=30)])
    await marks.save_marks(db_session, ctx, maths.id, [MarkEntry(student_id=student.id, marks=42, remarks="Good")])

    rows = (await db_session.execute(select(PerformanceRecord))).scalars().all()
    assert len(rows) == 1
    assert rows[0].id == f"{student.id}_{maths.id}"
    assert (rows[0].marks, rows[0].remarks) == (42, "Good")


async def test_exam_result_event_written_once_per_exam(
    db_session, ctx, make_section, make_student, exam_with_subjects, count_events
) -> None:
    student = await make_student(ctx, await make_section(ctx, "5"))
    exam, maths, english = await exam_with_subjects()

    first = await marks.save_marks(db_session, ctx, maths.id, [MarkEntry(student_id=student.id, marks=40)])
    second = await marks.save_marks(db_session, ctx, english.id, [MarkEntry(student_id=student.id, marks=80)])

    assert first.results_published_for == [student.id]
    assert second.results_published_for == []
    assert await count_events(ctx, student.id, TimelineEventType.EXAM_RESULT) == 1

    other_exam = await marks.create_exam(
        db_session, ctx, ExamCreate(exam_name="Annual", year=2025, class_name="5")
    )
    science = await marks.create_subject(db_session, ctx, other_exam.id, SubjectCreate(subject_name="Science"))
    await marks.save_marks(db_session, ctx, science.id, [MarkEntry(student_id=student.id, marks=70)])
    assert await count_events(ctx, student.id, TimelineEventType.EXAM_RESULT) == 2


async def test_marks_above_max_are_rejected(
    db_session, ctx, make_section, make_student, exam_with_subjects, count_events
) -> None:
    student = await make_student(ctx, await make_section(ctx, "5"))
    _, maths, _ = await exam_with_subjects()

    with pytest.raises(ServiceError) as exc:
        await marks.save_marks(db_session, ctx, maths.id, [MarkEntry(student_id=student.id, marks=51)])

    assert exc.value.status_code == 400
    assert await marks.list_marks(db_session, ctx, maths.id) == []
    assert await count_events(ctx, student.id) == 0


async def test_unknown_student_is_rejected(db_session, ctx, exam_with_subjects) -> None:
    _, maths, _ = await exam_with_subjects()

    with pytest.raises(StudentNotFound):
        await marks.save_marks(db_session, ctx, maths.id, [MarkEntry(student_id=uuid.uuid4(), marks=10)])


async def test_exams_are_listed_newest_first(db_session, ctx) -> None:
    await marks.create_exam(db_session, ctx, ExamCreate(exam_name="Unit Test", year=2024, class_name="3"))
    await marks.create_exam(db_session, ctx, ExamCreate(exam_name="Unit Test", year=2025, class_name="10"))
    await marks.create_exam(db_session, ctx, ExamCreate(exam_name="Unit Test", year=2025, class_name="UKG"))

    listed = await marks.list_exams(db_session, ctx)

    assert [(e.year, e.class_name) for e in listed] == [(2025, "UKG"), (2025, "10"), (2024, "3")]


async def test_award_sheet_lists_active_students_of_the_class(
    db_session, ctx, make_section, make_student, exam_with_subjects
) -> None:
    five = await make_section(ctx, "5")
    a = await make_student(ctx, five, full_name="Anu")
    await make_student(ctx, five, full_name="Bala")
    await make_student(ctx, await make_section(ctx, "6"), full_name="Chitra")
    _, maths, _ = await exam_with_subjects()
    await marks.save_marks(db_session, ctx, maths.id, [MarkEntry(student_id=a.id, marks=45, remarks="Well done")])

    content = await marks.build_award_sheet(db_session, ctx, maths.id)

    assert content[:2] == b"PK"
    ws = load_workbook(io.BytesIO(content)).active
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0][0] == "Half Yearly 2025 - Class 5 - Maths"
    assert rows[1] == marks.AWARD_SHEET_HEADERS
    assert [r[1] for r in rows[2:]] == ["Anu", "Bala"]
    assert rows[2][2:] == (45, 50, "Well done")
    assert rows[3][2] is None


async def test_marks_api(client: AsyncClient, school, notifier) -> None:
    headers = school["headers"]
    section = (await client.post("/api/v1/sections", json={"class_name": "8"}, headers=headers)).json()
    student = (
        await client.post(
            "/api/v1/students",
            json={"admission_number": "81", "full_name": "Dev", "admission_class": "8", "class_section_id": section["id"]},
            headers=headers,
        )
    ).json()
    exam = await client.post(
        "/api/v1/marks/exams", json={"exam_name": "Annual", "year": 2025, "class_name": "8"}, headers=headers
    )
    assert exam.status_code == 201, exam.text
    subject = await client.post(
        f"/api/v1/marks/exams/{exam.json()['id']}/subjects", json={"subject_name": "History"}, headers=headers
    )
    assert subject.status_code == 201, subject.text
    subject_id = subject.json()["id"]

    saved = await client.put(
        f"/api/v1/marks/subjects/{subject_id}",
        json={"entries": [{"student_id": student["id"], "marks": 77}]},
        headers=headers,
    )
    assert saved.status_code == 200, saved.text
    assert notifier.last.title == "Marks Saved!"
    assert saved.json()["results_published_for"] == [student["id"]]

    timeline = await client.get(f"/api/v1/students/{student['id']}/timeline", headers=headers)
    assert timeline.json()[0]["type"] == "EXAM_RESULT"
    assert timeline.json()[0]["details"] == {"examId": exam.json()["id"]}

    sheet = await client.get(f"/api/v1/marks/subjects/{subject_id}/award-sheet", headers=headers)
    assert sheet.status_code == 200
    assert sheet.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert sheet.content[:2] == b"PK"

    empty = await client.put(f"/api/v1/marks/subjects/{subject_id}", json={"entries": []}, headers=headers)
    assert empty.status_code == 422
