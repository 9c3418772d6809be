import uuid

from app.core.change_feed import ChangeEvent, ChangeFeed, ChangeOperation, Collection, LiveQuery


def test_subscribe_receives_only_its_tenant_and_collection() -> None:
    feed = ChangeFeed()
    tenant, other = uuid.uuid4(), uuid.uuid4()
    received = []
    feed.subscribe(tenant, Collection.STUDENTS, received.append)

    feed.publish_document(tenant, Collection.STUDENTS, {"id": "s1"})
    feed.publish_document(other, Collection.STUDENTS, {"id": "s2"})
    feed.publish_document(tenant, Collection.CLASS_SECTIONS, {"id": "c1"})

    assert [e.document_id for e in received] == ["s1"]
    assert received[0].collection == "students"


def test_unsubscribe_stops_delivery() -> None:
    feed = ChangeFeed()
    tenant = uuid.uuid4()
    received = []
    with feed.subscribe(tenant, "students", received.append):
        assert feed.subscriber_count(tenant, Collection.STUDENTS) == 1
        feed.publish_document(tenant, "students", {"id": "a"})
    feed.publish_document(tenant, "students", {"id": "b"})

    assert [e.document_id for e in received] == ["a"]
    assert feed.subscriber_count(tenant, "students") == 0


def test_failing_listener_does_not_block_others() -> None:
    feed = ChangeFeed()
    tenant = uuid.uuid4()
    received = []

    def broken(event: ChangeEvent) -> None:
        raise RuntimeError("listener bug")

    feed.subscribe(tenant, "students", broken)
    feed.subscribe(tenant, "students", received.append)
    feed.publish_document(tenant, "students", {"id": "x"})

    assert len(received) == 1


def test_live_query_tracks_membership() -> None:
    feed = ChangeFeed()
    tenant = uuid.uuid4()
    section_a, section_b = uuid.uuid4(), uuid.uuid4()
    snapshots = []
    snapshot = [
        {"id": "s1", "class_section_id": section_a},
        {"id": "s2", "class_section_id": section_b},
    ]

    with LiveQuery(
        feed, tenant, Collection.STUDENTS, ("class_section_id", section_a), snapshot, on_change=snapshots.append
    ) as live:
        assert [d["id"] for d in live.results] == ["s1"]

        # s2 moves into A (UUID vs str compare)
        feed.publish_document(tenant, Collection.STUDENTS, {"id": "s2", "class_section_id": str(section_a)})
        assert {d["id"] for d in live.results} == {"s1", "s2"}

        # s1 moves out of A
        feed.publish_document(
            tenant, Collection.STUDENTS, {"id": "s1", "class_section_id": section_b}, ChangeOperation.UPDATE
        )
        assert [d["id"] for d in live.results] == ["s2"]

        feed.publish_document(tenant, Collection.STUDENTS, {"id": "s2"}, ChangeOperation.DELETE)
        assert live.results == []
        assert len(snapshots) == 3

    assert live.closed
    feed.publish_document(tenant, Collection.STUDENTS, {"id": "s3", "class_section_id": section_a})
    assert live.results == []
    assert feed.subscriber_count(tenant, Collection.STUDENTS) == 0
