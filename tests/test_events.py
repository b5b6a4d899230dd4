import logging

from interview_room.interview.events import (
    EventLogger, EventType, NoticeEvent, QuestionAdvancedEvent, SessionEventBus, SessionMetrics,
    UploadFailedEvent
)


def test_failing_handler_does_not_block_others():
    bus = SessionEventBus()
    received = []

    def broken(event):
        raise RuntimeError("handler bug")

    bus.subscribe(EventType.NOTICE, broken)
    bus.subscribe(EventType.NOTICE, received.append)
    bus.subscribe_all(broken)
    bus.subscribe_all(received.append)

    bus.emit(NoticeEvent("s1", 0.0, "info", "hello"))

    assert len(received) == 2
    assert received[0].message == "hello"
    assert received[0].level == "info"


def test_subscribe_filters_by_type():
    bus = SessionEventBus()
    notices = []
    bus.subscribe(EventType.NOTICE, notices.append)

    bus.emit(QuestionAdvancedEvent("s1", 0.0, 1, 5))
    bus.emit(NoticeEvent("s1", 0.0, "warning", "careful"))

    assert [e.event_type for e in notices] == [EventType.NOTICE]


def test_unsubscribe_stops_delivery():
    bus = SessionEventBus()
    received = []
    bus.subscribe(EventType.NOTICE, received.append)
    bus.unsubscribe(EventType.NOTICE, received.append)
    bus.unsubscribe(EventType.UPLOAD_FAILED, received.append)

    bus.emit(NoticeEvent("s1", 0.0, "info", "ignored"))
    assert received == []


def test_metrics_count_and_reset():
    metrics = SessionMetrics()
    metrics.handle_event(UploadFailedEvent("s1", 0.0, "u/a-1-1.jpg", "boom"))
    metrics.handle_event(UploadFailedEvent("s1", 0.0, "u/a-1-2.jpg", "boom"))
    metrics.handle_event(NoticeEvent("s1", 0.0, "info", "not counted"))

    assert metrics.get_metrics()["uploads_failed"] == 2
    assert metrics.get_metrics()["sessions_completed"] == 0

    metrics.reset()
    assert metrics.get_metrics()["uploads_failed"] == 0


def test_event_logger_writes_event(caplog):
    with caplog.at_level(logging.INFO, logger="event_logger"):
        EventLogger().handle_event(NoticeEvent("s42", 0.0, "success", "saved"))

    assert "s42" in caplog.text
    assert "saved" in caplog.text
