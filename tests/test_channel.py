import logging

from keepawake.core.channel import CoordinationChannel, ScheduleSignal, Shutdown, ToggleRun


def test_messages_are_handled_in_arrival_order() -> None:
    channel = CoordinationChannel()
    seen = []
    channel.subscribe(ToggleRun, lambda message: seen.append(message.running))

    channel.post(ToggleRun(True))
    channel.post(ToggleRun(False))

    assert seen == [True, False]


def test_reentrant_post_is_queued_not_nested() -> None:
    channel = CoordinationChannel()
    seen = []

    def on_toggle(message: ToggleRun) -> None:
        seen.append(("toggle-start", message.running))
        channel.post(ScheduleSignal(inside=True))
        assert channel.pending() == 1
        seen.append(("toggle-end", message.running))

    channel.subscribe(ToggleRun, on_toggle)
    channel.subscribe(ScheduleSignal, lambda message: seen.append(("schedule", message.inside)))

    channel.post(ToggleRun(True))

    assert seen == [("toggle-start", True), ("toggle-end", True), ("schedule", True)]
    assert channel.pending() == 0


def test_handler_failure_does_not_stop_later_messages(caplog) -> None:
    channel = CoordinationChannel()
    seen = []

    def broken(_message: ToggleRun) -> None:
        raise ValueError("boom")

    channel.subscribe(ToggleRun, broken)
    channel.subscribe(ToggleRun, lambda message: seen.append(message.running))
    channel.subscribe(Shutdown, lambda message: seen.append("shutdown"))

    with caplog.at_level(logging.ERROR):
        channel.post(ToggleRun(True))
        channel.post(Shutdown())

    assert seen == [True, "shutdown"]
    assert any("ToggleRun" in record.getMessage() for record in caplog.records)


def test_drained_callback_runs_once_per_batch() -> None:
    channel = CoordinationChannel()
    drained = []

    channel.subscribe(ToggleRun, lambda message: channel.post(Shutdown()) if message.running else None)
    channel.on_drained(lambda: drained.append(channel.pending()))

    channel.post(ToggleRun(True))
    channel.post(ToggleRun(False))

    assert drained == [0, 0]


def test_unsubscribed_message_is_ignored() -> None:
    channel = CoordinationChannel()

    channel.post(Shutdown())

    assert channel.pending() == 0
