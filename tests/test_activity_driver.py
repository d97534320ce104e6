from keepawake.adapters.base import DisplayBounds
from keepawake.config import AppConfig, JiggleInterval
from keepawake.core.activity_driver import CycleOutcome


def test_first_tick_emits_immediately_then_every_interval(make_driver, scheduler, desktop) -> None:
    driver = make_driver()

    driver.set_running(True)
    scheduler.advance_to(95)

    assert desktop.emission_times == [0, 30, 60, 90]
    assert driver.emit_count == 4
    assert driver.last_emit_at == 90


def test_stop_cancels_pending_tick(make_driver, scheduler, desktop, assertions) -> None:
    driver = make_driver()

    driver.set_running(True)
    scheduler.advance_to(45)
    driver.set_running(False)
    scheduler.advance_to(200)

    assert desktop.emission_times == [0, 30]
    assert scheduler.pending() == []
    assert assertions.active == 0
    assert not driver.is_running


def test_repeated_start_keeps_single_loop_and_assertion(make_driver, scheduler, assertions) -> None:
    driver = make_driver()

    driver.set_running(True)
    driver.set_running(True)
    driver.set_running(True)

    assert len(scheduler.pending()) == 1
    assert assertions.active == 1
    assert assertions.acquired == 3
    assert assertions.released == 2


def test_stop_when_stopped_is_noop(make_driver, assertions) -> None:
    changes = []
    driver = make_driver()
    driver.set_on_change(lambda: changes.append(driver.is_running))

    driver.set_running(False)

    assert changes == []
    assert assertions.acquired == 0


def test_randomized_delays_stay_within_jitter_bounds(make_driver, scheduler, desktop) -> None:
    driver = make_driver(interval=JiggleInterval.ONE_MINUTE, randomize=True)

    driver.set_running(True)
    scheduler.advance_to(60 * 60)

    times = desktop.emission_times
    gaps = [later - earlier for earlier, later in zip(times, times[1:])]
    assert len(gaps) > 40
    assert all(48.0 <= gap <= 72.0 for gap in gaps)
    assert len({round(gap, 3) for gap in gaps}) > 1


def test_randomized_pixel_offset_within_range(make_driver, scheduler, desktop) -> None:
    driver = make_driver(randomize=True)

    driver.set_running(True)
    scheduler.advance_to(30 * 50)

    offsets = [abs(x - 100.0) for _, x, _ in desktop.moves[0::2]]
    assert all(1 <= offset <= 3 for offset in offsets)
    assert len(set(offsets)) > 1


def test_fixed_offset_alternates_direction_and_returns(make_driver, scheduler, desktop) -> None:
    driver = make_driver()

    driver.set_running(True)
    scheduler.advance_to(30)

    assert [(x, y) for _, x, y in desktop.moves] == [
        (101.0, 100.0),
        (100.0, 100.0),
        (99.0, 100.0),
        (100.0, 100.0),
    ]
    assert desktop.cursor == (100.0, 100.0)


def test_offset_flips_at_display_edge(make_driver, desktop) -> None:
    desktop.bounds = DisplayBounds(0.0, 0.0, 200.0, 100.0)
    desktop.cursor = (199.5, 50.0)
    driver = make_driver()

    driver.set_running(True)

    assert desktop.moves[0][1] == 198.5
    assert desktop.cursor == (199.5, 50.0)


def test_user_activity_skips_tick_and_resets_baseline(make_driver, scheduler, desktop) -> None:
    driver = make_driver()

    driver.set_running(True)
    scheduler.advance_to(10)
    desktop.user_input()
    scheduler.advance_to(30)

    assert desktop.emission_times == [0]

    scheduler.advance_to(60)

    assert desktop.emission_times == [0, 60]
    assert driver.failure_count == 0


def test_single_divergence_then_correlated_tick_resets_failures(make_driver, scheduler, desktop) -> None:
    desktop.events_register = False
    driver = make_driver()

    driver.set_running(True)
    scheduler.advance_to(60)
    assert driver.failure_count == 1

    desktop.events_register = True
    desktop.last_input_at = 60
    scheduler.advance_to(90)

    assert driver.failure_count == 0


def test_three_divergent_ticks_trigger_single_relaunch(make_driver, scheduler, desktop, relauncher) -> None:
    desktop.events_register = False
    driver = make_driver()

    driver.set_running(True)
    scheduler.advance_to(119)
    assert relauncher.calls == 0
    assert driver.failure_count == 2

    scheduler.advance_to(1000)

    assert relauncher.calls == 1
    assert driver.relaunch_requested
    assert driver.failure_count == 0
    assert scheduler.pending() == []


def test_perform_cycle_reports_outcomes(make_driver, scheduler, desktop) -> None:
    driver = make_driver(config=AppConfig(failure_threshold=1))

    assert driver.perform_cycle() is CycleOutcome.STOPPED

    driver.set_running(True)
    scheduler.advance(10)
    desktop.user_input()
    assert driver.perform_cycle() is CycleOutcome.USER_ACTIVE

    desktop.events_register = False
    desktop.last_input_at = -100.0
    assert driver.perform_cycle() is CycleOutcome.RECOVERY


def test_manual_cycle_replaces_pending_tick(make_driver, scheduler, desktop) -> None:
    driver = make_driver()

    driver.set_running(True)
    driver.perform_cycle()

    assert len(scheduler.pending()) == 1

    scheduler.advance_to(95)

    assert desktop.emission_times == [0, 0, 30, 60, 90]


def test_failed_relaunch_keeps_loop_running(make_driver, scheduler, desktop, relauncher) -> None:
    desktop.events_register = False
    relauncher.fail = True
    driver = make_driver()

    driver.set_running(True)
    scheduler.advance_to(120)

    assert relauncher.calls == 1
    assert driver.is_running
    assert not driver.relaunch_requested
    assert len(scheduler.pending()) == 1

    scheduler.advance_to(210)

    assert relauncher.calls == 2


def test_restart_recovery_mode_restarts_loop_in_process(make_driver, scheduler, desktop, relauncher, assertions) -> None:
    desktop.events_register = False
    driver = make_driver(config=AppConfig(recovery_mode="restart"))

    driver.set_running(True)
    scheduler.advance_to(120)

    assert relauncher.calls == 0
    assert driver.is_running
    assert desktop.emission_times[-1] == 120
    assert assertions.acquired == 2
    assert assertions.active == 1
    assert len(scheduler.pending()) == 1


def test_interval_change_restarts_running_loop(make_driver, scheduler, desktop) -> None:
    driver = make_driver()

    driver.set_running(True)
    scheduler.advance_to(10)
    driver.set_interval(JiggleInterval.ONE_MINUTE)
    scheduler.advance_to(130)

    assert desktop.emission_times == [0, 10, 70, 130]


def test_interval_change_while_stopped_does_not_start(make_driver, scheduler, desktop) -> None:
    driver = make_driver()

    driver.set_interval(JiggleInterval.FIVE_MINUTES)
    scheduler.advance_to(600)

    assert driver.interval is JiggleInterval.FIVE_MINUTES
    assert desktop.emission_times == []


def test_wake_restarts_after_settle_delay(make_driver, scheduler, desktop, assertions) -> None:
    driver = make_driver(config=AppConfig(wake_settle_seconds=2.0))

    driver.set_running(True)
    scheduler.advance_to(5)
    driver.handle_wake()
    scheduler.advance_to(40)

    assert desktop.emission_times == [0, 7, 37]
    assert assertions.acquired == 2
    assert assertions.active == 1


def test_wake_while_stopped_is_ignored(make_driver, scheduler) -> None:
    driver = make_driver()

    driver.handle_wake()

    assert scheduler.pending() == []


def test_assertion_failure_does_not_block_emission(make_driver, desktop, assertions) -> None:
    assertions.fail_acquire = True
    driver = make_driver()

    driver.set_running(True)

    assert driver.is_running
    assert desktop.emission_times == [0]


def test_injector_failure_is_logged_and_loop_continues(make_driver, scheduler, desktop) -> None:
    driver = make_driver()

    def broken_tap() -> None:
        raise OSError("event post failed")

    desktop.tap_modifier = broken_tap  # type: ignore[method-assign]
    driver.set_running(True)

    assert driver.emit_count == 0
    assert len(scheduler.pending()) == 1


def test_close_releases_assertion(make_driver, assertions) -> None:
    driver = make_driver()

    driver.set_running(True)
    driver.close()

    assert assertions.active == 0
    assert not driver.is_running
