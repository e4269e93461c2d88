from reptrack.counter.scheduler import FrameScheduler, next_skip_factor


def test_control_law():
    assert next_skip_factor([50, 40], current=1, budget_ms=33) == 2
    assert next_skip_factor([10, 12], current=3, budget_ms=33) == 2
    # inside the dead band: hold
    assert next_skip_factor([30, 30], current=3, budget_ms=33) == 3
    assert next_skip_factor([], current=4, budget_ms=33) == 4


def test_control_law_clamps():
    assert next_skip_factor([500], current=6, budget_ms=33, max_factor=6) == 6
    assert next_skip_factor([1], current=1, budget_ms=33, base=1) == 1
    assert next_skip_factor([1], current=1, budget_ms=33, base=2) == 2


def test_scheduler_skips_every_nth():
    s = FrameScheduler(base=2)
    assert [s.should_process() for _ in range(6)] == [True, False, True, False, True, False]


def test_scheduler_backs_off_and_recovers():
    s = FrameScheduler(budget_ms=33, max_factor=3, window=2)
    s.record(80)
    s.record(80)
    s.record(80)
    assert s.skip_factor == 3
    for _ in range(5):
        s.record(5)
    assert s.skip_factor == 1


def test_reset():
    s = FrameScheduler(max_factor=4)
    s.record(100)
    s.should_process()
    s.reset()
    assert s.skip_factor == 1
    assert s.should_process()
