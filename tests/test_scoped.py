import unittest

from scopepy import (
    Runtime,
    CollectingSupervisor,
    ConsoleLogger,
    Handle,
    AcquisitionError,
    MissingResourceError,
    CloseError,
    run_scoped,
    using,
    with_timeout,
)


class FakeResource:
    def __init__(self, name, log, fail_acquire=None, empty=False, fail_release=None, anonymous=False):
        self.name = name; self.label = name; self.log = log
        self.fail_acquire = fail_acquire; self.empty = empty; self.fail_release = fail_release
        self.anonymous = anonymous
        self.attempts = 0; self.releases = 0

    def acquire(self):
        self.attempts += 1
        self.log.append(("acquire", self.name))
        if self.fail_acquire is not None:
            raise self.fail_acquire
        if self.empty:
            return None
        if self.anonymous:
            return Handle(release=self._release)
        return Handle(self.name.upper(), self._release)

    def _release(self):
        self.releases += 1
        self.log.append(("release", self.name))
        if self.fail_release is not None:
            raise self.fail_release


def _runtime():
    return Runtime(supervisor=CollectingSupervisor(), logger=ConsoleLogger(level="ERROR"))


class TestRunScoped(unittest.TestCase):
    def setUp(self):
        self.rt = _runtime()
        self.log: list[tuple[str, str]] = []

    def res(self, name, **kw):
        return FakeResource(name, self.log, **kw)

    def test_acquires_in_order_and_releases_in_reverse(self):
        rs = [self.res(n) for n in ("a", "b", "c")]
        out = self.rt.run_scoped(rs, lambda a, b, c: self.log.append(("body", a + b + c)) or "done")
        self.assertEqual(out, "done")
        self.assertEqual(self.log, [
            ("acquire", "a"), ("acquire", "b"), ("acquire", "c"),
            ("body", "ABC"),
            ("release", "c"), ("release", "b"), ("release", "a"),
        ])

    def test_each_handle_released_once_when_body_raises(self):
        rs = [self.res(n) for n in ("a", "b")]

        def body(a, b):
            raise ValueError("body")

        with self.assertRaises(ValueError):
            self.rt.run_scoped(rs, body)
        self.assertEqual([r.releases for r in rs], [1, 1])

    def test_acquisition_failure_rolls_back_earlier_and_skips_later(self):
        boom = ConnectionError("down")
        rs = [self.res("a"), self.res("b"), self.res("c", fail_acquire=boom), self.res("d")]
        called = []
        with self.assertRaises(AcquisitionError) as cm:
            self.rt.run_scoped(rs, lambda *v: called.append(v))
        self.assertIs(cm.exception.cause, boom)
        self.assertEqual(cm.exception.label, "c")
        self.assertEqual(called, [])
        self.assertEqual(rs[3].attempts, 0)
        self.assertEqual(self.log, [
            ("acquire", "a"), ("acquire", "b"), ("acquire", "c"),
            ("release", "b"), ("release", "a"),
        ])

    def test_acquisition_error_beats_rollback_close_error(self):
        rs = [self.res("a", fail_release=OSError("close a")), self.res("b", fail_acquire=KeyError("b"))]
        with self.assertRaises(AcquisitionError):
            self.rt.run_scoped(rs, lambda *v: None)
        self.assertEqual(len(self.rt.supervisor.suppressed), 1)

    def test_body_error_beats_close_error(self):
        e = RuntimeError("E")
        rs = [self.res("a", fail_release=OSError("F"))]

        def body(a):
            raise e

        with self.assertRaises(RuntimeError) as cm:
            self.rt.run_scoped(rs, body)
        self.assertIs(cm.exception, e)
        self.assertEqual([str(x.cause) for x in self.rt.supervisor.suppressed], ["F"])

    def test_first_close_error_in_reverse_order_wins(self):
        rs = [self.res("a", fail_release=OSError("a")), self.res("b", fail_release=OSError("b"))]
        with self.assertRaises(CloseError) as cm:
            self.rt.run_scoped(rs, lambda a, b: None)
        self.assertEqual(str(cm.exception.cause), "b")
        self.assertEqual(cm.exception.label, "b")
        self.assertEqual([r.releases for r in rs], [1, 1])

    def test_empty_with_fallback_skips_body_and_releases_nothing(self):
        r = self.res("lock", empty=True)
        out = self.rt.run_scoped([r], lambda: "body", fallback=lambda: "fallback")
        self.assertEqual(out, "fallback")
        self.assertEqual(self.log, [("acquire", "lock")])

    def test_empty_after_acquired_rolls_back_before_fallback(self):
        rs = [self.res("a"), self.res("b", empty=True), self.res("c")]
        out = self.rt.run_scoped(rs, lambda *v: "body", fallback=lambda: self.log.append(("fallback", "")) or "fb")
        self.assertEqual(out, "fb")
        self.assertEqual(self.log, [("acquire", "a"), ("acquire", "b"), ("release", "a"), ("fallback", "")])

    def test_rollback_close_error_raised_after_fallback_returns(self):
        rs = [self.res("a", fail_release=OSError("a")), self.res("b", empty=True)]
        ran = []
        with self.assertRaises(CloseError) as cm:
            self.rt.run_scoped(rs, lambda *v: "body", fallback=lambda: ran.append("fb"))
        self.assertEqual(cm.exception.label, "a")
        self.assertEqual(ran, ["fb"])
        self.assertEqual([(e.label, s) for e, s in self.rt.supervisor.close_errors], [("a", False)])

    def test_fallback_error_wins_over_rollback_close_error(self):
        rs = [self.res("a", fail_release=OSError("a")), self.res("b", empty=True)]

        def fallback():
            raise KeyError("fb")

        with self.assertRaises(KeyError):
            self.rt.run_scoped(rs, lambda *v: "body", fallback=fallback)
        self.assertEqual([str(e.cause) for e in self.rt.supervisor.suppressed], ["a"])

    def test_empty_without_fallback_raises_missing(self):
        rs = [self.res("a"), self.res("b", empty=True)]
        with self.assertRaises(MissingResourceError) as cm:
            self.rt.run_scoped(rs, lambda *v: None)
        self.assertEqual(cm.exception.label, "b")
        self.assertIsInstance(cm.exception, AcquisitionError)
        self.assertEqual(rs[0].releases, 1)

    def test_anonymous_handles_bind_no_argument(self):
        rs = [self.res("lock", anonymous=True), self.res("db")]
        self.assertEqual(self.rt.run_scoped(rs, lambda db: db), "DB")

    def test_async_body_is_rejected(self):
        async def body(a):
            return a

        r = self.res("a")
        with self.assertRaises(TypeError):
            self.rt.run_scoped([r], body)
        self.assertEqual(r.releases, 1)

    def test_base_exceptions_still_release(self):
        r = self.res("a")

        def body(a):
            raise KeyboardInterrupt

        with self.assertRaises(KeyboardInterrupt):
            self.rt.run_scoped([r], body)
        self.assertEqual(r.releases, 1)

    def test_lock_adaptor_in_scope(self):
        import threading
        lock = threading.Lock()
        self.assertEqual(self.rt.run_scoped([with_timeout(lock, 0.01)], lambda: lock.locked()), True)
        self.assertFalse(lock.locked())


class TestUsing(unittest.TestCase):
    def setUp(self):
        self.rt = _runtime()
        self.log: list[tuple[str, str]] = []

    def test_with_block_releases_in_reverse(self):
        a, b = FakeResource("a", self.log), FakeResource("b", self.log)
        with self.rt.using(a, b) as (va, vb):
            self.log.append(("body", va + vb))
        self.assertEqual(self.log[-3:], [("body", "AB"), ("release", "b"), ("release", "a")])

    def test_with_block_body_error_wins(self):
        a = FakeResource("a", self.log, fail_release=OSError("F"))
        with self.assertRaises(ZeroDivisionError):
            with self.rt.using(a):
                1 / 0
        self.assertEqual(a.releases, 1)

    def test_with_block_close_error(self):
        a = FakeResource("a", self.log, fail_release=OSError("F"))
        with self.assertRaises(CloseError):
            with self.rt.using(a):
                pass

    def test_with_block_empty_raises_missing(self):
        a, b = FakeResource("a", self.log), FakeResource("b", self.log, empty=True)
        with self.assertRaises(MissingResourceError):
            with self.rt.using(a, b):
                self.fail("body must not run")
        self.assertEqual(a.releases, 1)

    def test_early_return_releases(self):
        a = FakeResource("a", self.log)

        def f():
            with self.rt.using(a) as (va,):
                return va
        self.assertEqual(f(), "A")
        self.assertEqual(a.releases, 1)


class TestModuleHelpers(unittest.TestCase):
    def test_default_runtime_helpers(self):
        log = []
        r = FakeResource("a", log)
        self.assertEqual(run_scoped([r], lambda a: a.lower()), "a")
        with using(FakeResource("b", log)) as (vb,):
            self.assertEqual(vb, "B")
        self.assertEqual(log.count(("release", "a")), 1)
        self.assertEqual(log.count(("release", "b")), 1)

    def test_explicit_runtime_override(self):
        sup = CollectingSupervisor()
        rt = Runtime(supervisor=sup, logger=ConsoleLogger(level="ERROR"))
        run_scoped([FakeResource("a", [])], lambda a: None, runtime=rt)
        self.assertEqual(len(sup.acquired), 1)
        self.assertEqual(len(sup.released), 1)
