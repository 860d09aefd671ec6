import signal
import unittest


class FakeProcess:
    def __init__(self, exited: bool = False) -> None:
        self.exited = exited
        self.calls = []

    def send_signal(self, sig: int) -> None:
        self.calls.append(("signal", sig))
        if self.exited:
            raise ProcessLookupError("gone")

    def kill(self) -> None:
        self.calls.append(("kill", None))
        if self.exited:
            raise ProcessLookupError("gone")


class TestInterruptCoordinator(unittest.TestCase):
    def _coordinator(self):
        from shellmate.kernel.interrupts import InterruptCoordinator

        terminated = []
        return InterruptCoordinator(terminate=lambda: terminated.append(True)), terminated

    def test_idle_interrupt_is_unhandled(self) -> None:
        from shellmate.kernel.interrupts import InterruptState

        coord, terminated = self._coordinator()
        self.assertFalse(coord.handle_interrupt())
        self.assertEqual(coord.state, InterruptState.IDLE)
        self.assertEqual(coord.get_interrupt_count(), 0)
        self.assertEqual(terminated, [])

    def test_escalation_ladder(self) -> None:
        from shellmate.kernel.interrupts import InterruptState

        coord, terminated = self._coordinator()
        proc = FakeProcess()
        exits = []
        coord.register(proc, on_exit=lambda: exits.append("flush"))
        self.assertTrue(coord.has_child_process())
        self.assertEqual(coord.state, InterruptState.ARMED)

        self.assertTrue(coord.handle_interrupt())
        self.assertEqual(proc.calls, [("signal", signal.SIGINT)])
        self.assertEqual(coord.state, InterruptState.ESCALATED)

        self.assertTrue(coord.handle_interrupt())
        self.assertEqual(proc.calls[-1], ("kill", None))
        self.assertEqual(coord.state, InterruptState.TERMINATING)
        self.assertEqual(exits, [])
        self.assertEqual(terminated, [])

        self.assertTrue(coord.handle_interrupt())
        self.assertEqual(exits, ["flush"])
        self.assertEqual(terminated, [True])
        self.assertEqual(coord.get_interrupt_count(), 3)
        self.assertEqual(len(proc.calls), 2)

    def test_exited_process_does_not_raise(self) -> None:
        coord, terminated = self._coordinator()
        proc = FakeProcess(exited=True)
        coord.register(proc)
        self.assertTrue(coord.handle_interrupt())
        self.assertTrue(coord.handle_interrupt())
        self.assertTrue(coord.handle_interrupt())
        self.assertEqual([c[0] for c in proc.calls], ["signal", "kill"])
        self.assertEqual(terminated, [True])

    def test_failing_exit_callback_still_terminates(self) -> None:
        coord, terminated = self._coordinator()
        proc = FakeProcess()

        def _boom() -> None:
            raise RuntimeError("flush failed")

        coord.register(proc, on_exit=_boom)
        for _ in range(3):
            coord.handle_interrupt()
        self.assertEqual(terminated, [True])

    def test_register_resets_counter(self) -> None:
        from shellmate.kernel.interrupts import InterruptState

        coord, _ = self._coordinator()
        first = FakeProcess()
        coord.register(first)
        coord.handle_interrupt()
        coord.handle_interrupt()
        self.assertEqual(coord.get_interrupt_count(), 2)

        second = FakeProcess()
        coord.register(second)
        self.assertEqual(coord.get_interrupt_count(), 0)
        self.assertEqual(coord.state, InterruptState.ARMED)
        coord.handle_interrupt()
        self.assertEqual(second.calls, [("signal", signal.SIGINT)])

    def test_unregister_clears(self) -> None:
        coord, _ = self._coordinator()
        proc = FakeProcess()
        coord.register(proc)
        coord.handle_interrupt()
        coord.unregister()
        self.assertFalse(coord.has_child_process())
        self.assertEqual(coord.get_interrupt_count(), 0)
        self.assertFalse(coord.handle_interrupt())
        self.assertEqual(len(proc.calls), 1)

    def test_reference_is_not_owning(self) -> None:
        import gc

        coord, _ = self._coordinator()
        proc = FakeProcess()
        coord.register(proc)
        del proc
        gc.collect()
        self.assertFalse(coord.has_child_process())
        self.assertFalse(coord.handle_interrupt())


if __name__ == "__main__":
    unittest.main()
