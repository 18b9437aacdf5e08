"""Tests for the System aggregator."""

import pytest

from hosttop.errors import HostMetricsUnavailable
from hosttop.models import CpuTimes
from hosttop.system import System, memory_utilization

T1 = CpuTimes(user=150, nice=0, system=70, idle=880, iowait=0, irq=0, softirq=0, steal=0)


def pids_of(processes) -> list[int]:
    return [p.pid for p in processes]


class TestMemoryUtilization:
    """Tests for the memory ratio helper."""

    def test_used_fraction(self):
        assert memory_utilization(1000, 250) == pytest.approx(0.75)

    def test_zero_total(self):
        assert memory_utilization(0, 0) == 0.0

    def test_available_exceeds_total(self):
        assert memory_utilization(1000, 1500) == 0.0

    def test_nothing_available(self):
        assert memory_utilization(1000, 0) == 1.0


class TestRefresh:
    """Tests for System.refresh()."""

    def test_vanished_process_dropped(self, source, clock):
        """pids {1, 2, 3} where 2 cannot be read yields records 1 and 3."""
        source.add(1)
        source.add(3)
        source.vanished.add(2)
        system = System(source, clock=clock)

        processes = system.refresh()

        assert sorted(pids_of(processes)) == [1, 3]
        assert system.total_processes == 2

    def test_empty_enumeration(self, source, clock):
        system = System(source, clock=clock)

        assert system.refresh() == []
        assert system.total_processes == 0
        assert system.running_processes == 0

    def test_sorted_by_cpu_descending(self, source, clock):
        procs = {pid: source.add(pid) for pid in (1, 2, 3, 4)}
        system = System(source, clock=clock)
        system.refresh()

        for pid, ticks in ((1, 10), (2, 50), (3, 30), (4, 0)):
            procs[pid].active = ticks
        clock.advance(1.0)
        processes = system.refresh()

        assert pids_of(processes) == [2, 3, 1, 4]
        ratios = [p.cpu_utilization for p in processes]
        assert ratios == sorted(ratios, reverse=True)

    def test_ties_broken_by_pid(self, source, clock):
        for pid in (30, 4, 17, 8):
            source.add(pid)
        system = System(source, clock=clock)

        first = system.refresh()
        clock.advance(1.0)
        second = system.refresh()

        assert pids_of(first) == [4, 8, 17, 30]
        assert pids_of(second) == [4, 8, 17, 30]

    def test_missing_pid_evicted(self, source, clock):
        source.add(1)
        source.add(2)
        system = System(source, clock=clock)
        system.refresh()

        source.remove(2)
        clock.advance(1.0)

        assert pids_of(system.refresh()) == [1]
        assert pids_of(system.processes) == [1]

    def test_reappearing_pid_is_new_record(self, source, clock):
        """A pid that drops out and comes back starts from a fresh baseline."""
        proc = source.add(5, active=0, command="first")
        system = System(source, clock=clock)
        system.refresh()

        proc.active = 50
        clock.advance(1.0)
        assert system.refresh()[0].cpu_utilization == pytest.approx(0.5)

        source.remove(5)
        clock.advance(1.0)
        assert system.refresh() == []

        source.add(5, active=500, command="second")
        clock.advance(1.0)
        reborn = system.refresh()

        assert reborn[0].cpu_utilization == 0.0
        assert reborn[0].command == "second"
        assert source.identity_calls[5] == 2

    def test_pid_reused_between_refreshes(self, source, clock):
        """A pid taken over by a new process within one interval gets a new record."""
        proc = source.add(5, active=0, command="old", user="alice", starttime=100)
        system = System(source, clock=clock)
        system.refresh()

        proc.active = 80
        clock.advance(1.0)
        assert system.refresh()[0].cpu_utilization == pytest.approx(0.8)

        source.add(5, active=0, command="new", user="bob", starttime=5000)
        clock.advance(1.0)
        (reused,) = system.refresh()

        assert reused.command == "new"
        assert reused.user == "bob"
        assert reused.cpu_utilization == 0.0
        assert reused.uptime == 70  # 120s uptime - 50s start
        assert source.identity_calls[5] == 2

    def test_existing_record_reused(self, source, clock):
        source.add(5)
        system = System(source, clock=clock)

        for _ in range(3):
            system.refresh()
            clock.advance(1.0)

        assert source.identity_calls[5] == 1

    def test_running_count(self, source, clock):
        source.add(1, state="R")
        source.add(2, state="S")
        source.add(3, state="R")
        source.add(4, state="Z")
        system = System(source, clock=clock)

        system.refresh()

        assert system.total_processes == 4
        assert system.running_processes == 2

    def test_running_never_exceeds_total(self, source, clock):
        for pid in range(1, 6):
            source.add(pid, state="R")
        source.vanished.update({6, 7})
        system = System(source, clock=clock)

        system.refresh()

        assert system.running_processes <= system.total_processes
        assert system.running_processes == 5

    def test_returns_independent_list(self, source, clock):
        source.add(1)
        source.add(2)
        system = System(source, clock=clock)

        processes = system.refresh()
        processes.clear()

        assert pids_of(system.processes) == [1, 2]
        assert system.processes is not system.processes


class TestHostMetrics:
    """Tests for host-level metrics from refresh()."""

    def test_cpu_utilization(self, source, clock):
        """Scenario from t0 to t1: 70 busy ticks out of 100."""
        system = System(source, clock=clock)
        system.refresh()
        assert system.cpu_utilization == 0.0

        source.cpu = T1
        clock.advance(1.0)
        system.refresh()

        assert system.cpu_utilization == pytest.approx(0.70)

    def test_cpu_independent_of_process_count(self, source, clock):
        for pid in range(1, 50):
            source.add(pid)
        system = System(source, clock=clock)
        system.refresh()
        source.cpu = T1
        clock.advance(1.0)
        system.refresh()

        assert system.cpu_utilization == pytest.approx(0.70)

    def test_memory_and_uptime(self, source, clock):
        system = System(source, clock=clock)

        system.refresh()

        assert system.memory_utilization == pytest.approx(0.75)
        assert system.uptime == 120.0

    def test_memory_zero_total(self, source, clock):
        source.mem = (0, 0)
        system = System(source, clock=clock)

        system.refresh()

        assert system.memory_utilization == 0.0

    def test_static_host_info_read_once(self, source, clock):
        system = System(source, clock=clock)
        system.refresh()
        clock.advance(1.0)
        system.refresh()

        assert system.operating_system == "Test OS 1.0"
        assert system.kernel == "6.1.0-test"
        assert system.metrics.os_name == "Test OS 1.0"
        assert source.host_info_calls == 1

    def test_host_failure_propagates(self, source, clock):
        source.add(1)
        system = System(source, clock=clock)
        source.host_failure = True

        with pytest.raises(HostMetricsUnavailable):
            system.refresh()

    def test_host_failure_keeps_previous_records(self, source, clock):
        proc = source.add(1, active=0)
        system = System(source, clock=clock)
        system.refresh()

        source.host_failure = True
        clock.advance(1.0)
        with pytest.raises(HostMetricsUnavailable):
            system.refresh()

        source.host_failure = False
        proc.active = 100
        clock.advance(1.0)
        processes = system.refresh()

        # The baseline from the first refresh survived the failed cycle
        assert processes[0].cpu_utilization == pytest.approx(0.5)
        assert pids_of(system.processes) == [1]

    def test_snapshot(self, source, clock):
        source.add(1, state="R")
        system = System(source, clock=clock)
        system.refresh()

        snapshot = system.snapshot()

        assert snapshot.host.total_processes == 1
        assert snapshot.host.running_processes == 1
        assert pids_of(snapshot.processes) == [1]
