import shutil
from unittest.mock import patch

import pytest

from ..utils.errors import ApplyFailure, VerificationMismatch
from .test_tuning_common import FakeHost


@pytest.fixture
def host(tmp_path):
    with FakeHost(tmp_path).patched() as host:
        yield host


class TestServices:
    def test_stop(self, host):
        host.tuning().services.stop()
        assert host.commands == [
            ["systemctl", "stop", "cron.service"],
            ["systemctl", "stop", "irqbalance.service"],
        ]
        assert "cron" not in host.running()
        assert "irqbalance" not in host.running()

    def test_stop_failure_is_advisory(self, host):
        """A failing systemctl is fine as long as the process is gone."""
        host.failures[("systemctl", "stop", "cron.service")] = (1, b"Job for cron.service canceled.")
        shutil.rmtree(host.proc_root / "100")
        host.tuning().services.stop()
        assert "irqbalance" not in host.running()

    def test_process_survives(self, host):
        host.failures[("systemctl", "stop", "irqbalance.service")] = (1, b"Job for irqbalance.service canceled.")
        services = host.tuning().services
        services.stop_timeout = 0
        with pytest.raises(VerificationMismatch) as exc:
            services.stop()
        assert exc.value.details == ["pid 101"]
        # cron was handled first
        assert "cron" not in host.running()

    def test_process_exits_late(self, host):
        """A process still shutting down when systemctl returns is waited for."""
        services = host.tuning().services
        with patch.object(services.processes, "pids_named", side_effect=[[100], [], []]) as pids_named:
            with patch("benchprep.tuning.services.time.sleep") as sleep:
                services.stop()
        assert pids_named.call_count == 3
        sleep.assert_called_once_with(services.poll_interval)

    def test_start(self, host):
        services = host.tuning().services
        services.stop()
        services.start()
        assert host.commands[2:] == [
            ["systemctl", "start", "cron.service"],
            ["systemctl", "start", "irqbalance.service"],
        ]
        assert "cron" in host.running()
        assert "irqbalance" in host.running()

    def test_start_failure(self, host):
        host.failures[("systemctl", "start", "cron.service")] = (5, b"Unit cron.service not found.")
        with pytest.raises(ApplyFailure) as exc:
            host.tuning().services.start()
        assert exc.value.details == ["Unit cron.service not found."]
        assert len(host.commands) == 1
