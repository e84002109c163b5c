import pytest

from esu_agent.core.config import Config
from esu_agent.core.errors import InventoryQueryError
from esu_agent.core.logger import Logger
from esu_agent.modules.inventory import InventoryProvider, LicenseRecord
from esu_agent.utils.slmgr import ToolResult

YEAR1_ID = "f520e45e-7413-4a34-a497-d2765967d094"
YEAR2_ID = "1043add5-23b1-4afb-9a0f-64343c8f3f8d"
YEAR3_ID = "83d49986-add3-41d7-ba33-87c7bfb5c0fb"

WINDOWS_ID = "4de7cb65-cdf1-4de9-8ae8-e3cce27b9f2c"


def esu_record(activation_id, status, partial_key="ABCDE", name="Client-ESU-Year"):
    return LicenseRecord(
        name=name,
        activation_id=activation_id,
        status=status,
        partial_product_key=partial_key,
    )


class FakeProvider(InventoryProvider):
    """Returns queued snapshots; the last one repeats."""

    name = "fake"

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots) or [[]]
        self.calls = 0

    def fetch(self):
        index = min(self.calls, len(self.snapshots) - 1)
        self.calls += 1
        return list(self.snapshots[index])


class FailingProvider(InventoryProvider):
    name = "broken"

    def __init__(self):
        self.calls = 0

    def fetch(self):
        self.calls += 1
        raise InventoryQueryError("provider unavailable")


class FakeTool:
    """Stands in for LicenseManagerTool and records every call."""

    def __init__(self, install_rc=0, activate_rc=0, on_activate=None):
        self.install_rc = install_rc
        self.activate_rc = activate_rc
        self.on_activate = on_activate
        self.calls = []

    def install_product_key(self, product_key):
        self.calls.append(("ipk", product_key))
        return ToolResult(args=["/ipk"], returncode=self.install_rc, stdout="installed")

    def activate(self, activation_id=None):
        self.calls.append(("ato", activation_id))
        if self.on_activate:
            self.on_activate(activation_id)
        return ToolResult(args=["/ato"], returncode=self.activate_rc, stderr="activation error")

    def display_license_info(self, activation_id=None):
        self.calls.append(("dlv", activation_id))
        return ToolResult(args=["/dlv"], returncode=0, stdout="License Status: Notification")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep ESU_* variables from the host out of the tests."""
    import os
    for name in list(os.environ):
        if name.upper().startswith("ESU_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path):
    cfg = Config(tmp_path / "missing.yaml")
    cfg.esu.product_keys = {
        "Year1": "AAAA1-AAAA2-AAAA3-AAAA4-YEAR1",
        "Year2": "AAAA1-AAAA2-AAAA3-AAAA4-YEAR2",
        "Year3": "AAAA1-AAAA2-AAAA3-AAAA4-YEAR3",
    }
    cfg.esu.settle_delay_seconds = 5
    cfg.logging.local_enabled = False
    return cfg


@pytest.fixture
def logger():
    return Logger(name="EsuTest", file_enabled=False)
