import json
import subprocess

import pytest

from esu_agent.core.errors import InventoryQueryError
from esu_agent.modules.inventory import (
    CimInventoryProvider,
    LicenseRecord,
    LicenseStatus,
    WmiInventoryProvider,
    describe_records,
    filter_esu_records,
    query_license_inventory,
    status_name,
)
from tests.conftest import (
    FailingProvider, FakeProvider, WINDOWS_ID, YEAR1_ID, YEAR2_ID, esu_record,
)


def test_status_names():
    assert status_name(0) == "Unlicensed"
    assert status_name(1) == "Licensed"
    assert status_name(2) == "OOBGrace"
    assert status_name(3) == "OOTGrace"
    assert status_name(4) == "NonGenuineGrace"
    assert status_name(5) == "Notification"
    assert status_name(6) == "ExtendedGrace"
    assert status_name(42) == "Unknown(42)"


def test_record_from_mapping_normalises_fields():
    record = LicenseRecord.from_mapping({
        "Name": "Windows(R), Client-ESU-Year1 add-on",
        "ID": YEAR1_ID.upper(),
        "LicenseStatus": 5,
        "PartialProductKey": "",
    })

    assert record.activation_id == YEAR1_ID
    assert record.status == LicenseStatus.NOTIFICATION
    assert record.partial_product_key is None
    assert not record.has_partial_key
    assert not record.is_licensed


def test_filter_keeps_only_esu_records_with_key_material():
    records = [
        esu_record(YEAR1_ID, 1),
        esu_record(YEAR2_ID, 0, partial_key=None),
        esu_record(WINDOWS_ID, 1, name="Windows Professional"),
    ]

    filtered = filter_esu_records(records, {YEAR1_ID, YEAR2_ID})

    assert filtered == [records[0]]


def test_filter_matches_ids_case_insensitively():
    record = LicenseRecord(name="ESU", activation_id=YEAR1_ID.upper(), status=1, partial_product_key="ABCDE")

    assert filter_esu_records([record], {YEAR1_ID}) == [record]


def test_query_falls_back_to_next_provider(logger, caplog):
    broken = FailingProvider()
    working = FakeProvider([esu_record(YEAR1_ID, 1)])

    records = query_license_inventory({YEAR1_ID}, providers=[broken, working], logger=logger)

    assert broken.calls == 1
    assert working.calls == 1
    assert [r.activation_id for r in records] == [YEAR1_ID]
    assert "License query via broken failed" in caplog.text


def test_query_stops_at_first_successful_provider():
    first = FakeProvider([])
    second = FakeProvider([esu_record(YEAR1_ID, 1)])

    assert query_license_inventory({YEAR1_ID}, providers=[first, second]) == []
    assert second.calls == 0


def test_query_raises_when_every_provider_fails():
    with pytest.raises(InventoryQueryError) as excinfo:
        query_license_inventory({YEAR1_ID}, providers=[FailingProvider(), FailingProvider()])

    assert "All license inventory providers failed" in str(excinfo.value)


def test_cim_parse_single_object_and_list():
    single = json.dumps({"Name": "ESU", "ID": YEAR1_ID, "LicenseStatus": 1, "PartialProductKey": "ABCDE"})
    many = json.dumps([
        {"Name": "ESU", "ID": YEAR1_ID, "LicenseStatus": 1, "PartialProductKey": "ABCDE"},
        {"Name": "Windows", "ID": WINDOWS_ID, "LicenseStatus": None, "PartialProductKey": None},
    ])

    assert len(CimInventoryProvider.parse_output(single)) == 1
    parsed = CimInventoryProvider.parse_output(many)
    assert parsed[1].status == LicenseStatus.UNLICENSED
    assert CimInventoryProvider.parse_output("") == []


def test_cim_parse_rejects_garbage():
    with pytest.raises(InventoryQueryError):
        CimInventoryProvider.parse_output("Get-CimInstance : Access denied")


def test_cim_fetch_runs_powershell(monkeypatch):
    captured = {}

    def fake_run(cmd, **kwargs):
        captured["cmd"] = cmd
        payload = json.dumps({"Name": "ESU", "ID": YEAR2_ID, "LicenseStatus": 1, "PartialProductKey": "ABCDE"})
        return subprocess.CompletedProcess(cmd, 0, stdout=payload, stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)

    records = CimInventoryProvider("pwsh.exe").fetch()

    assert captured["cmd"][0] == "pwsh.exe"
    assert "Get-CimInstance -ClassName SoftwareLicensingProduct" in captured["cmd"][-1]
    assert records[0].activation_id == YEAR2_ID


def test_cim_fetch_nonzero_exit_is_an_error(monkeypatch):
    monkeypatch.setattr(
        subprocess, "run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="CIM failure"),
    )

    with pytest.raises(InventoryQueryError, match="CIM failure"):
        CimInventoryProvider().fetch()


def test_cim_fetch_missing_powershell_is_an_error(monkeypatch):
    def missing(cmd, **kwargs):
        raise FileNotFoundError("powershell.exe")

    monkeypatch.setattr(subprocess, "run", missing)

    with pytest.raises(InventoryQueryError):
        CimInventoryProvider().fetch()


def test_wmi_provider_unavailable_without_wmi(monkeypatch):
    import esu_agent.modules.inventory as inventory

    monkeypatch.setattr(inventory, "wmi", None)

    with pytest.raises(InventoryQueryError):
        WmiInventoryProvider().fetch()


def test_describe_records_uses_year_labels(config):
    lines = list(describe_records([esu_record(YEAR2_ID, 5)], config.esu))

    assert lines[0].startswith("Year2:")
    assert "Notification (5)" in lines[0]
