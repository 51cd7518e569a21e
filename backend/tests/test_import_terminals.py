import pandas as pd
import pytest

from backend.app import models
from backend.app.scripts.import_terminals import (
    import_terminals,
    load_inventory,
    prepare_terminal_frame,
    write_conflict_report,
)


def _row(suffix, **overrides):
    row = {
        "unitId": f"U-{suffix}",
        "type": "ATM",
        "terminalId": f"T-{suffix}",
        "terminalName": None,
        "branchName": " Central ",
        "district": "North",
        "site": "Onsite",
        "cbsAccount": f"CBS-{suffix}",
        "port": "5",
        "ipAddress": f"10.1.0.{suffix}",
    }
    row.update(overrides)
    return row


def test_prepare_terminal_frame_maps_legacy_headers():
    frame = prepare_terminal_frame(pd.DataFrame([_row("1")]))

    assert list(frame.columns[:3]) == ["unit_id", "type", "terminal_id"]
    record = frame.to_dict(orient="records")[0]
    assert record["branch_name"] == "Central"
    assert record["terminal_name"] is None
    assert record["port"] == 5


def test_prepare_terminal_frame_requires_columns():
    row = _row("1")
    del row["ipAddress"]

    with pytest.raises(ValueError, match="ip_address"):
        prepare_terminal_frame(pd.DataFrame([row]))


def test_import_terminals_creates_rows_and_collects_rejections(db_session, actor, port_factory, tmp_path):
    port_factory(5, capacity=2)
    source = tmp_path / "inventory.csv"
    pd.DataFrame(
        [
            _row("1"),
            _row("2"),
            _row("3"),
            _row("4", ipAddress="10.1.0.1"),
            _row("5", ipAddress="not-an-ip"),
        ]
    ).to_csv(source, index=False)

    summary = import_terminals(db_session, prepare_terminal_frame(load_inventory(source)), actor)

    assert summary.created == 2
    reasons = {item.row_number: item.reason for item in summary.rejected}
    assert reasons[4] == "Port capacity is reached."
    assert reasons[5] == "IP address already exists."
    assert reasons[6].startswith("ip_address")

    db_session.expire_all()
    assert db_session.query(models.Terminal).count() == 2
    assert db_session.query(models.Port).filter_by(port_number=5).one().used_ports == 2

    report = tmp_path / "reports" / "rejected.csv"
    write_conflict_report(summary.rejected, report)
    written = pd.read_csv(report)
    assert list(written["terminal_id"]) == ["T-3", "T-4", "T-5"]
