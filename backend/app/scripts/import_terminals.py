"""Bulk-load terminals from an Excel or CSV inventory sheet.

Every row goes through ``TerminalService.create_terminal`` so port capacity and
uniqueness are enforced exactly as they are for the API. Rejected rows are
reported with their reason and can be written to a CSV for follow-up.

Usage::

    python -m backend.app.scripts.import_terminals inventory.xlsx --username admin
"""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from pydantic import ValidationError

LOGGER = logging.getLogger(__name__)

REQUIRED_COLUMNS = (
    "unit_id",
    "type",
    "terminal_id",
    "branch_name",
    "district",
    "site",
    "cbs_account",
    "port",
    "ip_address",
)
OPTIONAL_COLUMNS = ("terminal_name",)

# Headers exported by the legacy console use camelCase.
COLUMN_ALIASES = {
    "unitid": "unit_id",
    "terminalid": "terminal_id",
    "terminalname": "terminal_name",
    "branchname": "branch_name",
    "cbsaccount": "cbs_account",
    "ipaddress": "ip_address",
    "portnumber": "port",
}


@dataclass
class RejectedRow:
    row_number: int
    terminal_id: str
    reason: str


@dataclass
class ImportSummary:
    created: int = 0
    rejected: List[RejectedRow] = field(default_factory=list)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create terminals in bulk from an Excel (.xlsx) or CSV inventory sheet."
    )
    parser.add_argument("source", type=Path, help="Path to the inventory file")
    parser.add_argument(
        "--username",
        required=True,
        help="Console user recorded as the creator of the imported terminals",
    )
    parser.add_argument(
        "--sheet",
        default=0,
        help="Worksheet name or index when reading an Excel file",
    )
    parser.add_argument(
        "--database-url",
        dest="database_url",
        help="Database URL (defaults to DATABASE_URL or the local SQLite file)",
    )
    parser.add_argument(
        "--conflict-report",
        dest="conflict_report",
        type=Path,
        default=None,
        help="Optional CSV path listing rejected rows and the reason for each",
    )
    return parser.parse_args()


def _normalize_header(name: Any) -> str:
    cleaned = str(name).strip().replace(" ", "_").replace("-", "_")
    compact = cleaned.replace("_", "").lower()
    return COLUMN_ALIASES.get(compact, cleaned.lower())


def load_inventory(source: Path, sheet: Any = 0) -> pd.DataFrame:
    if source.suffix.lower() == ".csv":
        return pd.read_csv(source, dtype=str)
    try:
        return pd.read_excel(source, sheet_name=sheet, dtype=str)
    except ValueError as exc:
        raise ValueError(f"Sheet '{sheet}' was not found in {source}") from exc


def prepare_terminal_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Normalise headers and cell values; raises ``ValueError`` on missing columns."""

    df = df.rename(columns=_normalize_header)
    missing = set(REQUIRED_COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(f"Inventory is missing required columns: {', '.join(sorted(missing))}.")

    df = df[[*REQUIRED_COLUMNS, *[col for col in OPTIONAL_COLUMNS if col in df.columns]]].copy()
    for column in df.columns:
        if column == "port":
            continue
        values = df[column].astype(object)
        df[column] = values.where(values.notna(), None)
        df[column] = df[column].map(lambda value: str(value).strip() if value is not None else None)
    df["port"] = pd.to_numeric(df["port"], errors="coerce").astype("Int64")
    df = df.dropna(how="all")
    return df


def _row_payload(row: Dict[str, Any]) -> Dict[str, Any]:
    payload = {
        key: value
        for key, value in row.items()
        if key != "port" and value is not None and value != ""
    }
    port = row.get("port")
    payload["port"] = None if port is None or pd.isna(port) else int(port)
    return payload


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else str(first.get("msg"))


def import_terminals(session, df: pd.DataFrame, actor) -> ImportSummary:
    """Create one terminal per row and collect the rows that were refused."""

    from ..schemas import TerminalCreate
    from ..services import DuplicateTerminalFieldError, PortUnavailableError, TerminalService

    summary = ImportSummary()
    # Spreadsheet row numbers: header on line 1.
    for offset, row in enumerate(df.to_dict(orient="records"), start=2):
        terminal_id = str(row.get("terminal_id") or "")
        try:
            data = TerminalCreate(**_row_payload(row))
            TerminalService.create_terminal(session, data, actor=actor)
        except ValidationError as exc:
            reason = _describe_validation_error(exc)
        except (DuplicateTerminalFieldError, PortUnavailableError) as exc:
            reason = str(exc)
        else:
            summary.created += 1
            continue
        LOGGER.warning("Row %s (%s) rejected: %s", offset, terminal_id or "-", reason)
        summary.rejected.append(RejectedRow(offset, terminal_id, reason))
    return summary


def write_conflict_report(rejected: List[RejectedRow], destination: Optional[Path]) -> None:
    if not rejected or destination is None:
        return
    report_df = pd.DataFrame(
        [
            {"row": item.row_number, "terminal_id": item.terminal_id, "reason": item.reason}
            for item in rejected
        ]
    )
    destination.parent.mkdir(parents=True, exist_ok=True)
    report_df.to_csv(destination, index=False)
    print(f"Rejected rows written to {destination.as_posix()}")


def _print_summary(summary: ImportSummary) -> None:
    print("==== Import summary ====")
    print(f"Terminals created: {summary.created}")
    print(f"Rows rejected: {len(summary.rejected)}")
    for item in summary.rejected:
        print(f" - row {item.row_number} ({item.terminal_id or '-'}): {item.reason}")


def _resolve_actor(session, username: str):
    from .. import models
    from ..security import UserIdentity

    user = (
        session.query(models.User)
        .filter(models.User.username == username, models.User.is_deleted.is_(False))
        .one_or_none()
    )
    if user is None:
        raise SystemExit(f"User '{username}' does not exist or was deleted.")
    return UserIdentity.from_user(user)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")
    args = _parse_args()

    if args.database_url:
        os.environ.setdefault("DATABASE_URL", args.database_url)

    from ..database import session_scope

    df = prepare_terminal_frame(load_inventory(args.source, args.sheet))

    with session_scope() as session:
        actor = _resolve_actor(session, args.username)
        summary = import_terminals(session, df, actor)

    _print_summary(summary)
    write_conflict_report(summary.rejected, args.conflict_report)


if __name__ == "__main__":
    main()
