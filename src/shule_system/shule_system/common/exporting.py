from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

import pandas as pd

from ..core.exceptions import ValidationError

EXCEL_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class ExportFile:
    content: bytes
    filename: str
    mimetype: str


def export_rows(
    rows: Iterable[Mapping],
    *,
    fmt: str,
    basename: str,
    sheet_name: str = "Report",
    columns: Optional[Sequence[str]] = None,
) -> ExportFile:
    """Render rows as a CSV or Excel download kept in memory."""
    df = pd.DataFrame(list(rows), columns=list(columns) if columns else None)
    kind = (fmt or "csv").strip().lower()

    if kind == "csv":
        return ExportFile(
            content=df.to_csv(index=False).encode("utf-8"),
            filename=f"{basename}.csv",
            mimetype="text/csv",
        )

    if kind in {"excel", "xlsx"}:
        output = io.BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name=sheet_name[:31])
        return ExportFile(content=output.getvalue(), filename=f"{basename}.xlsx", mimetype=EXCEL_MIMETYPE)

    raise ValidationError("Export format must be csv or excel")


def read_csv_rows(stream) -> list[dict]:
    """Parse an uploaded CSV into dict rows with blank cells as None."""
    df = pd.read_csv(stream, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]
    return [{k: (v.strip() or None) if isinstance(v, str) else v for k, v in row.items()} for row in df.to_dict(orient="records")]
