from __future__ import annotations
import json
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Iterable, Optional
import pandas as pd
from .aggregate import AggregationResult
from .models import DOCUMENTS, PROFILES, RECORDS, TradeRecord
from .store import Store
from .utils import iso_timestamp, utc_now


def build_user_export(
    store: Store,
    user_id: str,
    email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    # плоский снимок всех данных пользователя
    documents = store.list(DOCUMENTS, {"userId": user_id})
    records = store.list(RECORDS, {"userId": user_id})
    profiles = store.list(PROFILES, {"userId": user_id})
    return {
        "exportDate": iso_timestamp(now),
        "user": {"id": user_id, "email": email},
        "documents": documents,
        "records": records,
        "profiles": profiles,
        "summary": {
            "totalDocuments": len(documents),
            "totalRecords": len(records),
            "cbamRecords": sum(1 for r in records if TradeRecord.from_row(r).is_cbam_relevant),
        },
    }


def export_user_data_json(
    store: Store,
    user_id: str,
    email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    obj = build_user_export(store, user_id, email=email, now=now)
    return json.dumps(obj, ensure_ascii=False, indent=2, default=str)


def export_filename(now: Optional[datetime] = None) -> str:
    return f"tradeflow-export-{iso_timestamp(now or utc_now())[:10]}.json"


def _records_frame(records: Iterable[TradeRecord]) -> pd.DataFrame:
    rows = []
    for r in records:
        rows.append({
            "Row": r.source_row,
            "Product Code": r.product_code,
            "Product Description": r.product_description,
            "Origin Country": r.origin_country,
            "Destination Country": r.destination_country,
            "Quantity": r.quantity,
            "Unit": r.unit,
            "Value": r.value,
            "Currency": r.currency,
            "CBAM": "yes" if r.is_cbam_relevant else "no",
            "CBAM Category": r.cbam_category or "",
            "Risk Level": r.risk_level or "",
            "Compliance Score": "" if r.compliance_score is None else round(r.compliance_score, 2),
            "Warnings": "; ".join(w.message for w in r.warnings),
        })
    return pd.DataFrame(rows)


def export_report_to_excel_bytes(result: AggregationResult, records: Optional[Iterable[TradeRecord]] = None, top_products: int = 5) -> bytes:
    summary_df = pd.DataFrame([
        {"Metric": "Total records", "Value": result.total_records},
        {"Metric": "CBAM relevant records", "Value": result.cbam_relevant_count},
        {"Metric": "CBAM share (%)", "Value": round(result.cbam_share, 2)},
        {"Metric": "Average compliance score", "Value": round(result.average_compliance_score, 2)},
        {"Metric": "High risk records", "Value": result.high_risk_count},
        {"Metric": "Origin countries", "Value": result.unique_countries},
        {"Metric": "Total value", "Value": round(result.total_value, 2)},
    ])
    risk = dict(result.country_risk)
    countries_df = pd.DataFrame([
        {
            "Country": c.country,
            "Records": c.record_count,
            "Total Value": round(c.total_value, 2),
            "CBAM Records": c.cbam_count,
            "Distinct Products": c.distinct_products,
            "Top Products": ", ".join(c.top_products(top_products)),
            "Risk Weight": risk.get(c.country, 0),
        }
        for c in result.top_countries()
    ], columns=["Country", "Records", "Total Value", "CBAM Records", "Distinct Products", "Top Products", "Risk Weight"])
    categories_df = pd.DataFrame([
        {"Category": s.category, "Records": s.count, "Share of CBAM (%)": round(s.percent, 2)}
        for s in result.category_breakdown()
    ], columns=["Category", "Records", "Share of CBAM (%)"])
    routes_df = pd.DataFrame([
        {
            "Origin": r.origin,
            "Destination": r.destination,
            "Records": r.record_count,
            "Total Value": round(r.total_value, 2),
            "CBAM Records": r.cbam_count,
        }
        for r in result.top_routes(None)
    ], columns=["Origin", "Destination", "Records", "Total Value", "CBAM Records"])
    records_df = _records_frame(records or [])

    sheets = [
        ("Summary", summary_df),
        ("Countries", countries_df),
        ("Categories", categories_df),
        ("Routes", routes_df),
    ]
    if not records_df.empty:
        sheets.append(("Records", records_df))

    bio = BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        for name, df in sheets:
            df.to_excel(writer, index=False, sheet_name=name)

        wb = writer.book
        fmt_header = wb.add_format({"bold": True, "bg_color": "#F2F2F2", "border": 1, "valign": "vcenter"})
        fmt_risk_high = wb.add_format({"bg_color": "#FCE8E6"})
        fmt_risk_medium = wb.add_format({"bg_color": "#FEF7E0"})

        def format_df_sheet(sheet_name: str, df: pd.DataFrame, default_width: int = 16, max_width: int = 60):
            ws = writer.sheets.get(sheet_name)
            if ws is None:
                return
            ws.freeze_panes(1, 0)
            ws.autofilter(0, 0, max(1, len(df)), max(0, len(df.columns) - 1))
            for col, name in enumerate(df.columns):
                ws.write(0, col, name, fmt_header)
                w = max(10, min(max_width, int(len(str(name)) * 1.2) + 4))
                ws.set_column(col, col, max(default_width, w))

        for name, df in sheets:
            format_df_sheet(name, df)

        wsr = writer.sheets.get("Records")
        if wsr is not None:
            j = list(records_df.columns).index("Risk Level")
            last_row = len(records_df)
            wsr.conditional_format(1, j, last_row, j, {
                "type": "text",
                "criteria": "containing",
                "value": "high",
                "format": fmt_risk_high,
            })
            wsr.conditional_format(1, j, last_row, j, {
                "type": "text",
                "criteria": "containing",
                "value": "medium",
                "format": fmt_risk_medium,
            })
            wsr.set_column(2, 2, 40)
            wsr.set_column(13, 13, 60)

    return bio.getvalue()
