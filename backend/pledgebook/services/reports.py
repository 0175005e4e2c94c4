from __future__ import annotations

from datetime import date, datetime, time

import xlsxwriter
from xlsxwriter.utility import xl_col_to_name

from pledgebook.models.record import Record
from pledgebook.services.records import quote_record


def build_records_report(records: list[Record], as_of: date, out_file, title: str = "Records"):
    wb = xlsxwriter.Workbook(out_file, {"in_memory": True})
    base_font = "Calibri"

    meta_label = wb.add_format({"bold": True, "font_name": base_font, "font_size": 11, "font_color": "#334155"})
    meta_value = wb.add_format({"font_name": base_font, "font_size": 11, "font_color": "#0f172a"})
    subtle = wb.add_format({"font_name": base_font, "font_size": 10, "font_color": "#64748b"})
    header = wb.add_format(
        {
            "bold": True,
            "font_name": base_font,
            "font_size": 11,
            "bg_color": "#F1F5F9",
            "border": 1,
            "align": "center",
            "valign": "vcenter",
        }
    )
    date_fmt = wb.add_format({"font_name": base_font, "font_size": 11, "num_format": "yyyy-mm-dd", "border": 1})
    money2 = wb.add_format(
        {"font_name": base_font, "font_size": 11, "num_format": "#,##0.00", "border": 1, "align": "right"}
    )
    grams = wb.add_format(
        {"font_name": base_font, "font_size": 11, "num_format": "#,##0.000", "border": 1, "align": "right"}
    )
    rate2 = wb.add_format(
        {"font_name": base_font, "font_size": 11, "num_format": "0.00", "border": 1, "align": "right"}
    )
    int0 = wb.add_format({"font_name": base_font, "font_size": 11, "num_format": "0", "border": 1, "align": "right"})
    text_cell = wb.add_format({"font_name": base_font, "font_size": 11, "border": 1, "align": "left"})
    total_label = wb.add_format(
        {"bold": True, "font_name": base_font, "font_size": 11, "bg_color": "#F8FAFC", "border": 1}
    )
    total_money2 = wb.add_format(
        {
            "bold": True,
            "font_name": base_font,
            "font_size": 11,
            "bg_color": "#F8FAFC",
            "border": 1,
            "num_format": "#,##0.00",
            "align": "right",
        }
    )
    total_grams = wb.add_format(
        {
            "bold": True,
            "font_name": base_font,
            "font_size": 11,
            "bg_color": "#F8FAFC",
            "border": 1,
            "num_format": "#,##0.000",
            "align": "right",
        }
    )
    stripe = wb.add_format({"bg_color": "#FBFDFF"})

    # ----------------------------
    # Sheet 1: Records
    # ----------------------------
    ws = wb.add_worksheet("Records")

    ws.write(0, 0, "Report", meta_label)
    ws.write(0, 1, title, meta_value)
    ws.write(1, 0, "As of", meta_label)
    ws.write(1, 1, as_of.isoformat(), subtle)
    ws.write(1, 3, "Generated", meta_label)
    ws.write(1, 4, datetime.now().strftime("%Y-%m-%d %H:%M"), subtle)

    headers = [
        "Sl No",
        "Date",
        "Name",
        "Father Name",
        "Street",
        "Place",
        "Mobile",
        "Item",
        "Type",
        "Category",
        "Gold (g)",
        "Silver (g)",
        "Amount",
        "Interest %",
        "Days",
        "Billable Months",
        "Interest Amount",
        "Total Payable",
        "Returned",
        "Returned Amount",
    ]
    widths = [10, 12, 20, 20, 16, 16, 12, 20, 8, 10, 10, 10, 14, 10, 8, 10, 16, 16, 9, 16]
    for c, w in enumerate(widths):
        ws.set_column(c, c, w)

    hr = 3
    ws.set_row(hr, 18)
    for c, h in enumerate(headers):
        ws.write(hr, c, h, header)
    ws.freeze_panes(hr + 1, 1)

    r = hr + 1
    for rec in records:
        q = quote_record(rec, as_of)
        ws.write(r, 0, rec.sl_no, text_cell)
        if rec.date is not None:
            ws.write_datetime(r, 1, datetime.combine(rec.date, time.min), date_fmt)
        else:
            ws.write_blank(r, 1, None, date_fmt)
        ws.write(r, 2, rec.name or "", text_cell)
        ws.write(r, 3, rec.father_name or "", text_cell)
        ws.write(r, 4, rec.street or "", text_cell)
        ws.write(r, 5, rec.place or "", text_cell)
        ws.write_string(r, 6, rec.mobile or "", text_cell)
        ws.write(r, 7, rec.item or "", text_cell)
        ws.write(r, 8, rec.item_type or "", text_cell)
        ws.write(r, 9, rec.item_category or "", text_cell)
        ws.write_number(r, 10, float(rec.gold_weight_grams or 0), grams)
        ws.write_number(r, 11, float(rec.silver_weight_grams or 0), grams)
        ws.write_number(r, 12, q["principal_amount"], money2)
        ws.write_number(r, 13, q["interest_rate_percent"], rate2)
        ws.write_number(r, 14, q["days_old"], int0)
        ws.write_number(r, 15, q["billable_months"], int0)
        ws.write_number(r, 16, q["interest_amount"], money2)
        ws.write_number(r, 17, q["total_amount"], money2)
        ws.write(r, 18, "Yes" if rec.is_returned else "No", text_cell)
        if rec.returned_amount is not None:
            ws.write_number(r, 19, float(rec.returned_amount), money2)
        else:
            ws.write_blank(r, 19, None, money2)
        r += 1

    last_data_row = r - 1
    last_col = len(headers) - 1
    if last_data_row > hr:
        ws.autofilter(hr, 0, last_data_row, last_col)
        ws.conditional_format(
            hr + 1, 0, last_data_row, last_col, {"type": "formula", "criteria": "=MOD(ROW(),2)=0", "format": stripe}
        )

        first_excel = hr + 2
        last_excel = last_data_row + 1
        total_row = last_data_row + 1
        ws.write(total_row, 0, "Totals", total_label)
        summed = (
            (10, total_grams),
            (11, total_grams),
            (12, total_money2),
            (16, total_money2),
            (17, total_money2),
            (19, total_money2),
        )
        for c, fmt in summed:
            col = xl_col_to_name(c)
            ws.write_formula(total_row, c, f"=SUM({col}{first_excel}:{col}{last_excel})", fmt)

        ws.set_landscape()
        ws.fit_to_pages(1, 0)

    # ----------------------------
    # Sheet 2: Summary
    # ----------------------------
    summary = wb.add_worksheet("Summary")
    summary.set_column(0, 0, 26)
    summary.set_column(1, 1, 22)

    title_fmt = wb.add_format({"bold": True, "font_name": base_font, "font_size": 14, "font_color": "#0f172a"})
    summary.write(0, 0, "Records Summary", title_fmt)
    summary.write(2, 0, "Report", meta_label)
    summary.write(2, 1, title, meta_value)
    summary.write(3, 0, "As of", meta_label)
    summary.write(3, 1, as_of.isoformat(), subtle)

    held = [x for x in records if not x.is_returned]
    returned = [x for x in records if x.is_returned]
    summary.write(5, 0, "Records", meta_label)
    summary.write_number(5, 1, len(records))
    summary.write(6, 0, "Held", meta_label)
    summary.write_number(6, 1, len(held))
    summary.write(7, 0, "Returned", meta_label)
    summary.write_number(7, 1, len(returned))

    if last_data_row > hr:
        totals_excel_row = last_data_row + 2
        summary.write(9, 0, "Principal Lent", meta_label)
        summary.write_formula(9, 1, f"=Records!M{totals_excel_row}", money2)
        summary.write(10, 0, "Interest Due (suggested)", meta_label)
        summary.write_formula(10, 1, f"=Records!Q{totals_excel_row}", money2)
        summary.write(11, 0, "Total Payable (suggested)", meta_label)
        summary.write_formula(11, 1, f"=Records!R{totals_excel_row}", money2)
        summary.write(12, 0, "Amount Collected", meta_label)
        summary.write_formula(12, 1, f"=Records!T{totals_excel_row}", money2)
    else:
        summary.write(9, 0, "Note", meta_label)
        summary.write(9, 1, "No records match the selected filters.", subtle)

    wb.close()
