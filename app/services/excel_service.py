"""訂單報表匯出（openpyxl）"""
from decimal import Decimal
from io import BytesIO
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from app.services.i18n import localize

MONEY_FORMAT = '#,##0.00'
HEADER_ROW = 4

# (表頭, 欄寬, 是否金額)
COLUMNS = [
    ("Order", 22, False),
    ("Created", 17, False),
    ("Customer", 20, False),
    ("Status", 16, False),
    ("Type", 10, False),
    ("Items", 40, False),
    ("Subtotal", 10, True),
    ("Discount", 10, True),
    ("Fees & tax", 10, True),
    ("Total", 10, True),
]

_edge = Side(style="thin")
GRID = Border(left=_edge, right=_edge, top=_edge, bottom=_edge)
HEADER_STYLE = {
    "font": Font(bold=True, color="FFFFFF"),
    "fill": PatternFill(start_color="F97316", end_color="F97316", fill_type="solid"),
    "alignment": Alignment(horizontal="center", vertical="center"),
    "border": GRID,
}


def _order_row(order, lang: str) -> list:
    summary = ", ".join(f"{line.quantity}x {localize(line.item_name, lang)}" for line in order.items)
    return [
        order.order_number,
        order.created_at.strftime("%Y-%m-%d %H:%M"),
        order.user.full_name if order.user else "-",
        order.status.value,
        order.delivery_type.value,
        summary or "-",
        float(order.subtotal),
        float(order.discount),
        float(order.delivery_fee + order.tax),
        float(order.total),
    ]


def _write_banner(ws, start_date, end_date):
    last_col = get_column_letter(len(COLUMNS))
    ws.merge_cells(f"A1:{last_col}1")
    ws.merge_cells(f"A2:{last_col}2")
    ws["A1"] = "Order report"
    ws["A1"].font = Font(bold=True, size=14)
    ws["A2"] = f"{start_date:%Y/%m/%d %H:%M} - {end_date:%Y/%m/%d %H:%M}"
    ws["A2"].font = Font(size=10, color="666666")


def export_orders_to_excel(orders, start_date, end_date, lang: str = "en") -> BytesIO:
    """期間內訂單寫成一張工作表，最後一列是營收（不含取消與退款）"""
    wb = Workbook()
    ws = wb.active
    ws.title = "Orders"
    _write_banner(ws, start_date, end_date)

    for index, (title, width, _) in enumerate(COLUMNS, 1):
        header = ws.cell(row=HEADER_ROW, column=index, value=title)
        for attr, style in HEADER_STYLE.items():
            setattr(header, attr, style)
        ws.column_dimensions[get_column_letter(index)].width = width

    revenue = Decimal("0.00")
    row_no = HEADER_ROW
    for row_no, order in enumerate(orders, HEADER_ROW + 1):
        for index, value in enumerate(_order_row(order, lang), 1):
            cell = ws.cell(row=row_no, column=index, value=value)
            cell.border = GRID
            if COLUMNS[index - 1][2]:
                cell.number_format = MONEY_FORMAT
        if order.status.value not in ("cancelled", "refunded"):
            revenue += order.total

    summary_row = row_no + 2
    ws.merge_cells(start_row=summary_row, start_column=1, end_row=summary_row, end_column=len(COLUMNS) - 1)
    label = ws.cell(row=summary_row, column=1, value="Revenue")
    label.font = Font(bold=True)
    label.alignment = Alignment(horizontal="right")
    amount = ws.cell(row=summary_row, column=len(COLUMNS), value=float(revenue))
    amount.font = Font(bold=True)
    amount.number_format = MONEY_FORMAT

    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer
