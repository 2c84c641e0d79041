"""
Ombor — Excel export
Builds .xlsx attachments for the list pages.
"""
import io

from django.http import HttpResponse
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def export_filename(name, today=None):
    today = today or timezone.localdate()
    return f'{name}_{today.isoformat()}.xlsx'


def column_widths(rows, columns):
    """Widest of header and values per column, plus two."""
    widths = []
    for key, header in columns:
        longest = max([len(header)] + [len(_text(row.get(key))) for row in rows])
        widths.append(longest + 2)
    return widths


def _text(value):
    if value is None:
        return ''
    return str(value)


def build_workbook(rows, columns, sheet_name='Sheet1'):
    """
    ``columns`` is a list of ``(key, header)`` pairs; each row is a dict.
    Values are written as-is so numbers stay numeric in the sheet.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name or 'Sheet1'

    ws.append([header for _, header in columns])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([row.get(key) for key, _ in columns])

    for idx, width in enumerate(column_widths(rows, columns), start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width
    return wb


def export_to_excel(rows, columns, filename, sheet_name='Sheet1'):
    """Return an HttpResponse carrying the workbook as a download."""
    buffer = io.BytesIO()
    build_workbook(rows, columns, sheet_name).save(buffer)
    buffer.seek(0)

    response = HttpResponse(buffer.read(), content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{export_filename(filename)}"'
    return response
