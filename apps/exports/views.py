# apps/exports/views.py

import csv
import json
import logging
from io import BytesIO

import xlsxwriter
from django.core.exceptions import ValidationError
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.utils.text import slugify
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.core.permissions import BoardPermissions, api_login_required, board_access_required
from apps.core.serializers import serialize_board
from apps.core.utils import board_statistics, parse_json_body
from .utils import CARD_HEADERS, build_board_export, card_rows, import_board

logger = logging.getLogger(__name__)


def _filename(board, extension):
    return f"{slugify(board.name) or 'board'}-{timezone.now():%Y%m%d}.{extension}"


@require_GET
@api_login_required
@board_access_required(BoardPermissions.VIEW)
def export_board(request, board_id):
    """
    Exports a board

    ?format=json (default), csv or xlsx
    """
    board = request.board
    export_format = request.GET.get('format', 'json').lower()

    if export_format == 'json':
        response = HttpResponse(
            json.dumps(build_board_export(board), indent=2, ensure_ascii=False),
            content_type='application/json; charset=utf-8',
        )
    elif export_format == 'csv':
        response = export_board_csv(board)
    elif export_format == 'xlsx':
        response = export_board_excel(board)
    else:
        raise ValidationError({'format': [f"Unknown format '{export_format}'"]})

    response['Content-Disposition'] = f'attachment; filename="{_filename(board, export_format)}"'
    logger.info("Board %s exported as %s by %s", board.id, export_format, request.user.username)
    return response


def export_board_csv(board):
    """Cards of the board, one per row"""
    response = HttpResponse(content_type='text/csv; charset=utf-8')
    response.write('\ufeff')  # BOM for UTF-8

    writer = csv.writer(response)
    writer.writerow(CARD_HEADERS)

    for row in card_rows(board):
        due_date, created_at = row[7], row[9]
        row[7] = due_date.strftime('%Y-%m-%d') if due_date else ''
        row[9] = created_at.strftime('%Y-%m-%d')
        writer.writerow(row)

    return response


def export_board_excel(board):
    """
    XLSX with a summary sheet and a cards sheet
    """
    output = BytesIO()
    workbook = xlsxwriter.Workbook(output, {'in_memory': True, 'remove_timezone': True})

    header_format = workbook.add_format({
        'bold': True,
        'font_color': 'white',
        'bg_color': '#366092',
        'border': 1
    })
    cell_format = workbook.add_format({'border': 1})
    date_format = workbook.add_format({'num_format': 'yyyy-mm-dd', 'border': 1})

    stats = board_statistics(board)

    # Sheet 1: summary
    summary = workbook.add_worksheet('Summary')
    summary.write('A1', 'BOARD', header_format)
    summary.write('B1', board.name, cell_format)
    summary.write('A2', 'Description', header_format)
    summary.write('B2', board.description, cell_format)
    summary.write('A3', 'Cards', header_format)
    summary.write('B3', stats['totalCards'], cell_format)
    summary.write('A4', 'Archived', header_format)
    summary.write('B4', stats['archivedCards'], cell_format)
    summary.write('A5', 'Overdue', header_format)
    summary.write('B5', stats['overdueCards'], cell_format)

    summary.write('A7', 'Column', header_format)
    summary.write('B7', 'Cards', header_format)
    summary.write('C7', 'WIP limit', header_format)
    for row, column in enumerate(stats['columns'], 7):
        summary.write(row, 0, column['name'], cell_format)
        summary.write(row, 1, column['cards'], cell_format)
        summary.write(row, 2, column['wipLimit'] or '', cell_format)
    summary.set_column('A:A', 20)
    summary.set_column('B:B', 40)

    # Sheet 2: cards
    cards_sheet = workbook.add_worksheet('Cards')
    for col, header in enumerate(CARD_HEADERS):
        cards_sheet.write(0, col, header, header_format)

    for row, values in enumerate(card_rows(board), 1):
        for col, value in enumerate(values):
            if col in (7, 9):
                if value:
                    cards_sheet.write_datetime(row, col, value, date_format)
                else:
                    cards_sheet.write_blank(row, col, None, cell_format)
            else:
                cards_sheet.write(row, col, value, cell_format)
    cards_sheet.set_column('D:E', 40)

    workbook.close()
    output.seek(0)

    return HttpResponse(
        output.read(),
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    )


@csrf_exempt
@api_login_required
@require_POST
def import_board_view(request):
    """Creates a new board from a JSON export"""
    data = parse_json_body(request)

    success, message, board = import_board(data, request.user)
    if not success:
        return JsonResponse({'error': message}, status=400)

    return JsonResponse(serialize_board(board, nested=True), status=201)
