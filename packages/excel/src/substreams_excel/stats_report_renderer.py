"""Store statistics report renderer (one row per store, plus the module graph)."""

from __future__ import annotations

from typing import Dict, List, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, Border, Side, Alignment, PatternFill

from substreams_domain.graph import ModuleGraph
from substreams_domain.schemas import StatsReportCFG, StoreInput, StoreStats
from substreams_domain.store import stats_to_frame


# Column header, DataFrame column, number format, width
STATS_SHEET_COLUMNS = [
    ("Module", "module_name", None, 28),
    ("Hash", "module_hash", None, 44),
    ("Initial Block", "module_initial_block", '#,##0', 14),
    ("Update Policy", "module_update_policy", None, 14),
    ("Value Type", "module_value_type", None, 12),
    ("Keys", "count", '#,##0', 12),
    ("File", "file_name", None, 28),
    ("File Size (B)", "file_size_bytes", '#,##0', 14),
    ("Start Block", "start_block", '#,##0', 14),
    ("End Block", "end_block", '#,##0', 14),
    ("Key Total (B)", "keys_total_size_bytes", '#,##0', 14),
    ("Key Largest (B)", "keys_largest_size_bytes", '#,##0', 14),
    ("Key Avg (B)", "keys_average_size_bytes", '0.00', 12),
    ("Key Std Dev (B)", "keys_std_dev_size_bytes", '0.00', 14),
    ("Largest Key", "largest_key", None, 28),
    ("Value Total (B)", "values_total_size_bytes", '#,##0', 14),
    ("Value Largest (B)", "values_largest_size_bytes", '#,##0', 16),
    ("Value Avg (B)", "values_average_size_bytes", '0.00', 12),
    ("Value Std Dev (B)", "values_std_dev_size_bytes", '0.00', 16),
    ("Largest Value Key", "largest_value_key", None, 28),
]

GRAPH_SHEET_COLUMNS = [
    ("From", 28),
    ("Input", 40),
    ("Mode", 10),
    ("To", 28),
]


class StatsReportRenderer:
    """Render store statistics into a workbook.

    Sheets:
        - stats sheet: one row per store in the order given (topological
          order when the stats come from StoreStatsCollector), with a totals
          row; empty stores show identity columns only
        - graph sheet (optional): one row per module input edge
    """

    def __init__(self, config: Optional[StatsReportCFG] = None):
        self.config = config or StatsReportCFG()

        self.bold_font = Font(bold=True)
        self.title_font = Font(size=14, bold=True)
        self.muted_font = Font(italic=True, color="808080")  # Gray for empty stores

        # Header styling
        self.header_font = Font(bold=True, color="FFFFFF")  # White text on dark blue
        self.header_fill = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")

        # Totals row styling
        self.totals_fill = PatternFill(start_color="F2F2F2", end_color="F2F2F2", fill_type="solid")
        self.top_border = Border(top=Side(style='medium'))

        self.center_align = Alignment(horizontal='center', vertical='center')

    def render(
        self,
        stats: List[StoreStats],
        output_path: str,
        graph: Optional[ModuleGraph] = None,
    ) -> str:
        wb = self.build_workbook(stats, graph)
        wb.save(output_path)
        return output_path

    def build_workbook(self, stats: List[StoreStats], graph: Optional[ModuleGraph] = None) -> Workbook:
        wb = Workbook()
        wb.remove(wb.active)

        self._render_stats_sheet(wb, stats_to_frame(stats))
        if self.config.include_graph_sheet and graph is not None:
            self._render_graph_sheet(wb, graph)

        return wb

    # ------------------------------------------------------------------ #
    # Stats sheet
    # ------------------------------------------------------------------ #

    def _render_stats_sheet(self, wb: Workbook, frame: pd.DataFrame) -> None:
        sheet = wb.create_sheet(title=self.config.stats_sheet_name)
        sheet.sheet_view.showGridLines = False

        title_cell = sheet["A1"]
        title_cell.value = self.config.title
        title_cell.font = self.title_font

        header_row = 3
        self._write_header(sheet, header_row, [header for header, _, _, _ in STATS_SHEET_COLUMNS])

        row = header_row + 1
        for _, record in frame.iterrows():
            is_empty = pd.isna(record["file_name"])
            for col, (_, column, number_format, _) in enumerate(STATS_SHEET_COLUMNS, start=1):
                value = record[column]
                cell = sheet.cell(row=row, column=col, value=None if pd.isna(value) else value)
                if number_format:
                    cell.number_format = number_format
                if is_empty:
                    cell.font = self.muted_font
            row += 1

        # Totals over stores with data
        totals_row = row
        sheet.cell(row=totals_row, column=1, value="Total").font = self.bold_font
        col_index = self._column_indexes()
        for column in ("count", "file_size_bytes", "keys_total_size_bytes", "values_total_size_bytes"):
            cell = sheet.cell(row=totals_row, column=col_index[column])
            cell.value = int(frame[column].fillna(0).sum()) if not frame.empty else 0
            cell.number_format = '#,##0'
            cell.font = self.bold_font
        for col in range(1, len(STATS_SHEET_COLUMNS) + 1):
            cell = sheet.cell(row=totals_row, column=col)
            cell.fill = self.totals_fill
            cell.border = self.top_border

        for col, (_, _, _, width) in enumerate(STATS_SHEET_COLUMNS, start=1):
            sheet.column_dimensions[self._col_letter(col)].width = width

        sheet.freeze_panes = "B4"

    @staticmethod
    def _column_indexes() -> Dict[str, int]:
        return {column: idx for idx, (_, column, _, _) in enumerate(STATS_SHEET_COLUMNS, start=1)}

    # ------------------------------------------------------------------ #
    # Graph sheet
    # ------------------------------------------------------------------ #

    def _render_graph_sheet(self, wb: Workbook, graph: ModuleGraph) -> None:
        sheet = wb.create_sheet(title=self.config.graph_sheet_name)
        sheet.sheet_view.showGridLines = False

        title_cell = sheet["A1"]
        title_cell.value = "Module Graph"
        title_cell.font = self.title_font

        header_row = 3
        self._write_header(sheet, header_row, [header for header, _ in GRAPH_SHEET_COLUMNS])

        row = header_row + 1
        for module in graph.topological_sort():
            for inp in module.inputs:
                producer = inp.name.split(":", 1)[1]
                mode = str(inp.mode) if isinstance(inp, StoreInput) else None
                for col, value in enumerate((producer, inp.name, mode, module.name), start=1):
                    sheet.cell(row=row, column=col, value=value)
                row += 1

        for col, (_, width) in enumerate(GRAPH_SHEET_COLUMNS, start=1):
            sheet.column_dimensions[self._col_letter(col)].width = width

        sheet.freeze_panes = "A4"

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _write_header(self, sheet, row: int, headers: List[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = sheet.cell(row=row, column=col, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.center_align

    @staticmethod
    def _col_letter(idx: int) -> str:
        """Convert 1-based column index to Excel column letter."""
        letter = ""
        while idx > 0:
            idx, rem = divmod(idx - 1, 26)
            letter = chr(65 + rem) + letter
        return letter
