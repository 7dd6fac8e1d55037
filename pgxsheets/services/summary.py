from __future__ import annotations

from pgxsheets.models.processing_result import ImportResult

"""SUMMARY line rendering.

Format:
    SUMMARY importer=<name> status=<committed|aborted> files=<done>/<found>
    success=<n> failed=<n> rows=<n> skipped_rows=<n> elapsed_sec=<x> throughput_rps=<x>

``done`` counts files that were attempted; on an aborted run it is smaller
than ``found`` by the files never reached.
"""

__all__ = [
    "format_number",
    "render_summary_line",
]


def format_number(value: float) -> str:
    """Integral values without a fraction, tiny values without exponent notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for ``result``.

    Examples:
        >>> from datetime import datetime, timezone
        >>> from pgxsheets.models.artifact import RunStatus
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = ImportResult(
        ...     importer="allele_definition", status=RunStatus.COMMITTED, total_files=2,
        ...     success_files=2, failed_files=0, total_inserted_rows=1000, total_skipped_rows=0,
        ...     start_time=start, end_time=end, elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(result)
        'SUMMARY importer=allele_definition status=committed files=2/2 success=2 failed=0 rows=1000 skipped_rows=0 elapsed_sec=2 throughput_rps=500'
    """
    attempted = result.success_files + result.failed_files
    return (
        f"SUMMARY importer={result.importer} "
        f"status={result.status.value} "
        f"files={attempted}/{result.total_files} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"rows={result.total_inserted_rows} "
        f"skipped_rows={result.total_skipped_rows} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )
