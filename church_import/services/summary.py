from __future__ import annotations

from ..models.import_result import ImportResult

"""Summary line rendering.

Format:
SUMMARY kind={kind} rows={rows} success={success} failed={failed}
elapsed_sec={elapsed} throughput_rps={throughput}
"""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for one import.

    Examples:
        >>> from datetime import datetime, timezone
        >>> r = ImportResult(kind="giving", success=3, failed=1)
        >>> r.start_time = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> r.end_time = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> render_summary_line(r)
        'SUMMARY kind=giving rows=4 success=3 failed=1 elapsed_sec=2 throughput_rps=2'
    """
    elapsed = result.elapsed_seconds
    throughput = result.processed_rows / elapsed if elapsed > 0 else 0.0
    return (
        f"SUMMARY kind={result.kind} "
        f"rows={result.processed_rows} "
        f"success={result.success} "
        f"failed={result.failed} "
        f"elapsed_sec={_format_number(elapsed)} "
        f"throughput_rps={_format_number(throughput)}"
    )
