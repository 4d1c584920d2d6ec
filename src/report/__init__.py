"""Report renderers for resolved records.

- summary.py: default per-package summary and license statistics
- csv_export.py: deduplicated ``name,url,license`` CSV
- info.py: ``--info`` listing of parsed identities
- tree.py: dependency tree from recorded edges
"""

from .csv_export import export_csv, unique_packages, write_csv
from .info import render_info
from .summary import SummaryOptions, license_statistics, render_summary
from .tree import render_tree

__all__ = [
    "export_csv",
    "unique_packages",
    "write_csv",
    "render_info",
    "SummaryOptions",
    "license_statistics",
    "render_summary",
    "render_tree",
]
