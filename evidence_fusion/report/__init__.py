"""
Report store entity reader and decision-support record export.
"""

from .report_data import ReportEntity, SupplierMatch
from .json_export import ExportConfig, ExportError, RecordExporter

__all__ = [
    'ReportEntity',
    'SupplierMatch',
    'ExportConfig',
    'ExportError',
    'RecordExporter',
]
