"""
Record Export

Reads report entities and extraction attempts from local JSON files and
writes decision-support records back, either standalone or attached to
the report under `_decisionSupport`.

Output is canonical (sorted keys, fixed indent) so re-running synthesis
for the same inputs produces byte-identical files.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from loguru import logger

from ..exceptions import EvidenceFusionError


RECORD_KEY = '_decisionSupport'

PathLike = Union[str, Path]


class ExportError(EvidenceFusionError):
    """Input file missing or not valid JSON."""


@dataclass
class ExportConfig:
    """Configuration for export."""
    include_supplemental: bool = True
    pretty_print: bool = True
    indent: int = 2


class RecordExporter:
    """
    JSON in/out for the CLI and batch jobs.

    Usage:
        exporter = RecordExporter()
        report = exporter.read_json('report.json')
        exporter.write_record(record, 'decision.json')
    """

    def __init__(self, config: ExportConfig = None):
        self.config = config or ExportConfig()

    def dumps(self, data: Any) -> str:
        """Canonical JSON text for a record (anything with to_dict) or plain data."""
        if hasattr(data, 'to_dict'):
            data = data.to_dict(include_supplemental=self.config.include_supplemental)
        return json.dumps(
            data,
            indent=self.config.indent if self.config.pretty_print else None,
            sort_keys=True,
            ensure_ascii=False,
        )

    def write_record(self, record: Any, output_path: PathLike) -> str:
        """
        Write a record to a file.

        Args:
            record: DecisionSupportRecord
            output_path: Output file path

        Returns:
            Path to exported file
        """
        output_path = str(output_path)
        os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.dumps(record))
            f.write("\n")
        logger.info(f"Decision-support record written to: {output_path}")
        return output_path

    def attach(self, report: Mapping[str, Any], record: Any) -> Dict[str, Any]:
        """Copy of the stored report with the record attached as an opaque blob."""
        attached = dict(report) if isinstance(report, Mapping) else {}
        attached[RECORD_KEY] = record.to_dict(include_supplemental=self.config.include_supplemental)
        return attached

    def read_json(self, path: PathLike) -> Any:
        """Load a JSON input file."""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except OSError as e:
            raise ExportError(f"Cannot read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ExportError(f"{path} is not valid JSON: {e}") from e
