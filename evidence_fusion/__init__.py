"""
Evidence Fusion

Turns partial, noisy, multi-source product evidence (photos, OCR text,
vision extractions, user confirmations) into one stable, explainable
sourcing decision.

Features:
- Priority-ordered fallback chains with provenance and confidence
- Always-complete draft inference records
- Four-state fact normalization
- GO / HOLD / NO verdict with confidence and reasons
- Sensitivity scenarios and a 48-hour action plan
- Hash-stable verdict text and nudge selection
- Isolated concurrent extraction with timeouts

Quick Start:
    from evidence_fusion import DecisionSupportPipeline, ExtractionAttempts

    pipeline = DecisionSupportPipeline()
    record = pipeline.run(report_json, ExtractionAttempts.from_dict(attempts_json))
    print(record.verdict.decision)   # Decision.HOLD
    print(record.verdict_text)

    # Stored report only (draft and inputStatus already on it)
    record = pipeline.run(report_json)
    blob = record.to_json()

CLI Usage:
    evidence-fusion synthesize report.json --attempts attempts.json -o decision.json
    evidence-fusion nudge report.json
    evidence-fusion templates --decision GO
"""

__version__ = '1.0.0'

from .exceptions import CatalogError, ConfigurationError, EvidenceFusionError
from .settings import ConfigLoader, EngineConfig, load_engine_config

# Main pipeline
from .pipeline import (
    DecisionSupportPipeline,
    DecisionSupportRecord,
    PipelineConfig,
    synthesize,
)

# Evidence and drafts
from .evidence import EvidenceField, EvidenceSource, FactState
from .draft import DraftInference
from .draft.builder import DraftInferenceBuilder
from .extractor import ExtractionAttempts, ExtractionOutcome, FailureReason, FallbackCoordinator

# Decisions and content
from .decision import Decision, DecisionEngine, DecisionSignals, SensitivityAnalyzer, ActionPlanGenerator
from .content import VerdictTemplateSelector, NudgeSelector, stable_hash

# Reports and extraction
from .report import ReportEntity, RecordExporter
from .performance import ExtractionPool

__all__ = [
    '__version__',

    'EvidenceFusionError',
    'ConfigurationError',
    'CatalogError',
    'ConfigLoader',
    'EngineConfig',
    'load_engine_config',

    'DecisionSupportPipeline',
    'DecisionSupportRecord',
    'PipelineConfig',
    'synthesize',

    'EvidenceField',
    'EvidenceSource',
    'FactState',
    'DraftInference',
    'DraftInferenceBuilder',
    'ExtractionAttempts',
    'ExtractionOutcome',
    'FailureReason',
    'FallbackCoordinator',

    'Decision',
    'DecisionEngine',
    'DecisionSignals',
    'SensitivityAnalyzer',
    'ActionPlanGenerator',
    'VerdictTemplateSelector',
    'NudgeSelector',
    'stable_hash',

    'ReportEntity',
    'RecordExporter',
    'ExtractionPool',
]
