"""
Decision Synthesis Pipeline

Main orchestration module: raw extraction attempts plus the stored report
entity in, one complete decision-support record out.

Stages (each consumes the full output of the previous one):
1. Fallback resolution      per-attribute source chains
2. Draft inference          complete, defaulted, normalized record
3. Evidence normalization   four-state fact readiness
4. Verdict                  GO / HOLD / NO with confidence
5. Sensitivity              exactly three scenarios
6. Action plan              today / tomorrow
7. Content selection        verdict text and report nudge, hash-stable

The pipeline holds no mutable state between runs; the same inputs always
give a byte-identical record.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from loguru import logger

from .content.catalog import ContentTemplate, load_template_catalog
from .content.nudges import NudgeFlags, NudgeSelector, ReportNudge, load_nudge_catalog
from .content.selector import VerdictTemplateSelector
from .decision.action_plan import ActionPlan, ActionPlanGenerator, PlanFlags
from .decision.compliance import ComplianceCheck, check_compliance
from .decision.decision_engine import DecisionEngine, DecisionSignals, Verdict
from .decision.sensitivity import CostSignals, SensitivityAnalyzer, SensitivityScenario
from .draft.builder import DraftInferenceBuilder
from .draft.models import DraftInference
from .evidence.fields import EvidenceField, EvidenceSource
from .evidence.normalizer import EvidenceNormalizer, FactState, NormalizedEvidence, RawFact, RawFacts
from .extractor.attempts import ExtractionAttempts, FailureReason
from .extractor.fallback import FallbackResult
from .parser.normalizers import category_matches
from .performance.extraction_pool import ExtractionPool, PoolConfig
from .report.report_data import ReportEntity
from .settings import EngineConfig, load_engine_config


@dataclass
class PipelineConfig:
    """Configuration for the decision synthesis pipeline."""

    # Data files (None = packaged defaults)
    engine_config_path: Optional[Path] = None
    template_catalog_path: Optional[Path] = None
    nudge_catalog_path: Optional[Path] = None

    # Extraction runner overrides
    extraction_timeout: Optional[float] = None
    max_workers: Optional[int] = None

    # Output
    include_supplemental: bool = True

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'engine_config_path': str(self.engine_config_path) if self.engine_config_path else None,
            'template_catalog_path': str(self.template_catalog_path) if self.template_catalog_path else None,
            'nudge_catalog_path': str(self.nudge_catalog_path) if self.nudge_catalog_path else None,
            'extraction_timeout': self.extraction_timeout,
            'max_workers': self.max_workers,
            'include_supplemental': self.include_supplemental,
        }


@dataclass(frozen=True)
class DecisionSupportRecord:
    """Everything the report page renders for the decision panel."""
    report_id: str
    draft: DraftInference
    verdict: Verdict
    action_plan: ActionPlan
    sensitivity: Tuple[SensitivityScenario, ...]
    nudge: ReportNudge
    template: ContentTemplate
    evidence: NormalizedEvidence
    signals: DecisionSignals
    compliance: ComplianceCheck
    extraction_status: Mapping[str, Any] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    @property
    def verdict_text(self) -> str:
        return self.template.statement

    def to_dict(self, include_supplemental: bool = True) -> Dict[str, Any]:
        data = {
            'draftInference': self.draft.to_dict(),
            'verdict': self.verdict.to_dict(),
            'actionPlan48h': self.action_plan.to_dict(),
            'sensitivity': {'scenarios': [s.to_dict() for s in self.sensitivity]},
            'nudge': self.nudge.to_dict(),
            'verdictText': self.verdict_text,
            'verdictTemplateId': self.template.id,
        }
        if include_supplemental:
            data.update({
                'evidence': self.evidence.to_dict(),
                'extractionStatus': dict(self.extraction_status),
                'compliance': self.compliance.to_dict(),
                'signals': self.signals.to_dict(),
                'warnings': list(self.warnings),
            })
        return data

    def to_json(self, include_supplemental: bool = True, indent: Optional[int] = 2) -> str:
        return json.dumps(
            self.to_dict(include_supplemental), indent=indent, sort_keys=True, ensure_ascii=False
        )


class DecisionSupportPipeline:
    """
    Main orchestration class for decision synthesis.

    Usage:
        pipeline = DecisionSupportPipeline()
        record = pipeline.run(report_json, ExtractionAttempts.from_dict(attempts_json))
        record.verdict.decision   # Decision.HOLD
        record.to_json()
    """

    def __init__(self, config: Optional[PipelineConfig] = None, engine_config: Optional[EngineConfig] = None):
        self.config = config or PipelineConfig()
        self.engine_config = engine_config or load_engine_config(self.config.engine_config_path)
        self._init_components()

    def _init_components(self) -> None:
        """Initialize all pipeline components."""
        cfg = self.engine_config
        template_path = self.config.template_catalog_path
        nudge_path = self.config.nudge_catalog_path

        self.builder = DraftInferenceBuilder(cfg)
        self.normalizer = EvidenceNormalizer()
        self.engine = DecisionEngine(cfg)
        self.analyzer = SensitivityAnalyzer(cfg)
        self.planner = ActionPlanGenerator()
        self.selector = VerdictTemplateSelector(
            load_template_catalog(str(template_path) if template_path else None), cfg
        )
        self.nudges = NudgeSelector(load_nudge_catalog(str(nudge_path) if nudge_path else None), cfg)

        pool_config = PoolConfig.from_engine_config(cfg)
        if self.config.extraction_timeout is not None:
            pool_config.timeout = self.config.extraction_timeout
        if self.config.max_workers is not None:
            pool_config.max_workers = self.config.max_workers
        self.pool = ExtractionPool(pool_config)

    def run(
        self,
        report: Union[ReportEntity, Mapping[str, Any], None],
        attempts: Optional[ExtractionAttempts] = None,
    ) -> DecisionSupportRecord:
        """
        Synthesize the decision-support record for one report.

        Args:
            report: Stored report entity (typed or raw JSON)
            attempts: Fresh extraction attempts. Without them the draft
                      stored with the report is re-normalized and the
                      facts come from the report's inputStatus.

        Returns:
            DecisionSupportRecord; never raises for any input shape
        """
        if not isinstance(report, ReportEntity):
            report = ReportEntity.from_dict(report or {})
        logger.info(f"Synthesizing decision support for report {report.report_id}")

        if attempts is not None:
            draft, facts, fallback = self._from_attempts(report, attempts)
            extraction_status = fallback.extraction_status()
            warnings = fallback.warnings
        else:
            draft, facts = self._from_stored(report)
            extraction_status = {}
            warnings = ()

        evidence = self.normalizer.normalize(facts)
        origin_confirmed = evidence.origin.state is FactState.CAPTURED
        label_readable = facts.label_readable
        if label_readable is None:
            label_readable = evidence.label.state is FactState.CAPTURED

        signals = DecisionSignals(
            supplier_matches=report.supplier_match_count,
            exact_matches=report.exact_match_count,
            has_barcode=evidence.barcode.is_available,
            has_label=evidence.label.is_available,
            label_readable=label_readable,
            has_weight=evidence.weight.is_available,
            has_origin=evidence.origin.is_available,
            weight_is_default=draft.weight_draft.is_default,
            case_pack_is_default=draft.case_pack_draft.is_default,
            duty_min=report.duty_min,
            duty_max=report.duty_max,
            best_estimate=report.best_estimate,
            margin_estimate=report.margin_estimate,
            compliance_suspected=self.compliance_suspected(report),
        )
        verdict = self.engine.decide(signals)

        sensitivity = self.analyzer.analyze(CostSignals(
            best_estimate=report.best_estimate,
            min_cost=report.min_cost,
            max_cost=report.max_cost,
            duty_min=report.duty_min,
            duty_max=report.duty_max,
            has_origin=origin_confirmed,
            target_price=report.target_price,
        ))

        action_plan = self.planner.plan(verdict.decision, PlanFlags(
            supplier_matches=signals.supplier_matches,
            exact_matches=signals.exact_matches,
            has_barcode=signals.has_barcode,
            has_label=signals.has_label,
            has_weight=signals.has_weight,
            has_origin=origin_confirmed,
        ))

        template = self.selector.select(report.report_id, report.category, verdict.decision, signals)
        nudge = self.nudges.pick(report.report_id, report.category, self.nudge_flags(report, draft, evidence))

        record = DecisionSupportRecord(
            report_id=report.report_id,
            draft=draft,
            verdict=verdict,
            action_plan=action_plan,
            sensitivity=sensitivity,
            nudge=nudge,
            template=template,
            evidence=evidence,
            signals=signals,
            compliance=check_compliance(draft.label_draft),
            extraction_status=extraction_status,
            warnings=tuple(warnings),
        )
        logger.info(
            f"Report {report.report_id}: {verdict.decision.value} "
            f"(confidence {verdict.confidence}, template {template.id}, nudge {nudge.action_key})"
        )
        return record

    def extract_and_run(
        self,
        report: Union[ReportEntity, Mapping[str, Any], None],
        attempts: ExtractionAttempts,
        calls: Mapping[str, Callable[[], Any]],
    ) -> DecisionSupportRecord:
        """Run the extraction calls concurrently, then synthesize."""
        return self.run(report, self.pool.gather(attempts, calls))

    # ------------------------------------------------------------------

    def compliance_suspected(self, report: ReportEntity) -> bool:
        return report.compliance_flag or category_matches(report.category, self.engine_config.compliance_keywords)

    def nudge_flags(self, report: ReportEntity, draft: DraftInference, evidence: NormalizedEvidence) -> NudgeFlags:
        return NudgeFlags(
            label_missing=not evidence.label.is_available,
            barcode_missing=not evidence.barcode.is_available,
            origin_missing=not evidence.origin.is_available,
            weight_default=draft.weight_draft.is_default,
            case_pack_default=draft.case_pack_draft.is_default,
            supplier_matches_empty=report.supplier_match_count == 0,
            hs_missing=not report.has_hs and not draft.hs_candidates_draft,
        )

    def _from_attempts(
        self, report: ReportEntity, attempts: ExtractionAttempts
    ) -> Tuple[DraftInference, RawFacts, FallbackResult]:
        if attempts.category == "unknown" and report.category != "unknown":
            attempts = replace(attempts, category=report.category)

        fallback = self.builder.coordinator.resolve_all(attempts)
        draft = self.builder.from_resolutions(fallback, attempts.category)

        uploads = attempts.uploads
        label_provided = (
            uploads.label_photo or bool(attempts.confirmed_label) or bool(attempts.label_terms)
        )
        barcode_provided = (
            uploads.barcode_photo
            or attempts.ocr_barcode is not None
            or attempts.barcode_vision.reason is not FailureReason.NOT_ATTEMPTED
        )
        facts = _facts_from_draft(
            draft,
            barcode_provided=barcode_provided,
            label_provided=label_provided,
            weight_provided=attempts.user_weight is not None or uploads.label_photo or uploads.product_photo,
            label_source=fallback.label.source,
            label_readable=fallback.label_readable,
        )
        return draft, facts, fallback

    def _from_stored(self, report: ReportEntity) -> Tuple[DraftInference, RawFacts]:
        if report.draft_inference is not None:
            stored = self.builder.parse(report.draft_inference).with_slots(category=report.category)
        else:
            stored = self.builder.empty(report.category)
        draft = self.builder.normalize(stored)

        if report.input_status:
            return draft, RawFacts.from_dict(report.input_status)

        # No upload record: whatever the stored draft holds counts as provided
        label_source = _best_source(draft.label_draft.fields().values())
        return draft, _facts_from_draft(
            draft,
            barcode_provided=draft.barcode_draft.is_present,
            label_provided=draft.label_draft.has_any_value,
            weight_provided=not draft.weight_draft.is_default,
            label_source=label_source,
        )


def _best_source(fields) -> EvidenceSource:
    """Most trusted source among present fields (DEFAULT when none)."""
    order = list(EvidenceSource)
    present = [f.source for f in fields if f.is_present]
    return min(present, key=order.index) if present else EvidenceSource.DEFAULT


def _fact(provided: bool, field_: EvidenceField) -> RawFact:
    return RawFact(provided=provided, value=field_.value, source=field_.source)


def _facts_from_draft(
    draft: DraftInference,
    barcode_provided: bool,
    label_provided: bool,
    weight_provided: bool,
    label_source: EvidenceSource,
    label_readable: Optional[bool] = None,
) -> RawFacts:
    label = draft.label_draft
    label_value = None
    if label_source is not EvidenceSource.DEFAULT:
        label_value = label.product_name.value or label.brand.value or True
    return RawFacts(
        barcode=_fact(barcode_provided, draft.barcode_draft),
        label=RawFact(provided=label_provided, value=label_value, source=label_source),
        weight=_fact(weight_provided or not draft.weight_draft.is_default, draft.weight_draft.as_field()),
        origin=_fact(label_provided or label.origin_country.is_present, label.origin_country),
        label_readable=label_readable,
    )


def synthesize(
    report: Union[ReportEntity, Mapping[str, Any], None],
    attempts: Optional[ExtractionAttempts] = None,
    config: Optional[PipelineConfig] = None,
) -> DecisionSupportRecord:
    """
    Convenience function to synthesize one report.

    Args:
        report: Stored report entity
        attempts: Optional fresh extraction attempts
        config: Optional pipeline configuration

    Returns:
        DecisionSupportRecord
    """
    return DecisionSupportPipeline(config).run(report, attempts)
