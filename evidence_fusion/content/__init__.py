"""
Deterministic content selection: verdict templates and report nudges.
"""

from .hashing import stable_hash
from .catalog import ContentTemplate, TemplateCatalog, load_template_catalog
from .selector import VerdictTemplateSelector
from .nudges import NudgeCatalog, NudgeFlags, NudgeSelector, ReportNudge, load_nudge_catalog

__all__ = [
    'stable_hash',
    'ContentTemplate',
    'TemplateCatalog',
    'load_template_catalog',
    'VerdictTemplateSelector',
    'NudgeCatalog',
    'NudgeFlags',
    'NudgeSelector',
    'ReportNudge',
    'load_nudge_catalog',
]
