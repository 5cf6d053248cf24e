"""Rule evaluation and compliance scoring for vendor insurance certificates.

This package contains only domain logic:
- Inputs are extracted certificate fields + tenant rule configuration.
- No database, HTTP, or filesystem access lives here.
"""

from .canonicalizer import canonicalize, merge_policy_documents
from .config import COVERAGE_PROFILES, CoverageProfile, LimitThresholds, get_coverage_profile
from .context import EvaluationContext
from .coverage_checks import check_coverage_limits, missing_endorsements, run_coverage_checks
from .evaluation import evaluate_vendor_documents
from .models import (
    Alert,
    CanonicalPolicyRecord,
    FieldRef,
    GroupScore,
    RuleCondition,
    RuleDefinition,
    RuleGroup,
    RuleResult,
    RuleType,
    ScoreSnapshot,
    Severity,
    TenantRunSummary,
    VendorEvaluation,
    VendorRunSummary,
)
from .runner import RulesRunner
from .scoring import compute_global_score, compute_group_score, tier_for_score

# Import built-in strategies so they self-register with the global registry.
from . import strategies as _builtin_strategies  # noqa: F401
