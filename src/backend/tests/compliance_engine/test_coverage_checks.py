from decimal import Decimal

from common.compliance_engine.canonicalizer import canonicalize
from common.compliance_engine.config import COVERAGE_PROFILES, CoverageProfile, LimitThresholds, get_coverage_profile
from common.compliance_engine.coverage_checks import (
    check_coverage_limits,
    missing_coverage_findings,
    missing_endorsements,
    run_coverage_checks,
)
from common.compliance_engine.models import Severity


def _compliant_extraction(**limits):
    base = {
        "general_liability": "1,000,000",
        "auto_liability": "1,000,000",
        "umbrella": "1,000,000",
        "employers_liability": "500,000",
    }
    base.update(limits)
    return {"limits": base, "endorsements": ["CG2010", "CG2037"]}


def test_fully_compliant_record_has_no_findings():
    record = canonicalize(_compliant_extraction())
    assert run_coverage_checks(record, "standard_construction") == []


def test_low_gl_is_reported_as_too_low_not_missing():
    record = canonicalize(_compliant_extraction(general_liability="500000", umbrella="2000000"))
    findings = run_coverage_checks(record, "standard_construction")

    codes = [f.code for f in findings]
    assert codes == ["GL_LIMIT_TOO_LOW"]
    assert record.has_gl is True
    assert findings[0].severity == Severity.HIGH
    assert findings[0].message == "General Liability limit (500,000) is below required minimum (1,000,000)."


def test_absent_coverage_is_missing_not_too_low():
    record = canonicalize({"endorsements": ["CG2010", "CG2037"]})
    findings = run_coverage_checks(record)

    by_code = {f.code: f for f in findings}
    assert set(by_code) == {"MISSING_GL", "MISSING_AUTO", "MISSING_WC"}
    assert by_code["MISSING_GL"].severity == Severity.CRITICAL
    assert by_code["MISSING_AUTO"].severity == Severity.HIGH
    assert by_code["MISSING_WC"].severity == Severity.HIGH


def test_combined_gl_and_umbrella_checked_against_profile():
    record = canonicalize(_compliant_extraction(umbrella="500000"))
    findings = check_coverage_limits(record, "standard_construction")
    assert [f.code for f in findings] == ["COMBINED_LIMIT_TOO_LOW"]
    assert findings[0].values["actual"] == "1500000"


def test_missing_endorsements_in_required_order():
    record = canonicalize({"endorsements": "CG 20 37"})
    assert missing_endorsements(record, "heavy_construction") == ["CG2010", "CG2404", "CG2001"]

    findings = run_coverage_checks(record, "heavy_construction")
    endorsement = next(f for f in findings if f.code == "MISSING_ENDORSEMENTS")
    assert endorsement.message == "Missing required endorsements: CG2010, CG2404, CG2001"
    assert endorsement.values["missing"] == ["CG2010", "CG2404", "CG2001"]


def test_heavy_profile_raises_minimums():
    record = canonicalize(_compliant_extraction(umbrella="3000000"))
    assert check_coverage_limits(record, "standard_construction") == []

    codes = {f.code for f in check_coverage_limits(record, "heavy_construction")}
    assert codes == {"GL_LIMIT_TOO_LOW", "WC_LIMIT_TOO_LOW"}


def test_zero_minimum_disables_check():
    lenient = CoverageProfile(name="lenient", limits=LimitThresholds(gl_min=Decimal("0")))
    record = canonicalize({"limits": {"general_liability": "1"}})
    assert check_coverage_limits(record, lenient) == []


def test_unknown_profile_falls_back_to_standard():
    assert get_coverage_profile("does-not-exist") is COVERAGE_PROFILES["standard_construction"]
    assert get_coverage_profile(None).name == "standard_construction"
    assert get_coverage_profile(" Heavy_Construction ").name == "heavy_construction"


def test_custom_profile_catalog():
    custom = {"tiny": CoverageProfile(name="tiny", required_endorsements=["cg 20 10"])}
    record = canonicalize({})
    assert missing_endorsements(record, "tiny", profiles=custom) == ["CG2010"]


def test_missing_coverage_findings_only_for_absent_lines():
    record = canonicalize({"limits": {"general_liability": "1000000", "auto_liability": "0"}})
    codes = [f.code for f in missing_coverage_findings(record)]
    assert codes == ["MISSING_AUTO", "MISSING_WC"]
