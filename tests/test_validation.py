from cms_i18n.core import database as db
from cms_i18n.core.modules import get_module_config
from cms_i18n.core.records import ContentRecord
from cms_i18n.core.validation import (
    DiagnosticFinding,
    analyze,
    run_diagnostics,
    summarize,
)

SERVICE = get_module_config("service_pages")

SOURCE = {
    "title": "SAP Consulting",
    "hero_headline": "Run SAP better",
    "meta_description": "",
    "core_offerings": [
        {"title": "Migration", "description": "Move"},
        {"title": "Support", "description": "Help"},
        {"title": "Training", "description": "Learn"},
    ],
    "benefits": [{"title": "Speed", "description": "Fast"}],
}


def record_with(translated, language="nl", errors=None):
    return ContentRecord(
        id="s1",
        updated_at=None,
        source=SOURCE,
        translated_content={language: translated},
        content_errors=errors or {},
    )


def test_mirrored_translation_has_no_issues():
    translated = {
        "title": "SAP Advies",
        "hero_headline": "SAP beter",
        "core_offerings": [{"title": "a"}, {"title": "b"}, {"title": "c"}],
        "benefits": [{"title": "Snel"}],
    }
    finding = analyze(record_with(translated), SERVICE, "nl")

    assert finding.has_translation is True
    assert finding.issues == ()
    assert finding.missing_fields == ()
    assert finding.empty_or_mismatched_arrays == ()
    assert finding.title == "SAP Consulting"


def test_missing_scalar_and_empty_array_are_both_reported():
    translated = {
        "title": "SAP Advies",
        "core_offerings": [],
        "benefits": [{"title": "Snel"}],
    }
    finding = analyze(record_with(translated), SERVICE, "nl")

    assert finding.missing_fields == ("hero_headline",)
    assert finding.empty_or_mismatched_arrays == ("core_offerings",)
    assert "Missing: hero_headline" in finding.issues
    assert "Empty array: core_offerings (3 items in source)" in finding.issues
    assert len(finding.issues) == 2


def test_blank_translated_scalar_counts_as_missing():
    translated = {"title": "  ", "hero_headline": "x", "core_offerings": [1, 2, 3], "benefits": [1]}
    finding = analyze(record_with(translated), SERVICE, "nl")
    assert finding.missing_fields == ("title",)


def test_array_problems():
    translated = {
        "title": "t",
        "hero_headline": "h",
        "core_offerings": [{"title": "a"}],
        "benefits": "Snel",
    }
    finding = analyze(record_with(translated), SERVICE, "nl")

    assert finding.issues == (
        "Length mismatch: core_offerings (source: 3, translated: 1)",
        "Invalid: benefits is not an array",
    )
    assert finding.empty_or_mismatched_arrays == ("core_offerings",)
    assert finding.missing_fields == ("benefits",)


def test_absent_array_is_missing():
    translated = {"title": "t", "hero_headline": "h", "core_offerings": [1, 2, 3]}
    finding = analyze(record_with(translated), SERVICE, "nl")

    assert finding.missing_fields == ("benefits",)
    assert finding.issues == ("Missing array: benefits (1 items in source)",)


def test_no_translation():
    for translated in (None, {}):
        finding = analyze(record_with(translated), SERVICE, "nl")
        assert finding.has_translation is False
        assert finding.issues == ("No translation available",)


def test_malformed_translation_is_reported_on_that_record_only():
    finding = analyze(record_with(None, errors={"nl": "invalid JSON"}), SERVICE, "nl")

    assert finding.has_translation is False
    assert finding.issues == ("Malformed translation: invalid JSON",)


def test_analyze_is_repeatable():
    record = record_with({"title": "t"})
    assert analyze(record, SERVICE, "nl") == analyze(record, SERVICE, "nl")


def test_summarize():
    findings = [
        DiagnosticFinding("a", "A", True),
        DiagnosticFinding("b", "B", True, missing_fields=("x",), issues=("Missing: x",)),
        DiagnosticFinding("c", "C", False, issues=("No translation available",)),
        DiagnosticFinding("d", "D", True),
    ]
    summary = summarize(findings)

    assert summary.total == 4
    assert summary.fully_translated == 2
    assert summary.partially_translated == 1
    assert summary.not_translated == 1


def test_run_diagnostics_reads_storage(faqs, make_faqs):
    ids = make_faqs(3)
    db.patch_translation(faqs, ids[0], "nl", {"question": "V1", "answer": "A1"})
    db.patch_translation(faqs, ids[1], "nl", {"question": "V2"})
    with db.get_connection() as conn:
        conn.execute("UPDATE faqs SET content_nl = ? WHERE id = ?", ("not json", ids[2]))
        conn.commit()

    report = run_diagnostics("faqs", "nl")

    assert [finding.record_id for finding in report.findings] == ids
    assert report.findings[0].issues == ()
    assert report.findings[1].issues == ("Missing: answer",)
    assert report.findings[2].has_translation is False
    assert report.findings[2].issues[0].startswith("Malformed translation:")
    assert report.summary.to_dict() == {
        "total": 3,
        "fully_translated": 1,
        "partially_translated": 1,
        "not_translated": 1,
    }
    assert report.to_dict()["module"] == "faqs"


def test_unreadable_timestamp_is_reported_on_that_record_only(faqs, make_faqs):
    ids = make_faqs(3)
    for record_id in ids:
        db.patch_translation(faqs, record_id, "nl", {"question": "V", "answer": "A"})
    with db.get_connection() as conn:
        conn.execute("UPDATE faqs SET last_translated_at_nl = 'garbage' WHERE id = ?", (ids[1],))
        conn.commit()

    report = run_diagnostics("faqs", "nl")

    assert report.findings[0].issues == ()
    assert report.findings[2].issues == ()
    assert report.findings[1].has_translation is True
    assert len(report.findings[1].issues) == 1
    assert report.findings[1].issues[0].startswith("Unreadable last_translated_at_nl:")
    assert report.summary.fully_translated == 2
    assert report.summary.partially_translated == 1
