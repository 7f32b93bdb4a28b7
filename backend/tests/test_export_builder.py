"""
test_export_builder.py — Unit tests for the export selection and submit path.

Tests cover:
  - initial selection: all categories and all four statuses
  - select-all / deselect-all / toggle-one and the combined toggle button
  - option toggles and orientation validation
  - build_package: category ∧ status subset in report order
  - submit_export: success message, generator failure path
"""

import asyncio
from dataclasses import replace

import pytest

from app.models.findings import ComplianceStatus
from app.services import export_builder
from app.services.export_builder import ExportResult, build_package, submit_export


@pytest.fixture
def selection(sample_report):
    return export_builder.initial_selection(sample_report.all_categories())


# ===========================================================================
# Selection transitions
# ===========================================================================

class TestSelection:

    def test_initial_selects_everything(self, selection):
        assert selection.categories == ("Egress", "Fire Safety", "General")
        assert set(selection.statuses) == set(ComplianceStatus)
        assert selection.options.orientation == "portrait"
        assert selection.options.include_summary is True
        assert selection.options.include_charts is True
        assert selection.options.include_bounding_boxes is False

    def test_select_all_deselect_all_toggle_one(self, selection):
        """Deselect all → empty; toggle C → [C]; select all → every category."""
        empty = export_builder.deselect_all(selection)
        assert empty.categories == ()
        one = export_builder.toggle_category(empty, "Egress")
        assert one.categories == ("Egress",)
        assert set(export_builder.select_all_categories(one).categories) == {
            "Egress", "Fire Safety", "General",
        }

    def test_toggle_category_off(self, selection):
        result = export_builder.toggle_category(selection, "Fire Safety")
        assert "Fire Safety" not in result.categories
        assert "Fire Safety" in selection.categories

    def test_toggle_all_categories(self, selection):
        none = export_builder.toggle_all_categories(selection)
        assert none.categories == ()
        partial = export_builder.toggle_category(none, "Egress")
        assert export_builder.toggle_all_categories(partial).categories == selection.known_categories

    def test_toggle_status(self, selection):
        without_pass = export_builder.toggle_status(selection, ComplianceStatus.PASS)
        assert ComplianceStatus.PASS not in without_pass.statuses
        back = export_builder.toggle_status(without_pass, "PASS")
        assert set(back.statuses) == set(ComplianceStatus)

    def test_toggle_option(self, selection):
        result = export_builder.toggle_option(selection, "include_bounding_boxes")
        assert result.options.include_bounding_boxes is True
        assert selection.options.include_bounding_boxes is False

    def test_toggle_unknown_option_raises(self, selection):
        with pytest.raises(ValueError):
            export_builder.toggle_option(selection, "include_everything")

    def test_set_orientation(self, selection):
        assert export_builder.set_orientation(selection, "landscape").options.orientation == "landscape"
        with pytest.raises(ValueError):
            export_builder.set_orientation(selection, "diagonal")

    def test_toggle_unknown_category_is_noop(self, selection):
        empty = export_builder.deselect_all(selection)
        assert export_builder.toggle_category(empty, "Plumbing") is empty
        assert export_builder.toggle_category(selection, "Plumbing") is selection

    def test_toggle_all_compares_membership_not_count(self, selection):
        """Same count as the report categories but different names still selects all."""
        stray = replace(selection, categories=("X", "Y", "Z"))
        assert export_builder.toggle_all_categories(stray).categories == selection.known_categories
        superset = replace(selection, categories=selection.known_categories + ("X",))
        assert export_builder.toggle_all_categories(superset).categories == ()


# ===========================================================================
# Package
# ===========================================================================

class TestBuildPackage:

    def test_full_selection_keeps_report_order(self, sample_report, selection):
        package = build_package(sample_report, selection)
        assert [f.id for f in package.findings] == ["f1", "f2", "f3", "f4", "f5"]
        assert package.file_name == "plan-a101.png"

    def test_category_and_status_intersection(self, sample_report, selection):
        sel = export_builder.toggle_category(selection, "Fire Safety")
        sel = export_builder.toggle_status(sel, ComplianceStatus.NEEDS_CLARIFICATION)
        package = build_package(sample_report, sel)
        assert [f.id for f in package.findings] == ["f2", "f5"]
        assert package.categories == ("Egress", "General")

    def test_independent_of_screen_filters(self, sample_report, selection):
        """The package reads the whole report, not the filtered list."""
        assert len(build_package(sample_report, selection).findings) == len(sample_report.findings)


# ===========================================================================
# Submit
# ===========================================================================

class _RecordingGenerator:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def render_pdf(self, package, path):
        self.calls.append(path)
        if self.fail:
            raise RuntimeError("disk full")
        return path


class TestSubmitExport:

    def test_success_message(self, sample_report, selection, tmp_path):
        package = build_package(sample_report, selection)
        gen = _RecordingGenerator()
        result = asyncio.run(submit_export(package, gen, "abcdef123456", delay=0, download_dir=str(tmp_path)))
        assert result.ok
        assert result.message == (
            "PDF Report (portrait) generated successfully!\n"
            "Includes: Summary, Charts, 3 Categories."
        )
        assert result.path == str(tmp_path / "Compliance_abcdef12.pdf")
        assert gen.calls == [result.path]

    def test_message_omits_disabled_sections(self, sample_report, selection, tmp_path):
        sel = export_builder.toggle_option(selection, "include_charts")
        sel = export_builder.set_orientation(sel, "landscape")
        package = build_package(sample_report, sel)
        result = asyncio.run(submit_export(package, _RecordingGenerator(), "x1", delay=0, download_dir=str(tmp_path)))
        assert result.message.endswith("Includes: Summary, 3 Categories.")
        assert "(landscape)" in result.message

    def test_generator_failure_is_reported(self, sample_report, selection, tmp_path):
        package = build_package(sample_report, selection)
        result = asyncio.run(
            submit_export(package, _RecordingGenerator(fail=True), "x2", delay=0, download_dir=str(tmp_path))
        )
        assert result == ExportResult(ok=False, message="PDF generation failed: disk full")
