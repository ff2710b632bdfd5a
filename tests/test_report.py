"""
Tests for the DOCX report.
"""

import pytest

docx = pytest.importorskip("docx")
pytest.importorskip("matplotlib")

from conftest import make_event
from stormreport.engine import AnalysisConfig, summarize
from stormreport.report import DatasetCitation, ReportConfig, describe_findings, generate_docx_report


class TestFindings:

    def test_names_leading_categories(self, small_dataset):
        sentences = describe_findings(summarize(small_dataset))
        assert sentences[0].startswith("TORNADO is the event type with the most fatalities (8)")
        assert sentences[1].startswith("TORNADO is the event type with the most injuries (12)")
        assert sentences[2].startswith("FLOOD caused the greatest combined economic damage")
        assert "US$ 3.00 billion to property" in sentences[2]

    def test_empty_summary_has_no_findings(self):
        assert describe_findings(summarize([])) == []


class TestGenerateReport:

    def test_writes_docx_with_three_charts(self, small_dataset, tmp_path):
        out = tmp_path / "reports" / "storms.docx"
        cfg = ReportConfig(citation=DatasetCitation(file_name="StormData.csv.bz2"), command_line="stormreport report x.docx")
        path = generate_docx_report(summarize(small_dataset), str(out), config=cfg)

        assert path == str(out)
        assert out.exists()
        doc = docx.Document(str(out))
        text = "\n".join(p.text for p in doc.paragraphs)
        assert "Synopsis" in text
        assert "Top 15 Event Types by Fatalities" in text
        assert "Top 15 Event Types by Injuries" in text
        assert "Top 15 Event Types by Economic Damage" in text
        assert "Data file used: StormData.csv.bz2" in text
        assert "Command: stormreport report x.docx" in text
        assert len(doc.inline_shapes) == 3

    def test_tables_carry_values(self, small_dataset, tmp_path):
        out = tmp_path / "storms.docx"
        generate_docx_report(summarize(small_dataset), str(out))
        doc = docx.Document(str(out))
        cells = {c.text for t in doc.tables for row in t.rows for c in row.cells}
        assert "TORNADO" in cells
        assert "8" in cells
        assert "3.00" in cells
        assert "PROPDMG / PROPDMGEXP" in cells

    def test_tie_note(self, tmp_path):
        events = [make_event("A", 2), make_event("B", 1), make_event("C", 1)]
        out = tmp_path / "ties.docx"
        generate_docx_report(summarize(events, AnalysisConfig(top_n=2)), str(out))
        text = "\n".join(p.text for p in docx.Document(str(out)).paragraphs)
        assert "tied at rank 2" in text

    def test_nothing_to_report(self, tmp_path):
        with pytest.raises(ValueError):
            generate_docx_report(summarize([make_event("HAIL")]), str(tmp_path / "empty.docx"))
