import json
from datetime import datetime, timezone

from bcxliff.corrections import (
    CorrectionRecord,
    apply_corrections,
    build_report,
    filter_corrections,
    write_report,
)

DOC = """<xliff version="1.2">
  <file source-language="en-US" target-language="cs-CZ">
    <body>
        <trans-unit id="Table 100 - Field 1 - Property 2879900210">
          <source>Item</source>
          <target state="translated">Položka</target>
          <note from="Xliff Generator" annotates="general" priority="3">Table Item - Field Description - Property Caption</note>
        </trans-unit>
        <trans-unit id="Page 200 - Control 1 - Property 2879900210">
          <source>Customer</source>
          <target state="translated">Zákazník</target>
        </trans-unit>
    </body>
  </file>
</xliff>
"""

FIELD_CAPTION = {"elementType": "Field", "propertyType": "Caption"}


def record(id, source, target, context=FIELD_CAPTION, **extra):
    data = {"id": id, "source": source, "target": target, "elementContext": json.dumps(context)}
    data.update(extra)
    return CorrectionRecord.from_dict(data)


def run():
    records = [
        record("c1", "Položka", "Zboží"),
        record("c2", "Položka", "Artikl"),
        record("c3", "Zákazník", "Zákazník"),
        record("c4", "Nic", "Něco"),
        record("c5", "", "Něco"),
    ]
    return apply_corrections(DOC, records)


def test_statuses():
    outcome = run()
    assert [item.status for item in outcome.items] == ["applied", "conflict", "unchanged", "unmatched", "skipped"]

    stats = outcome.stats
    assert (stats.updated, stats.unchanged, stats.unmatched, stats.conflicts, stats.skipped) == (1, 1, 1, 1, 1)


def test_first_mapping_wins():
    outcome = run()
    assert '<target state="translated" confidence="1.00" translationSource="userCorrection">Zboží</target>' \
        in outcome.document
    assert "Artikl" not in outcome.document
    conflict = outcome.items[1]
    assert conflict.reason == "Different correction already exists for same trans-unit"
    assert conflict.matched_units[0].previous_target == "Položka"


def test_reasons():
    outcome = run()
    assert outcome.items[2].reason == "Target already matches correction"
    assert outcome.items[3].reason == 'No trans-unit target matches "Nic"'
    assert outcome.items[4].reason == "Empty source text"


def test_no_updates_leaves_document():
    outcome = apply_corrections(DOC, [record("c4", "Nic", "Něco")])
    assert outcome.document == DOC
    assert not outcome.changed


def test_page_affinity_from_record():
    records = [record("c1", "Položka", "Zboží", pageName="Item Card")]
    outcome = apply_corrections(DOC, records)
    assert outcome.items[0].status == "applied"

    records = [record("c1", "Položka", "Zboží", pageName="Customer Card")]
    outcome = apply_corrections(DOC, records)
    assert outcome.items[0].status == "unmatched"
    assert "affinity" in outcome.items[0].reason


def test_filter_corrections():
    records = [
        record("a", "x", "y", translationType="UserCorrection", timestamp="2024-05-02T00:00:00Z"),
        record("b", "x", "y", translationType="AITranslated", timestamp="2024-05-03T00:00:00Z"),
        record("c", "x", "", translationType="UserCorrection", timestamp="2024-05-04T00:00:00Z"),
        record("d", "x", "y", translationType="UserCorrection", timestamp="2024-04-30T00:00:00Z"),
    ]
    assert [r.id for r in filter_corrections(records)] == ["d", "a", "b"]
    assert [r.id for r in filter_corrections(records, user_corrections_only=True)] == ["d", "a"]
    assert [r.id for r in filter_corrections(records, since="2024-05-01T00:00:00Z")] == ["a", "b"]


def test_from_dict_coerces_fields():
    r = CorrectionRecord.from_dict({"id": 5, "source": " Item ", "pageId": "21", "sourceTableId": None})
    assert r.id == "5"
    assert r.source == "Item"
    assert r.target == ""
    assert r.page_id == 21
    assert r.source_table_id is None


def test_report(tmp_path):
    xliff = tmp_path / "App.cs-CZ.xlf"
    xliff.write_text(DOC, encoding="utf-8")
    outcome = run()

    report = build_report(str(xliff), outcome)
    assert report["summary"] == {
        "totalCorrections": 5,
        "applied": 1,
        "unchanged": 1,
        "unmatched": 1,
        "conflicts": 1,
        "skipped": 1,
        "xliffUpdated": 1,
        "xliffUnchanged": 1,
    }
    first = report["corrections"][0]
    assert first["matchedUnits"][0]["unitId"] == "Table 100 - Field 1 - Property 2879900210"
    assert first["matchedUnits"][0]["confidence"] == "95%"
    assert first["diagnostics"]["textMatchCount"] == 1
    assert report["corrections"][4]["diagnostics"] is None

    path = write_report(str(xliff), outcome, now=datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone.utc))
    assert path == str(tmp_path / "correction-report-App.cs-CZ-2024-05-01T10-20-30.json")
    with open(path, encoding="utf-8") as f:
        assert json.load(f)["summary"]["applied"] == 1
