import pytest

from bcxliff.context import ElementContext
from bcxliff.matcher import (
    TextCandidate,
    affinity_bonus,
    collect_text_candidates,
    derive_table_name,
    dom_text_candidates,
    find_candidates,
    find_candidates_from_dom,
    format_candidate,
    match_candidates,
    parse_note_prefix,
    score_candidate,
)
from bcxliff.unit_id import PROPERTY_CAPTION, parse_trans_unit_id


def unit(unit_id, target, note=None, source=None):
    note_xml = f'\n          <note from="Xliff Generator" annotates="general" priority="3">{note}</note>' if note else ""
    return (
        f'        <trans-unit id="{unit_id}" size-unit="char" translate="yes" xml:space="preserve">\n'
        f'          <source>{source or target}</source>\n'
        f'          <target state="translated">{target}</target>{note_xml}\n'
        f'        </trans-unit>\n'
    )


def document(*units):
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<xliff version="1.2" xmlns="urn:oasis:names:tc:xliff:document:1.2">\n'
        '  <file datatype="xml" source-language="en-US" target-language="cs-CZ" original="App">\n'
        '    <body>\n'
        '      <group id="body">\n'
        + "".join(units) +
        '      </group>\n'
        '    </body>\n'
        '  </file>\n'
        '</xliff>\n'
    )


FIELD_CAPTION = ElementContext(element_type="Field", property_type="Caption")


def test_full_id_field_caption():
    doc = document(unit("Table 100 - Field 1 - Property 2879900210", "Item"))
    result = find_candidates(doc, "Item", FIELD_CAPTION)

    assert len(result.candidates) == 1
    candidate = result.candidates[0]
    assert candidate.object_type == "Table"
    assert candidate.property_id == PROPERTY_CAPTION
    assert candidate.confidence == pytest.approx(0.95)
    assert candidate.confidence >= 0.85
    assert candidate.matched_via == "targetText"
    assert format_candidate(candidate) == "Table 100 - Field 1 - Caption (95%)"


# A simple-id Caption match scores 0.8 (base, weight and property bonus only).
# The documented "Table 100 - Property 2879900210" scenario quotes >= 0.85, which
# these additive rules only reach with a full id (test_full_id_field_caption).
# Do not raise the scoring to fit that figure.
def test_simple_id_scores_base_plus_property():
    doc = document(unit("Table 100 - Property 2879900210", "Item"))
    result = find_candidates(doc, "Item", FIELD_CAPTION)

    assert [c.unit_id for c in result.candidates] == ["Table 100 - Property 2879900210"]
    assert result.candidates[0].object_type == "Table"
    assert result.candidates[0].confidence == pytest.approx(0.8)


def test_table_affinity_adds_bonus():
    doc = document(unit("Table 27 - Property 2879900210", "Item",
                        note="Table Item - Field No. - Property Caption"))
    plain = find_candidates(doc, "Item", ElementContext(element_type="Column"))
    with_table = find_candidates(doc, "Item", ElementContext(element_type="Column", page_name="ItemList",
                                                             table_name="Item"))

    assert with_table.candidates[0].confidence == pytest.approx(plain.candidates[0].confidence + 0.15)


def test_column_prefers_table_field():
    doc = document(unit("Table 27 - Field 1 - Property 2879900210", "Item",
                        note="Table Item - Field No. - Property Caption"))
    result = find_candidates(doc, "Item", ElementContext(element_type="Column", page_name="ItemList",
                                                         table_name="Item"))
    # 0.6 base + 0.15 element type + 0.15 column/table field + 0.15 table affinity, clamped
    assert result.candidates[0].confidence == 1.0


def test_page_affinity_takes_precedence():
    doc = document(unit("Page 30 - Control 5 - Property 2879900210", "No.",
                        note="Page Item Card - Control No. - Property Caption"))
    ctx = ElementContext(element_type="Field", property_type="Caption", page_name="item card")
    result = find_candidates(doc, "No.", ctx)
    # 0.6 + 0.2 property + 0.15 Control satisfies Field + 0.35 page, clamped
    assert result.candidates[0].confidence == 1.0
    assert result.diagnostics.page_table_filtered_count == 0


def test_table_affinity_alphanumeric_fallback():
    doc = document(unit("Table 36 - Property 2879900210", "Status",
                        note="Table Sales-Header - Field Status - Property Caption"))
    result = find_candidates(doc, "Status", ElementContext(table_name="Sales Header"))
    assert result.candidates[0].confidence == pytest.approx(0.6 + 0.15)


def test_page_table_filter_is_hard():
    doc = document(unit("Table 18 - Field 2 - Property 2879900210", "Name",
                        note="Table Customer - Field Name - Property Caption"))
    result = find_candidates(doc, "Name", ElementContext(element_type="Field", page_name="Item Card"))

    assert result.candidates == []
    diag = result.diagnostics
    assert diag.text_match_count == 1
    assert diag.page_table_filtered_count == 1
    assert diag.final_match_count == 0
    assert "affinity" in diag.filter_reason


def test_units_without_note_skip_affinity_filter():
    doc = document(unit("Table 18 - Field 2 - Property 2879900210", "Name"))
    result = find_candidates(doc, "Name", ElementContext(page_name="Item Card"))
    assert len(result.candidates) == 1


def test_property_filter():
    doc = document(unit("Table 100 - Field 1 - Property 2879900210", "Item"))
    result = find_candidates(doc, "Item", ElementContext(is_tooltip=True))

    assert result.candidates == []
    assert result.diagnostics.text_match_count == 1
    assert result.diagnostics.property_filtered_count == 1
    assert "ToolTip" in result.diagnostics.filter_reason


def test_no_property_filter_without_expectation():
    doc = document(
        unit("Table 100 - Field 1 - Property 2879900210", "Item"),
        unit("Table 100 - Field 1 - Property 1295455071", "Item"),
    )
    result = find_candidates(doc, "Item", ElementContext())
    assert len(result.candidates) == 2


def test_no_text_match_reason():
    doc = document(unit("Table 100 - Field 1 - Property 2879900210", "Item"))
    result = find_candidates(doc, "Customer", FIELD_CAPTION)
    assert result.diagnostics.text_match_count == 0
    assert result.diagnostics.filter_reason == 'No trans-unit target matches "Customer"'


def test_unrecognised_ids_are_counted_not_fatal():
    doc = document(unit("garbage id", "Item"), unit("Table 100 - Field 1 - Property 2879900210", "Item"))
    result = find_candidates(doc, "Item", FIELD_CAPTION)
    assert result.diagnostics.text_match_count == 2
    assert result.diagnostics.unparsed_id_count == 1
    assert len(result.candidates) == 1


def test_priority_filter_drops_table_units():
    doc = document(
        unit("Table 60 - Field 1 - Property 2879900210", "Setup"),
        unit("Page 50 - Control 1 - Property 2879900210", "Setup"),
    )
    result = find_candidates(doc, "Setup", FIELD_CAPTION)
    assert [c.object_type for c in result.candidates] == ["Page"]


def test_sorted_descending_and_deterministic():
    doc = document(
        unit("Page 1 - Action 2 - Property 2879900210", "Post"),
        unit("Page 1 - Control 3 - Property 2879900210", "Post"),
        unit("Page 2 - Action 4 - Property 2879900210", "Post"),
    )
    ctx = ElementContext(element_type="Action", ui_area="ActionBar", property_type="Caption")
    first = find_candidates(doc, "Post", ctx)
    second = find_candidates(doc, "Post", ctx)

    scores = [c.confidence for c in first.candidates]
    assert scores == sorted(scores, reverse=True)
    assert first.candidates[-1].element_type == "Control"
    assert [c.unit_id for c in first.candidates] == [c.unit_id for c in second.candidates]


def test_property_match_adds_exactly_point_two():
    identity = parse_trans_unit_id("Table 100 - Field 1 - Property 2879900210")
    tc = TextCandidate(text="Item", normalized="item", weight=0.9, origin="innerText")
    ctx = ElementContext(element_type="Field")
    with_property = score_candidate(identity, tc, ctx, PROPERTY_CAPTION, {"Field"})
    without_property = score_candidate(identity, tc, ctx, None, {"Field"})
    assert with_property - without_property == pytest.approx(0.2)


def test_sample_notes_are_capped():
    doc = document(*[unit(f"Table {i} - Property 2879900210", "Item", note=f"Table T{i} - Property Caption")
                     for i in range(7)])
    result = find_candidates(doc, "Item", FIELD_CAPTION)
    assert result.diagnostics.text_match_count == 7
    assert len(result.diagnostics.sample_text_matches) == 5


def test_units_without_target_are_skipped():
    doc = ('<trans-unit id="Table 1 - Property 2879900210"><source>Item</source></trans-unit>'
           + unit("Table 2 - Property 2879900210", "Item"))
    result = find_candidates(doc, "Item", FIELD_CAPTION)
    assert [c.object_id for c in result.candidates] == ["2"]


def test_malformed_document_never_raises():
    result = find_candidates('<trans-unit id="Table 1 - Property 2879900210"><target>Item', "Item", FIELD_CAPTION)
    assert result.candidates == []
    assert result.diagnostics.text_match_count == 0


def test_matches_through_entities_and_hotkeys():
    doc = document(unit("Page 1 - Action 2 - Property 2879900210", "&amp;Post &amp;&amp; Print"))
    result = find_candidates(doc, "Post && Print", ElementContext(element_type="Action"))
    assert len(result.candidates) == 1


def test_dom_candidates_keep_highest_weight():
    ctx = ElementContext(translated_text="Item", inner_text="ITEM", aria_label="Item card", placeholder="")
    candidates = dom_text_candidates(ctx)
    by_key = {c.normalized: c for c in candidates}
    assert by_key["item"].weight == 1.0
    assert by_key["item"].origin == "translatedText"
    assert by_key["item card"].weight == 0.8


def test_collect_text_candidates_skips_empty():
    assert collect_text_candidates([("", 1.0, "a"), (None, 0.9, "b"), ("  ", 0.8, "c")]) == []


def test_match_from_dom_uses_weights():
    doc = document(unit("Page 1 - Control 2 - Property 2879900210", "Quantity"))
    ctx = ElementContext(inner_text="Quantity", property_type="Caption")
    result = find_candidates_from_dom(doc, ctx)
    assert result.candidates[0].matched_via == "innerText"
    assert result.candidates[0].confidence == pytest.approx(0.5 + 0.09 + 0.2)


def test_match_candidates_without_text():
    result = match_candidates(document(unit("Table 1 - Property 2879900210", "Item")), [], ElementContext())
    assert result.candidates == []


def test_derive_table_name():
    assert derive_table_name("Item List") == "Item"
    assert derive_table_name("Customer Card") == "Customer"
    assert derive_table_name("Setup") == "Setup"
    assert derive_table_name("Sales Order") == "Sales Order"


def test_table_affinity_compares_accented_names():
    note = "Table Účetní Kniha - Field No. - Property Caption"
    assert affinity_bonus(note, ElementContext(table_name="ÚčetníKniha")) == pytest.approx(0.15)
    # Names that differ only in accented letters are different tables
    other = "Table Čas - Field No. - Property Caption"
    assert affinity_bonus(other, ElementContext(table_name="Řas")) is None


def test_parse_note_prefix():
    assert parse_note_prefix("Table Item - Field No. - Property Caption") == ("Table", "Item")
    assert parse_note_prefix("PageExtension Item Card Ext - Control X - Property Caption") == (
        "PageExtension", "Item Card Ext")
    assert parse_note_prefix("no prefix here") is None
