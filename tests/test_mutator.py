import unittest

from bcxliff.mutator import (
    apply_first_translation,
    apply_translation,
    apply_updates,
    build_target_tag,
    build_translation_index,
    detect_indent,
    existing_translations,
    extract_existing_targets,
    extract_languages,
    lookup_in_index,
    units_needing_translation,
)

DOC = """<?xml version="1.0" encoding="utf-8"?>
<xliff version="1.2" xmlns="urn:oasis:names:tc:xliff:document:1.2">
  <file datatype="xml" source-language="en-US" target-language="de-DE" original="App">
    <body>
      <group id="body">
        <trans-unit id="Table 1 - Property 2879900210" translate="yes">
          <source>Item</source>
          <target state="translated">Artikel</target>
        </trans-unit>
        <trans-unit id="Table 2 - Property 2879900210" translate="yes">
          <source>Customer</source>
          <target state="needs-translation"/>
        </trans-unit>
        <trans-unit id="Table 3 - Property 2879900210" translate="yes">
          <source>Vendor</source>
        </trans-unit>
        <trans-unit id="Table 4 - Property 2879900210" translate="yes">
          <source>Item</source>
          <target state="needs-translation" translationSource="none"></target>
        </trans-unit>
      </group>
    </body>
  </file>
</xliff>
"""


class TestApplyTranslation(unittest.TestCase):
    def test_replaces_existing_target(self):
        result = apply_translation(DOC, "Table 1 - Property 2879900210", "Zboží", 0.934)
        self.assertTrue(result.changed)
        self.assertIn('<target state="translated" confidence="0.93" translationSource="userCorrection">Zboží</target>',
                      result.document)
        self.assertNotIn("Artikel", result.document)
        # Other blocks untouched
        self.assertEqual(result.document.replace(
            '<target state="translated" confidence="0.93" translationSource="userCorrection">Zboží</target>',
            '<target state="translated">Artikel</target>'), DOC)

    def test_second_application_is_noop(self):
        first = apply_translation(DOC, "Table 1 - Property 2879900210", "Zboží")
        second = apply_translation(first.document, "Table 1 - Property 2879900210", "Zboží")
        self.assertFalse(second.changed)
        self.assertEqual(second.document, first.document)

    def test_same_text_with_different_spacing_is_noop(self):
        result = apply_translation(DOC, "Table 1 - Property 2879900210", "  artikel ")
        self.assertFalse(result.changed)
        self.assertEqual(result.document, DOC)

    def test_replaces_self_closing_target(self):
        result = apply_translation(DOC, "Table 2 - Property 2879900210", "Kunde", 1.0, "aiTranslator")
        self.assertTrue(result.changed)
        self.assertIn('<source>Customer</source>\n          <target state="translated" confidence="1.00" '
                      'translationSource="aiTranslator">Kunde</target>', result.document)

    def test_inserts_missing_target_with_detected_indent(self):
        result = apply_translation(DOC, "Table 3 - Property 2879900210", "Lieferant")
        self.assertTrue(result.changed)
        self.assertIn('<source>Vendor</source>\n          <target state="translated" confidence="1.00" '
                      'translationSource="userCorrection">Lieferant</target>\n        </trans-unit>',
                      result.document)

    def test_escapes_text(self):
        result = apply_translation(DOC, "Table 1 - Property 2879900210", "A & B <x>")
        self.assertIn(">A &amp; B &lt;x&gt;</target>", result.document)
        again = apply_translation(result.document, "Table 1 - Property 2879900210", "A & B <x>")
        self.assertFalse(again.changed)

    def test_unknown_unit(self):
        result = apply_translation(DOC, "Table 99 - Property 2879900210", "X")
        self.assertFalse(result.changed)
        self.assertEqual(result.document, DOC)


class TestHelpers(unittest.TestCase):
    def test_detect_indent_defaults_to_four_spaces(self):
        self.assertEqual(detect_indent('<trans-unit id="x"><source>a</source></trans-unit>'), "    ")
        self.assertEqual(detect_indent('<trans-unit id="x">\n\t\t<source>a</source>'), "\t\t")

    def test_build_target_tag(self):
        self.assertEqual(build_target_tag("Ano", float("nan"), "file"),
                         '<target state="translated" confidence="0.00" translationSource="file">Ano</target>')

    def test_extract_languages(self):
        self.assertEqual(extract_languages(DOC), ("en-US", "de-DE"))
        self.assertEqual(extract_languages("<xliff/>"), ("en-US", "cs-CZ"))

    def test_extract_existing_targets(self):
        targets = extract_existing_targets(DOC)
        self.assertEqual(targets["Table 1 - Property 2879900210"], "Artikel")
        self.assertEqual(targets["Table 4 - Property 2879900210"], "")
        self.assertNotIn("Table 2 - Property 2879900210", targets)


class TestBatchAndFirst(unittest.TestCase):
    def test_apply_updates_single_pass(self):
        result = apply_updates(DOC, {
            "Table 1 - Property 2879900210": "Artikel",
            "Table 2 - Property 2879900210": "Kunde",
            "Table 3 - Property 2879900210": "Lieferant",
        })
        self.assertEqual(result.updated_units, {"Table 2 - Property 2879900210", "Table 3 - Property 2879900210"})
        self.assertEqual(result.unchanged_units, {"Table 1 - Property 2879900210"})
        self.assertEqual(result.updated, 2)
        self.assertEqual(result.unchanged, 1)
        self.assertIn(">Kunde</target>", result.document)
        self.assertIn(">Lieferant</target>", result.document)

    def test_apply_first_translation_fills_needs_translation_only(self):
        result = apply_first_translation(DOC, "item", "Artikel", 0.9, "file")
        self.assertTrue(result.changed)
        self.assertEqual(result.unit_id, "Table 4 - Property 2879900210")
        self.assertIn('<target state="translated" translationSource="file" confidence="0.90">Artikel</target>',
                      result.document)
        # The already translated unit with the same source is left alone
        self.assertIn('<target state="translated">Artikel</target>', result.document)

    def test_apply_first_translation_self_closing(self):
        result = apply_first_translation(DOC, "Customer", "Kunde")
        self.assertTrue(result.changed)
        self.assertIn('<target state="translated" confidence="0.90" translationSource="aiTranslator">Kunde</target>',
                      result.document)

    def test_apply_first_translation_no_pending_unit(self):
        result = apply_first_translation(DOC, "Vendor", "Lieferant")
        self.assertFalse(result.changed)
        self.assertEqual(result.document, DOC)

    def test_units_needing_translation(self):
        self.assertEqual(units_needing_translation(DOC), [
            ("Table 2 - Property 2879900210", "Customer"),
            ("Table 4 - Property 2879900210", "Item"),
        ])


class TestTranslationIndex(unittest.TestCase):
    DOC = """
<trans-unit id="a"><source>Post</source><target state="translated" confidence="0.75">Zaúčtovat</target></trans-unit>
<trans-unit id="b"><source>post</source><target state="translated" confidence="0.95">Účtovat</target></trans-unit>
<trans-unit id="c"><source>Print</source><target state="translated">Tisk</target></trans-unit>
<trans-unit id="d"><source>Print</source><target state="translated" confidence="abc">Vytisknout</target></trans-unit>
"""

    def test_best_confidence_wins(self):
        index = build_translation_index(self.DOC)
        hit = lookup_in_index(index, "POST")
        self.assertEqual(hit.translated, "Účtovat")
        self.assertEqual(hit.confidence, 0.95)
        self.assertEqual(hit.unit_id, "b")

    def test_missing_or_invalid_confidence_defaults(self):
        index = build_translation_index(self.DOC)
        hit = lookup_in_index(index, "Print")
        self.assertEqual(hit.translated, "Tisk")
        self.assertEqual(hit.confidence, 0.9)

    def test_existing_translations_lists_distinct(self):
        found = existing_translations(self.DOC, "Print")
        self.assertEqual([f.translated for f in found], ["Tisk", "Vytisknout"])
        self.assertIsNone(lookup_in_index(build_translation_index(self.DOC), "Missing"))


if __name__ == "__main__":
    unittest.main()
