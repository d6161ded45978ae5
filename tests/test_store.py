import unittest

from bcxliff.store import TranslationMemory
from bcxliff.xliff_obj import TranslationUnit


class TestTranslationMemory(unittest.TestCase):
    def setUp(self):
        self.memory = TranslationMemory()

    def tearDown(self):
        self.memory.close()

    def test_exact_lookup_returns_highest_confidence(self):
        self.memory.add("1", "Item", "Položka", "en-US", "cs-CZ", 0.8)
        self.memory.add("2", "Item", "Zboží", "en-US", "cs-CZ", 1.0)
        match = self.memory.exact_lookup("Item", "en-US")
        self.assertEqual(match.translated, "Zboží")
        self.assertEqual(match.confidence, 1.0)

    def test_exact_lookup_miss(self):
        self.assertIsNone(self.memory.exact_lookup("Nothing", "en-US"))
        self.memory.add("1", "Item", "Zboží", "en-US", "cs-CZ")
        self.assertIsNone(self.memory.exact_lookup("Item", "de-DE"))

    def test_add_invalidates_cached_miss(self):
        self.assertIsNone(self.memory.exact_lookup("Item", "en-US"))
        self.memory.add("1", "Item", "Zboží", "en-US", "cs-CZ")
        self.assertEqual(self.memory.exact_lookup("Item", "en-US").translated, "Zboží")

    def test_duplicate_id_is_skipped(self):
        self.assertTrue(self.memory.add("1", "Item", "Zboží", "en-US", "cs-CZ"))
        self.assertFalse(self.memory.add("1", "Item", "Položka", "en-US", "cs-CZ"))

    def test_fuzzy_lookup_filters_and_dedupes(self):
        rows = [
            ("1", "Sales Order", "Prodejní objednávka"),
            ("2", "Sales Invoice", "Prodejní faktura"),
            ("3", "Sales Quote", "Prodejní nabídka"),
            ("4", "Sales Credit Memo", "Prodejní dobropis"),
            ("5", "Specifies the number of the sales order, which is used for posting and reports.", "X"),
            ("6", "Order", "Objednávka"),
        ]
        for unit_id, source, target in rows:
            self.memory.add(unit_id, source, target, "en-US", "cs-CZ", 1.0 if unit_id == "1" else 0.9)

        examples = self.memory.fuzzy_lookup("Sales Order", "en-US")
        sources = [e.source for e in examples]

        self.assertEqual(len(sources), len(set(sources)))
        self.assertNotIn(rows[4][1], sources)
        self.assertIn("Order", sources)
        # At most three per salient word
        self.assertEqual(len([s for s in sources if s.startswith("Sales")]), 3)

    def test_import_units_uses_type_confidence(self):
        units = [
            TranslationUnit(id="a", source="Item", target="Zboží", state="translated"),
            TranslationUnit(id="b", source="Customer", target="", state="needs-translation"),
            TranslationUnit(id="c", source="Vendor", target="Dodavatel", state="translated"),
        ]
        inserted, skipped = self.memory.import_units(units, "en-US", "cs-CZ", translation_type="Microsoft")
        self.assertEqual((inserted, skipped), (2, 0))
        self.assertEqual(self.memory.exact_lookup("Item", "en-US").confidence, 1.0)

        inserted, skipped = self.memory.import_units(units, "en-US", "cs-CZ", translation_type="Other")
        self.assertEqual((inserted, skipped), (0, 2))

    def test_unknown_type_defaults_to_point_seven(self):
        self.memory.import_units([TranslationUnit(id="a", source="Item", target="Zboží", state="translated")],
                                 "en-US", "cs-CZ")
        self.assertEqual(self.memory.exact_lookup("Item", "en-US").confidence, 0.7)

    def test_reset_cache(self):
        self.memory.add("1", "Item", "Zboží", "en-US", "cs-CZ")
        self.memory.exact_lookup("Item", "en-US")
        self.memory.conn.execute("UPDATE translations SET target = 'Položka'")
        self.assertEqual(self.memory.exact_lookup("Item", "en-US").translated, "Zboží")
        self.memory.reset_cache()
        self.assertEqual(self.memory.exact_lookup("Item", "en-US").translated, "Položka")


if __name__ == "__main__":
    unittest.main()
