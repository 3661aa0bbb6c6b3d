import unittest
from unittest import mock

from journal_stack import parser
from journal_stack.config import DEFAULT_FACT, DEFAULT_NAME
from journal_stack.parser import is_unidentifiable, parse_reply


class ParseReplyTests(unittest.TestCase):
    def test_name_and_fact_trimmed(self):
        out = parse_reply("NAME:   Common Sunflower  \nFACT:  It tracks the sun.  ")
        self.assertEqual(out.name, "Common Sunflower")
        self.assertEqual(out.fact, "It tracks the sun.")
        self.assertFalse(out.degraded)

    def test_markers_case_insensitive(self):
        out = parse_reply("name: Ladybird\nfact: Eats aphids.")
        self.assertEqual(out.name, "Ladybird")
        self.assertEqual(out.fact, "Eats aphids.")

    def test_multiline_fact(self):
        out = parse_reply("NAME: Rose\nFACT: Line one.\nLine two.")
        self.assertEqual(out.name, "Rose")
        self.assertIn("Line one.", out.fact)
        self.assertIn("Line two.", out.fact)

    def test_missing_markers_yield_placeholders(self):
        out = parse_reply("I think this is a nice picture of a garden.")
        self.assertEqual(out.name, DEFAULT_NAME)
        self.assertEqual(out.fact, DEFAULT_FACT)

    def test_empty_reply(self):
        for raw in ("", "   \n ", None):
            out = parse_reply(raw)
            self.assertEqual((out.name, out.fact), (DEFAULT_NAME, DEFAULT_FACT))

    def test_missing_fact_keeps_fact_placeholder(self):
        out = parse_reply("NAME: Oak")
        self.assertEqual(out.name, "Oak")
        self.assertEqual(out.fact, DEFAULT_FACT)

    def test_empty_name_value_keeps_placeholder(self):
        out = parse_reply("NAME:\nFACT: Something grows here.")
        self.assertEqual(out.name, DEFAULT_NAME)
        self.assertEqual(out.fact, "Something grows here.")

    def test_markdown_decoration(self):
        out = parse_reply("Sure!\n**NAME:** Monarch Butterfly\n**FACT:** It migrates thousands of miles.")
        self.assertEqual(out.name, "Monarch Butterfly")
        self.assertEqual(out.fact, "It migrates thousands of miles.")

    def test_underscores_in_value_are_kept(self):
        out = parse_reply("NAME: _Rosa_\nFACT: __init__ is not a plant.")
        self.assertEqual(out.name, "_Rosa_")
        self.assertEqual(out.fact, "__init__ is not a plant.")

    def test_bold_value_is_unwrapped(self):
        out = parse_reply("NAME: **Rosa canina**\nFACT: *Dog rose*")
        self.assertEqual(out.name, "Rosa canina")
        self.assertEqual(out.fact, "*Dog rose*")

    def test_french_markers(self):
        out = parse_reply("NOM: Coquelicot\nFAIT: Il pousse dans les champs.")
        self.assertEqual(out.name, "Coquelicot")
        self.assertEqual(out.fact, "Il pousse dans les champs.")

    def test_fact_before_name(self):
        out = parse_reply("FACT: Very tall.\nNAME: Giant Sequoia")
        self.assertEqual(out.name, "Giant Sequoia")
        self.assertEqual(out.fact, "Very tall.")

    def test_unexpected_error_degrades_to_raw_text(self):
        raw = "Tulipa gerneriana\nA spring bulb with cup-shaped flowers."
        with mock.patch.object(parser, "_extract", side_effect=RuntimeError("boom")):
            out = parse_reply(raw)
        self.assertTrue(out.degraded)
        self.assertEqual(out.name, "Tulipa gerneriana")
        self.assertTrue(out.fact.startswith("Tulipa gerneriana"))

    def test_degraded_output_is_truncated(self):
        raw = "x" * 1000
        with mock.patch.object(parser, "_extract", side_effect=RuntimeError("boom")):
            out = parse_reply(raw)
        self.assertLessEqual(len(out.name), parser.MAX_FALLBACK_NAME)
        self.assertLessEqual(len(out.fact), parser.MAX_FALLBACK_FACT)


class UnidentifiableTests(unittest.TestCase):
    def test_sentinels(self):
        self.assertTrue(is_unidentifiable("Unidentifiable subject"))
        self.assertTrue(is_unidentifiable("Objet non identifiable"))
        self.assertTrue(is_unidentifiable("subject NOT IDENTIFIABLE"))

    def test_placeholder_is_not_sentinel(self):
        self.assertFalse(is_unidentifiable(DEFAULT_NAME))
        self.assertFalse(is_unidentifiable("Rose"))
        self.assertFalse(is_unidentifiable(""))

    def test_parsed_sentinel(self):
        out = parse_reply("NAME: Unidentifiable subject\nFACT: Nothing to say.")
        self.assertTrue(is_unidentifiable(out.name))


if __name__ == "__main__":
    unittest.main()
