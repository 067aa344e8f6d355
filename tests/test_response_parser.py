"""
Tests for structured response parsing.
"""

import unittest

from llm.errors import MalformedResponseError
from llm.response_parser import clean_json, parse_structured, as_list, as_object

RAW = '[{"textSelection": "X", "comment": "hm", "topic": "Fate"}]'


class TestParseStructured(unittest.TestCase):

    def test_fenced_with_language_tag(self):
        self.assertEqual(parse_structured("```json\n" + RAW + "\n```"), parse_structured(RAW))

    def test_fenced_without_language_tag(self):
        self.assertEqual(parse_structured("```\n" + RAW + "\n```"), parse_structured(RAW))

    def test_surrounding_whitespace(self):
        self.assertEqual(parse_structured("\n  " + RAW + "  \n"), parse_structured(RAW))

    def test_invalid_json(self):
        with self.assertRaises(MalformedResponseError) as ctx:
            parse_structured("Here are my thoughts: none")
        self.assertEqual(ctx.exception.raw_text, "Here are my thoughts: none")

    def test_empty_text(self):
        with self.assertRaises(MalformedResponseError):
            parse_structured("")
        with self.assertRaises(MalformedResponseError):
            parse_structured("```json\n```")

    def test_clean_json_leaves_plain_text(self):
        self.assertEqual(clean_json('{"a": 1}'), '{"a": 1}')


class TestNormalization(unittest.TestCase):

    def test_as_list_wraps_single_object(self):
        self.assertEqual(as_list({"a": 1}), [{"a": 1}])

    def test_as_list_keeps_list(self):
        self.assertEqual(as_list([1, 2]), [1, 2])

    def test_as_list_rejects_scalars(self):
        with self.assertRaises(MalformedResponseError):
            as_list("text")

    def test_as_object_unwraps_single_element_list(self):
        self.assertEqual(as_object([{"summary": "s"}]), {"summary": "s"})

    def test_as_object_rejects_longer_lists(self):
        with self.assertRaises(MalformedResponseError):
            as_object([{"a": 1}, {"b": 2}])


if __name__ == '__main__':
    unittest.main()
