# flake8: noqa
# pyright: basic

import datetime
import unittest

import yaml

from mdnotes.markdown.parse_yaml import (
    split_yaml_parse,
    desplit_yaml_parse,
    serialize_yaml_parse,
    dump_yaml,
    is_metadata_dict,
    is_metadata_primitive,
)


class TestSplitYaml(unittest.TestCase):
    """Split of the objects returned by yaml.safe_load on the front
    matter of notes."""

    def test_empty_objects(self):
        for data in (None, [], [None], [{}], {}):
            self.assertEqual(split_yaml_parse(data), ({}, []), data)

    def test_conformant_front_matter(self):
        data = {
            'title': "Prompt templates",
            'day': 3,
            'draft': False,
            'tags': ["prompts", "lcel"],
            'source': {'course': "LangChain", 'chapter': 2},
        }
        self.assertEqual(split_yaml_parse(data), (data, []))
        self.assertEqual(desplit_yaml_parse(split_yaml_parse(data)), data)

    def test_dates_are_kept_aside(self):
        data = yaml.safe_load("title: Memory\ndate: 2024-03-05\n")
        part, whole = split_yaml_parse(data)
        self.assertDictEqual(part, {'title': "Memory"})
        self.assertListEqual(whole, [{'date': datetime.date(2024, 3, 5)}])
        self.assertEqual(
            desplit_yaml_parse((part, whole)),
            [{'title': "Memory"}, {'date': datetime.date(2024, 3, 5)}],
        )

    def test_non_string_keys(self):
        data = {1: "first", 'key': "value"}
        self.assertEqual(split_yaml_parse(data), ({}, [data]))
        self.assertEqual(desplit_yaml_parse(split_yaml_parse(data)), data)

    def test_list_of_dicts(self):
        data = [{'title': "Agents"}, {'notes': "extra"}, "loose text"]
        part, whole = split_yaml_parse(data)
        self.assertDictEqual(part, {'title': "Agents"})
        self.assertListEqual(whole, data[1:])
        self.assertEqual(desplit_yaml_parse((part, whole)), data)

    def test_list_without_dicts(self):
        data = ["one", "two"]
        self.assertEqual(split_yaml_parse(data), ({}, data))
        self.assertEqual(desplit_yaml_parse(split_yaml_parse(data)), data)

    def test_literals_raise(self):
        for data in ("just a title", 42, 3.5, True):
            with self.assertRaises(ValueError):
                split_yaml_parse(data)

    def test_literal_message(self):
        with self.assertRaises(ValueError) as cm:
            split_yaml_parse("Runnables")
        self.assertIn("property_name: Runnables", str(cm.exception))

    def test_other_objects_raise(self):
        with self.assertRaises(ValueError):
            split_yaml_parse(datetime.date(2024, 1, 1))


class TestTypeGuards(unittest.TestCase):

    def test_primitives(self):
        for value in ("x", 1, 2.5, False):
            self.assertTrue(is_metadata_primitive(value))
        self.assertFalse(is_metadata_primitive(None))
        self.assertFalse(is_metadata_primitive([1]))

    def test_metadata_dict(self):
        self.assertTrue(is_metadata_dict({'a': [1, "b"], 'c': None}))
        self.assertFalse(is_metadata_dict({'a': {1, 2}}))
        self.assertFalse(is_metadata_dict({2: "b"}))
        self.assertFalse(is_metadata_dict(["a"]))


class TestSerializeYaml(unittest.TestCase):

    def test_none(self):
        self.assertEqual(dump_yaml(None), "")
        self.assertEqual(serialize_yaml_parse(None), "")
        self.assertEqual(serialize_yaml_parse(({}, [])), "")

    def test_key_order_is_kept(self):
        text = serialize_yaml_parse(({'title': "T", 'author': "A"}, []))
        self.assertEqual(text, "title: T\nauthor: A\n")

    def test_block_lists(self):
        text = dump_yaml({'tags': ["a", "b"]})
        self.assertEqual(text, "tags:\n- a\n- b\n")

    def test_unicode(self):
        self.assertEqual(dump_yaml({'title': "Résumé"}), "title: Résumé\n")

    def test_scalar_document_end_removed(self):
        self.assertEqual(dump_yaml("text"), "text\n")

    def test_roundtrip_through_yaml(self):
        source = "title: Chains\ndate: 2024-03-05\ntags:\n- lcel\n"
        split = split_yaml_parse(yaml.safe_load(source))
        reloaded = yaml.safe_load(serialize_yaml_parse(split))
        self.assertEqual(desplit_yaml_parse(split), reloaded)


if __name__ == "__main__":
    unittest.main()
