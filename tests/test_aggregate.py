import unittest
from datetime import datetime

from docschema.aggregate import SchemaAggregator, infer_schema, merge_aggregators
from docschema.config import InferenceConfig
from docschema.errors import InvariantViolation, KeyCollisionError, NestingDepthError, UnsupportedTypeError


NESTED_DOCUMENTS = [
    {
        "id": 1,
        "name": "Alice",
        "address": {"city": "Oslo", "zip": "0150"},
        "tags": ["alpha", "beta"],
        "orders": [
            {"order_id": "A-1", "items": [{"sku": "SKU-1", "quantity": 1}]},
            {"order_id": "A-2", "items": [], "note": None},
        ],
    },
    {
        "id": 2,
        "name": "Bob",
        "address": "unknown",
        "tags": [],
        "orders": [{"order_id": "B-1", "items": [{"sku": "SKU-1"}, {"sku": "SKU-3", "quantity": 5}]}],
    },
    {"id": 3, "address": {"city": "Bergen"}, "tags": ["alpha", 7, [1, 2]]},
]


class EndToEndTests(unittest.TestCase):
    def test_flat_documents(self) -> None:
        aggregator = infer_schema([{"foo": 12, "bar": [True, None]}, {"foo": 7}])
        self.assertEqual(aggregator.document_count, 2)

        foo = aggregator.fields["foo"]
        self.assertEqual(foo.count, 2)
        self.assertEqual(foo.types["Number"].count, 2)
        self.assertEqual(foo.probability, 1.0)
        self.assertEqual(foo.types["Number"].values, [12, 7])

        bar = aggregator.fields["bar"]
        self.assertEqual(bar.present, 1)
        self.assertEqual(bar.count, 2)
        self.assertEqual(bar.types["Null"].count, 1)
        self.assertAlmostEqual(bar.probability, 0.5)
        array_type = bar.types["Array"]
        self.assertEqual(array_type.count, 1)
        self.assertEqual(array_type.items["Boolean"].count, 1)
        self.assertEqual(array_type.items["Null"].count, 1)

    def test_missing_field_is_reconciled_as_null(self) -> None:
        aggregator = infer_schema([{"age": 30}, {"name": "x"}, {"age": 41}])
        age = aggregator.fields["age"]
        self.assertEqual(age.types["Null"].count, 1)
        self.assertEqual(age.count, 3)
        self.assertAlmostEqual(age.probability, 2 / 3)
        name = aggregator.fields["name"]
        self.assertEqual(name.types["Null"].count, 2)
        self.assertAlmostEqual(name.probability, 1 / 3)

    def test_explicit_null_counts_as_present(self) -> None:
        aggregator = infer_schema([{"age": None}, {"age": 3}])
        age = aggregator.fields["age"]
        self.assertEqual(age.missing, 0)
        self.assertEqual(age.probability, 1.0)
        self.assertEqual(age.types["Null"].count, 1)

    def test_duplicate_detection(self) -> None:
        aggregator = infer_schema([{"n": 5}, {"n": 5}])
        field = aggregator.fields["n"]
        self.assertTrue(field.types["Number"].has_duplicates)
        self.assertTrue(field.has_duplicates)

    def test_nested_documents_use_container_counts(self) -> None:
        aggregator = infer_schema([{"sub": {"x": 1}}, {"sub": {"x": 2, "y": "a"}}, {"sub": 5}])
        sub = aggregator.fields["sub"]
        self.assertEqual(sub.types["Document"].count, 2)
        self.assertEqual(sub.types["Number"].count, 1)
        self.assertEqual(aggregator.containers["sub"], 2)
        self.assertEqual(aggregator.fields["sub.x"].probability, 1.0)
        y = aggregator.fields["sub.y"]
        self.assertEqual(y.parent_path, "sub")
        self.assertEqual(y.count, 2)
        self.assertAlmostEqual(y.probability, 0.5)

    def test_documents_inside_arrays(self) -> None:
        aggregator = infer_schema([{"orders": [{"sku": "A"}, {"sku": "B", "qty": 2}]}])
        self.assertNotIn("orders.sku", aggregator.fields)
        self.assertNotIn("orders", aggregator.containers)
        element = aggregator.fields["orders"].types["Array"].items["Document"]
        self.assertEqual(element.count, 2)
        self.assertEqual(element.schema.document_count, 2)
        self.assertEqual(element.schema.fields["orders.sku"].probability, 1.0)
        self.assertAlmostEqual(element.schema.fields["orders.qty"].probability, 0.5)

    def test_array_elements_do_not_inflate_document_counts(self) -> None:
        aggregator = infer_schema([{"orders": [{"sku": "A"}, {"sku": "B"}, {"sku": "C"}]}])
        for field in aggregator.fields.values():
            self.assertLessEqual(field.count, aggregator.document_count, field.path)
            self.assertLessEqual(field.probability, 1.0, field.path)
        element = aggregator.fields["orders"].types["Array"].items["Document"]
        sku = element.schema.fields["orders.sku"]
        self.assertEqual(sku.count, 3)
        self.assertEqual(sku.types["String"].values, ["A", "B", "C"])
        self.assertFalse(sku.has_duplicates)

    def test_nested_arrays_recurse(self) -> None:
        aggregator = infer_schema([{"grid": [[1, 2], [3]]}])
        outer = aggregator.fields["grid"].types["Array"]
        inner = outer.items["Array"]
        self.assertEqual(inner.count, 2)
        self.assertEqual(inner.total_items, 3)
        self.assertEqual(inner.items["Number"].values, [1, 2, 3])


class InvariantTests(unittest.TestCase):
    def test_count_conservation_and_bounds(self) -> None:
        aggregator = infer_schema(NESTED_DOCUMENTS)
        schemas = [aggregator]
        while schemas:
            schema = schemas.pop()
            for field in schema.fields.values():
                self.assertEqual(sum(ft.count for ft in field.types.values()), field.count, field.path)
                self.assertGreaterEqual(field.probability, 0.0)
                self.assertLessEqual(field.probability, 1.0)
                self.assertEqual(field.count, schema.parent_count(field), field.path)
                self.assertLessEqual(field.count, schema.document_count, field.path)
                array_type = field.types.get("Array")
                if array_type is not None and "Document" in array_type.items:
                    schemas.append(array_type.items["Document"].schema)

    def test_iter_fields_reaches_element_documents(self) -> None:
        aggregator = infer_schema(NESTED_DOCUMENTS)
        paths = [field.path for field in aggregator.iter_fields()]
        self.assertIn("address.city", paths)
        self.assertIn("orders.order_id", paths)
        self.assertIn("orders.items.sku", paths)
        orders = aggregator.fields["orders"].types["Array"].items["Document"].schema
        self.assertEqual(orders.document_count, 3)
        items = orders.fields["orders.items"].types["Array"].items["Document"].schema
        self.assertEqual(items.document_count, 3)
        self.assertAlmostEqual(items.fields["orders.items.quantity"].probability, 2 / 3)

    def test_duplicated_stream_doubles_counts(self) -> None:
        single = infer_schema(NESTED_DOCUMENTS)
        doubled = infer_schema(NESTED_DOCUMENTS + NESTED_DOCUMENTS)
        self.assertEqual(doubled.document_count, 2 * single.document_count)
        for path, field in single.fields.items():
            other = doubled.fields[path]
            self.assertEqual(other.count, 2 * field.count)
            self.assertAlmostEqual(other.probability, field.probability)
            for type_name, field_type in field.types.items():
                self.assertEqual(other.types[type_name].count, 2 * field_type.count)

    def test_sample_size_from_config(self) -> None:
        aggregator = infer_schema([{"n": value} for value in range(20)], config=InferenceConfig(sample_size=4))
        number = aggregator.fields["n"].types["Number"]
        self.assertEqual(number.values, [0, 1, 2, 3])
        self.assertEqual(number.unique, 20)


class FailureTests(unittest.TestCase):
    def test_unsupported_value_leaves_no_partial_state(self) -> None:
        aggregator = SchemaAggregator()
        aggregator.add_document({"a": 1})
        with self.assertRaises(UnsupportedTypeError) as ctx:
            aggregator.add_document({"a": 2, "b": {"c": datetime(2024, 1, 1)}})
        self.assertEqual(ctx.exception.path, "b.c")
        self.assertEqual(aggregator.document_count, 1)
        self.assertEqual(list(aggregator.fields), ["a"])
        self.assertEqual(aggregator.fields["a"].count, 1)

    def test_non_mapping_document_rejected(self) -> None:
        with self.assertRaises(UnsupportedTypeError):
            SchemaAggregator().add_document([1, 2])

    def test_skip_invalid_documents(self) -> None:
        aggregator = SchemaAggregator()
        accepted = aggregator.add_documents([{"a": 1}, {"a": object()}, {"a": 2}], skip_invalid=True)
        self.assertEqual(accepted, 2)
        self.assertEqual(aggregator.skipped, 1)
        self.assertEqual(aggregator.document_count, 2)
        aggregator.finalize()
        self.assertEqual(aggregator.fields["a"].probability, 1.0)

    def test_invalid_document_aborts_by_default(self) -> None:
        with self.assertRaises(UnsupportedTypeError):
            infer_schema([{"a": 1}, {"a": {1, 2}}])

    def test_nesting_depth_limit(self) -> None:
        aggregator = SchemaAggregator(InferenceConfig(max_depth=2))
        aggregator.add_document({"a": {"b": 1}})
        with self.assertRaises(NestingDepthError) as ctx:
            aggregator.add_document({"a": {"b": {"c": 1}}})
        self.assertEqual(ctx.exception.path, "a.b.c")
        self.assertEqual(aggregator.document_count, 1)

    def test_dotted_key_colliding_with_nested_path_is_skipped(self) -> None:
        aggregator = SchemaAggregator()
        accepted = aggregator.add_documents([{"a": {"b": 1}}, {"a.b": 5}, {"a": {"b": 2}}], skip_invalid=True)
        self.assertEqual(accepted, 2)
        self.assertEqual(aggregator.skipped, 1)
        aggregator.finalize()
        self.assertEqual(aggregator.fields["a.b"].count, 2)
        self.assertEqual(aggregator.fields["a.b"].probability, 1.0)

    def test_collisions_inside_one_document(self) -> None:
        aggregator = SchemaAggregator()
        aggregator.add_document({"k": 0})
        for document in ({1: "x", "1": "y"}, {"a": {"b": 1}, "a.b": 2}, {"rows": [{"a": {"b": 1}}, {"a.b": 2}]}):
            with self.assertRaises(KeyCollisionError):
                aggregator.add_document(document)
        self.assertEqual(aggregator.document_count, 1)
        self.assertEqual(list(aggregator.fields), ["k"])

    def test_collision_aborts_by_default(self) -> None:
        with self.assertRaises(KeyCollisionError) as ctx:
            infer_schema([{"a.b": 5}, {"a": {"b": 1}}])
        self.assertEqual(ctx.exception.path, "a.b")

    def test_collision_inside_array_elements(self) -> None:
        aggregator = SchemaAggregator()
        aggregator.add_document({"rows": [{"a": {"b": 1}}]})
        with self.assertRaises(KeyCollisionError):
            aggregator.add_document({"rows": [{"a.b": 2}]})
        aggregator.add_document({"rows": [{"a": {"b": 2}}], "a.b": 3})
        aggregator.finalize()
        self.assertEqual(aggregator.document_count, 2)
        self.assertEqual(aggregator.fields["a.b"].parent_path, "")

    def test_finalize_lifecycle(self) -> None:
        aggregator = SchemaAggregator()
        aggregator.add_document({"a": 1})
        with self.assertRaises(InvariantViolation):
            aggregator.to_dict()
        aggregator.finalize()
        with self.assertRaises(InvariantViolation):
            aggregator.finalize()
        with self.assertRaises(InvariantViolation):
            aggregator.add_document({"a": 2})

    def test_empty_run_finalizes(self) -> None:
        aggregator = infer_schema([])
        self.assertEqual(aggregator.to_dict(), {"count": 0, "skipped": 0, "fields": []})


class MergeTests(unittest.TestCase):
    def test_merged_shards_match_single_pass(self) -> None:
        left = infer_schema(NESTED_DOCUMENTS[:2], finalize=False)
        right = infer_schema(NESTED_DOCUMENTS[2:], finalize=False)
        merged = merge_aggregators([left, right])
        single = infer_schema(NESTED_DOCUMENTS)
        self.assertEqual(merged.to_dict(), single.to_dict())
        self.assertFalse(left.finalized)

    def test_merge_after_finalize_fails(self) -> None:
        finalized = infer_schema([{"a": 1}])
        pending = infer_schema([{"a": 2}], finalize=False)
        with self.assertRaises(InvariantViolation):
            pending.merge(finalized)

    def test_shards_with_colliding_paths_fail(self) -> None:
        nested = infer_schema([{"a": {"b": 1}}], finalize=False)
        dotted = infer_schema([{"a.b": 2}], finalize=False)
        with self.assertRaises(KeyCollisionError):
            merge_aggregators([nested, dotted])

    def test_merge_requires_input(self) -> None:
        with self.assertRaises(ValueError):
            merge_aggregators([])


if __name__ == "__main__":
    unittest.main()
