import unittest

from courier_desk.contexts.dispatch.domain.quote_composition import compose_lines, normalize_item_id
from courier_desk.errors import NotFoundError, ValidationError


CATALOG = [
    {"id": 1, "name": "Box", "price": 100.0},
    {"id": 2, "name": "Crate", "price": 12.35},
    {"id": 3, "name": "Pallet", "price": 0.1},
]


class QuoteCompositionTest(unittest.TestCase):
    def test_line_totals_and_subtotal(self) -> None:
        composed = compose_lines([{"item_id": 1, "qty": 2}], CATALOG)
        self.assertEqual(composed.subtotal, 200.0)
        self.assertEqual(
            composed.lines_as_dicts(),
            [{"item_id": 1, "name": "Box", "price": 100.0, "qty": 2, "line_total": 200.0}],
        )

    def test_subtotal_does_not_depend_on_line_order(self) -> None:
        lines = [{"item_id": 2, "qty": 3}, {"item_id": 3, "qty": 7}, {"item_id": 1, "qty": 1}]
        forward = compose_lines(lines, CATALOG)
        backward = compose_lines(list(reversed(lines)), CATALOG)
        self.assertEqual(forward.subtotal, backward.subtotal)
        self.assertAlmostEqual(forward.subtotal, sum(line.line_total for line in forward.lines))

    def test_absent_qty_defaults_to_one(self) -> None:
        composed = compose_lines([{"itemId": "2"}], CATALOG)
        self.assertEqual(composed.lines[0].qty, 1)
        self.assertEqual(composed.subtotal, 12.35)

    def test_unknown_item_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError) as ctx:
            compose_lines([{"item_id": 1, "qty": 1}, {"item_id": 99, "qty": 1}], CATALOG)
        self.assertEqual(ctx.exception.code, "item_not_found")
        self.assertEqual(ctx.exception.http_status, 404)

    def test_integral_item_id_spellings_match_the_catalog(self) -> None:
        composed = compose_lines([{"item_id": 1.0}, {"item_id": "02"}, {"itemId": " 3 "}], CATALOG)
        self.assertEqual([line.item_id for line in composed.lines], [1, 2, 3])

    def test_item_id_normalization(self) -> None:
        self.assertEqual(normalize_item_id("007"), 7)
        self.assertEqual(normalize_item_id(4.0), 4)
        for value in (None, True, 1.5, "abc", "nan", ""):
            with self.subTest(value=value):
                self.assertIsNone(normalize_item_id(value))

    def test_non_positive_or_invalid_qty_is_rejected(self) -> None:
        for qty in (0, -1, "abc", float("nan")):
            with self.subTest(qty=qty):
                with self.assertRaises(ValidationError) as ctx:
                    compose_lines([{"item_id": 1, "qty": qty}], CATALOG)
                self.assertEqual(ctx.exception.message_key, "quantity_invalid")

    def test_empty_request_is_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            compose_lines([], CATALOG)
        self.assertEqual(ctx.exception.message_key, "items_required")

    def test_line_without_item_id_is_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            compose_lines([{"qty": 1}], CATALOG)
        self.assertEqual(ctx.exception.message_key, "item_id_required")


if __name__ == "__main__":
    unittest.main()
