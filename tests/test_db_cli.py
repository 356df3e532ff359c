import unittest

from courier_desk import create_app
from courier_desk.config import Config
from courier_desk.db import TABLES_WITH_UPDATED_AT, close_db, get_db, table_exists
from tests.helpers.temp_db import TempDbSandbox


class DbCliTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="db_cli")
        self.app = create_app(self._temp_db.make_config(Config, TESTING=False, DB_AUTO_INIT=False))
        self.runner = self.app.test_cli_runner()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_status_before_and_after_init(self) -> None:
        before = self.runner.invoke(args=["db", "status"])
        self.assertEqual(before.exit_code, 0)
        self.assertIn("deliveries: missing", before.output)

        init = self.runner.invoke(args=["db", "init"])
        self.assertEqual(init.exit_code, 0)
        self.assertIn("Schema ready.", init.output)

        after = self.runner.invoke(args=["db", "status"])
        self.assertIn("deliveries: 0 rows", after.output)
        self.assertIn("webhook_events: 0 rows", after.output)

    def test_init_is_repeatable(self) -> None:
        for _ in range(2):
            self.assertEqual(self.runner.invoke(args=["db", "init"]).exit_code, 0)

        with self.app.app_context():
            db = get_db()
            for table in (*TABLES_WITH_UPDATED_AT, "webhook_events"):
                self.assertTrue(table_exists(db, table), table)

    def test_updated_at_trigger_touches_rows(self) -> None:
        self.runner.invoke(args=["db", "init"])
        with self.app.app_context():
            db = get_db()
            db.execute("INSERT INTO items (name, price, qty, updated_at) VALUES ('Box', 1, 0, '2000-01-01 00:00:00')")
            db.execute("UPDATE items SET qty = 3 WHERE name = 'Box'")
            db.commit()
            row = db.execute("SELECT updated_at FROM items WHERE name = 'Box'").fetchone()
        self.assertNotEqual(row["updated_at"], "2000-01-01 00:00:00")


if __name__ == "__main__":
    unittest.main()
