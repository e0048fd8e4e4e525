import os
import tempfile
import unittest

from supply_tracker.db import init_document_schema, open_database
from tests.helpers.temp_db import TempDbSandbox, assert_safe_temp_db_path


class TempDbHelperTest(unittest.TestCase):
    def test_sandbox_holds_document_schema_and_cleans_up(self) -> None:
        sandbox = TempDbSandbox(prefix="temp_db_sanity")
        db_path = sandbox.db_path
        temp_dir = sandbox.temp_dir

        self.assertTrue(os.path.isdir(temp_dir))
        self.assertTrue(os.path.realpath(db_path).startswith(os.path.realpath(tempfile.gettempdir())))

        with open_database(db_path) as db:
            init_document_schema(db)
            db.execute(
                "INSERT INTO documents (collection, doc_id, payload_json) VALUES (?, ?, ?)",
                ("sanity", "doc-1", "{}"),
            )
            row = db.execute("SELECT COUNT(*) FROM documents").fetchone()
            self.assertEqual(int(row[0]), 1)

        sandbox.cleanup()
        self.assertFalse(os.path.exists(db_path))
        self.assertFalse(os.path.exists(temp_dir))

    def test_config_points_at_sandbox(self) -> None:
        sandbox = TempDbSandbox(prefix="temp_db_config")
        try:
            cfg = sandbox.make_config(object, SEED_DEMO_DATA=False)
            self.assertEqual(cfg.DB_PATH, sandbox.db_path)
            self.assertEqual(cfg.DOCUMENT_STORE, "sql")
            self.assertFalse(cfg.SEED_DEMO_DATA)
        finally:
            sandbox.cleanup()

    def test_disallow_workspace_paths(self) -> None:
        workspace_db = os.path.join(os.getcwd(), "supply_tracker_test.db")
        with self.assertRaises(ValueError):
            assert_safe_temp_db_path(workspace_db)


if __name__ == "__main__":
    unittest.main()
