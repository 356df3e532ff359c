import ast
import unittest
from pathlib import Path


ROUTES_DIR = Path(__file__).resolve().parents[1] / "courier_desk" / "routes"


class RoutesLayeringTest(unittest.TestCase):
    def test_route_handlers_do_not_embed_sql_or_provider_calls(self) -> None:
        forbidden_snippets = (
            "db.execute(",
            "send_request(",
            "urlopen(",
            "build_delivery_request(",
        )

        route_files = sorted(ROUTES_DIR.glob("*_routes.py"))
        self.assertTrue(route_files)
        for path in route_files:
            source = path.read_text(encoding="utf-8")
            module = ast.parse(source)
            lines = source.splitlines()
            for node in module.body:
                if not isinstance(node, ast.FunctionDef):
                    continue
                decorator_src = "\n".join(lines[d.lineno - 1] for d in node.decorator_list)
                if "_bp.route" not in decorator_src:
                    continue

                body_src = "\n".join(lines[node.lineno - 1 : node.end_lineno])
                for snippet in forbidden_snippets:
                    self.assertNotIn(
                        snippet,
                        body_src,
                        msg=f"Route handler `{path.name}:{node.name}` should not contain `{snippet}`",
                    )


if __name__ == "__main__":
    unittest.main()
