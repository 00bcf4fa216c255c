from __future__ import annotations

import sys
import textwrap
import unittest
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from planviz.parser import extract_physical_plan, parse_operator_line, parse_plan
from planviz.resources import load_example


class ParsePlanTests(unittest.TestCase):
    def test_indentation_builds_tree(self) -> None:
        root = parse_plan(
            textwrap.dedent(
                """\
                HashJoinExec: mode=Partitioned, join_type=Inner, on=[(a@0, b@0)]
                  CoalesceBatchesExec: target_batch_size=8192
                    DataSourceExec: projection=[a]
                  DataSourceExec: projection=[b]
                """
            )
        )
        self.assertIsNotNone(root)
        self.assertEqual(root.operator, "HashJoinExec")
        self.assertEqual(root.properties["mode"], "Partitioned")
        self.assertEqual(root.properties["on"], "[(a@0, b@0)]")
        self.assertEqual([c.operator for c in root.children], ["CoalesceBatchesExec", "DataSourceExec"])
        self.assertEqual(root.children[0].children[0].properties, {"projection": "[a]"})
        self.assertEqual(root.children[1].level, 1)
        self.assertEqual(len(list(root.walk())), 4)

    def test_tabs_count_as_one_level(self) -> None:
        root = parse_plan("SortExec: expr=[a@0 ASC]\n\tFilterExec: a@0 > 1\n\t\tDataSourceExec: projection=[a]")
        self.assertEqual(root.children[0].operator, "FilterExec")
        self.assertEqual(root.children[0].children[0].operator, "DataSourceExec")

    def test_blank_lines_are_ignored(self) -> None:
        root = parse_plan("\nCoalescePartitionsExec\n\n  DataSourceExec: projection=[a]\n\n")
        self.assertEqual(root.operator, "CoalescePartitionsExec")
        self.assertEqual(root.properties, {})
        self.assertEqual(len(root.children), 1)

    def test_empty_input_returns_none(self) -> None:
        self.assertIsNone(parse_plan(""))
        self.assertIsNone(parse_plan("   \n\t\n"))

    def test_extra_roots_are_dropped_with_warning(self) -> None:
        with self.assertLogs("planviz.parser", level="WARNING") as captured:
            root = parse_plan("UnionExec\n  DataSourceExec: projection=[a]\nProjectionExec: expr=[a@0 as a]")
        self.assertEqual(root.operator, "UnionExec")
        self.assertEqual(len(root.children), 1)
        self.assertIn("ProjectionExec", captured.output[0])

    def test_operator_line_without_properties(self) -> None:
        self.assertEqual(parse_operator_line("  UnionExec"), ("UnionExec", {}))
        operator, props = parse_operator_line("FilterExec: a@0 > 5, projection=[a@0]")
        self.assertEqual(operator, "FilterExec")
        self.assertEqual(props, {"args": "a@0 > 5", "projection": "[a@0]"})


class ExtractPhysicalPlanTests(unittest.TestCase):
    def test_extracts_physical_rows_preserving_indentation(self) -> None:
        plan = extract_physical_plan(load_example())
        lines = plan.splitlines()
        self.assertTrue(lines[0].startswith("SortPreservingMergeExec: [env@0 ASC NULLS LAST]"))
        self.assertTrue(lines[1].startswith("  SortExec: "))
        self.assertTrue(lines[-1].startswith("              DataSourceExec: "))
        self.assertEqual(len(lines), 8)
        self.assertNotIn("TableScan", plan)

    def test_plain_plan_is_returned_unchanged(self) -> None:
        text = "ProjectionExec: expr=[a@0 as a]\n  DataSourceExec: projection=[a]"
        self.assertEqual(extract_physical_plan(text), text)

    def test_parse_plan_accepts_explain_output(self) -> None:
        root = parse_plan(load_example())
        operators = [node.operator for node in root.walk()]
        self.assertEqual(
            operators,
            [
                "SortPreservingMergeExec",
                "SortExec",
                "ProjectionExec",
                "AggregateExec",
                "CoalesceBatchesExec",
                "RepartitionExec",
                "AggregateExec",
                "DataSourceExec",
            ],
        )
        self.assertEqual(root.properties["args"], "[env@0 ASC NULLS LAST]")


if __name__ == "__main__":
    unittest.main()
