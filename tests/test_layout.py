from __future__ import annotations

import sys
import textwrap
import unittest
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from planviz import ConfigError, DiagramConfig, PlanParseError, StructuralError, convert, generate, parse_plan
from planviz.elements import GenerationSession, arrow, rectangle
from planviz.layout import LayoutContext, StrategyRegistry
from planviz.strategies import REGISTRY


def plan(text: str):
    return parse_plan(textwrap.dedent(text))


def render(text: str, config: DiagramConfig = None) -> Dict[str, Any]:
    return generate(plan(text), config, seed=1, timestamp=0)


def layout_node(node, config: DiagramConfig = None, is_root: bool = False):
    session = GenerationSession(config or DiagramConfig(), seed=1, timestamp=0)
    ctx = LayoutContext(session, REGISTRY)
    return ctx.layout(node, 0, 0, is_root=is_root), session


def of_type(doc: Dict[str, Any], kind: str) -> List[Dict[str, Any]]:
    return [e for e in doc["elements"] if e["type"] == kind]


def texts(doc: Dict[str, Any]) -> List[str]:
    return [e["text"] for e in of_type(doc, "text")]


class DocumentTests(unittest.TestCase):
    def test_empty_plan_gives_empty_document(self) -> None:
        doc = generate(None)
        self.assertEqual(doc["type"], "excalidraw")
        self.assertEqual(doc["version"], 2)
        self.assertEqual(doc["source"], "https://excalidraw.com")
        self.assertEqual(doc["elements"], [])
        self.assertEqual(doc["appState"], {"gridSize": None, "viewBackgroundColor": "#ffffff"})
        self.assertEqual(doc["files"], {})

    def test_fixed_seed_and_timestamp_are_reproducible(self) -> None:
        text = "SortExec: expr=[a@0 ASC]\n  DataSourceExec: projection=[a]"
        self.assertEqual(render(text), render(text))

    def test_concurrent_generation_matches_sequential(self) -> None:
        text = (
            "UnionExec\n"
            "  RepartitionExec: partitioning=Hash([a@0], 12), input_partitions=1\n"
            "    DataSourceExec: file_groups={1 group: [[a.parquet]]}, projection=[a]\n"
            "  RepartitionExec: partitioning=Hash([a@0], 12), input_partitions=1\n"
            "    DataSourceExec: file_groups={1 group: [[b.parquet]]}, projection=[a]\n"
            "  RepartitionExec: partitioning=Hash([a@0], 12), input_partitions=1\n"
            "    DataSourceExec: file_groups={1 group: [[c.parquet]]}, projection=[a]\n"
        )
        expected = render(text)
        with ThreadPoolExecutor(max_workers=8) as pool:
            documents = list(pool.map(lambda _: render(text), range(8)))
        for document in documents:
            self.assertEqual(document, expected)

    def test_ids_and_indices_are_sequential(self) -> None:
        doc = render("SortExec: expr=[a@0 ASC]\n  DataSourceExec: projection=[a]")
        ids = [e["id"] for e in doc["elements"]]
        self.assertEqual(ids[0], "element-0-1")
        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(doc["elements"][0]["index"], "c0g0")
        self.assertEqual(doc["elements"][1]["index"], "c0g1")

    def test_convert_rejects_empty_text(self) -> None:
        with self.assertRaises(PlanParseError) as ctx:
            convert("  \n")
        self.assertEqual(ctx.exception.code, "E_PARSE_PLAN")


class ChainTests(unittest.TestCase):
    def test_chain_draws_one_box_and_arrow_per_edge(self) -> None:
        doc = render(
            """\
            CoalesceBatchesExec: target_batch_size=8192
              FilterExec: a@0 > 1
                DataSourceExec: projection=[a, b]
            """
        )
        self.assertEqual(len(of_type(doc, "rectangle")), 3)
        self.assertEqual(len(of_type(doc, "arrow")), 2)
        self.assertIn("target_batch_size=8192", texts(doc))
        self.assertIn("a > 1", texts(doc))

    def test_children_are_stacked_below_parent(self) -> None:
        doc = render("SortExec: expr=[a@0 ASC]\n  DataSourceExec: projection=[a]")
        sort_box, source_box = of_type(doc, "rectangle")
        self.assertEqual((sort_box["x"], sort_box["y"]), (0, 0))
        self.assertEqual(source_box["x"], 0)
        self.assertAlmostEqual(source_box["y"], 80 + 100 * 3 / 5)

    def test_every_arrow_is_bound_at_both_ends(self) -> None:
        doc = convert(
            "HashJoinExec: mode=CollectLeft, join_type=Inner, on=[(a@0, a@0)]\n"
            "  DataSourceExec: file_groups={1 group: [[l.parquet, m.parquet]]}, projection=[a]\n"
            "  UnionExec\n"
            "    DataSourceExec: file_groups={2 groups: [[r1.parquet], [r2.parquet]]}, projection=[a]\n"
            "    DataSourceExec: projection=[a]\n",
            seed=3,
            timestamp=0,
        )
        by_id = {e["id"]: e for e in doc["elements"]}
        arrows = of_type(doc, "arrow")
        self.assertTrue(arrows)
        for item in arrows:
            for binding in ("startBinding", "endBinding"):
                shape = by_id[item[binding]["elementId"]]
                bound = [entry["id"] for entry in shape["boundElements"]]
                self.assertIn(item["id"], bound)

    def test_sort_order_flows_from_source_through_filter(self) -> None:
        root = plan(
            """\
            SortExec: expr=[a@0 ASC], preserve_partitioning=[false]
              FilterExec: a@0 > 1
                DataSourceExec: file_groups={1 group: [[a.parquet]]}, projection=[a, b], output_ordering=[a@0 ASC]
            """
        )
        filter_result, _ = layout_node(root.children[0])
        self.assertEqual(filter_result.output_sort_order, ("a",))
        self.assertEqual(filter_result.output_columns, ("a", "b"))
        self.assertEqual(filter_result.output_arrow_count, 1)

        doc = generate(root, seed=1, timestamp=0)
        self.assertEqual(len(of_type(doc, "rectangle")), 3)
        self.assertEqual(len(of_type(doc, "ellipse")), 1)
        self.assertEqual(len(of_type(doc, "arrow")), 3)
        labels = {(e["text"], e["strokeColor"]) for e in of_type(doc, "text")}
        self.assertIn(("a", "#1e90ff"), labels)
        self.assertIn((", b", "#1e1e1e"), labels)


class CardinalityTests(unittest.TestCase):
    def test_coalesce_partitions_emits_single_stream(self) -> None:
        root = plan(
            """\
            CoalescePartitionsExec
              RepartitionExec: partitioning=RoundRobinBatch(4), input_partitions=1
                DataSourceExec: file_groups={1 group: [[a.parquet]]}
            """
        )
        result, session = layout_node(root)
        self.assertEqual(result.output_arrow_count, 1)
        self.assertEqual(result.output_arrow_positions, (150,))
        coalesce_box = session.elements[0]
        self.assertEqual(len(coalesce_box["boundElements"]), 4)

    def test_repartition_emits_declared_partitions(self) -> None:
        root = plan("RepartitionExec: partitioning=RoundRobinBatch(4), input_partitions=1\n  DataSourceExec: projection=[a]")
        result, _ = layout_node(root)
        self.assertEqual(result.output_arrow_count, 4)
        for got, want in zip(result.output_arrow_positions, [60, 120, 180, 240]):
            self.assertAlmostEqual(got, want)

    def test_repartition_at_root_emits_nothing(self) -> None:
        root = plan("RepartitionExec: partitioning=Hash([a@0], 4), input_partitions=1\n  DataSourceExec: projection=[a]")
        result, _ = layout_node(root, is_root=True)
        self.assertEqual(result.output_arrow_count, 0)
        self.assertEqual(result.output_arrow_positions, ())

    def test_large_fan_out_collapses_with_ellipsis(self) -> None:
        doc = render(
            """\
            CoalesceBatchesExec: target_batch_size=8192
              RepartitionExec: partitioning=Hash([a@0], 16), input_partitions=1
                DataSourceExec: projection=[a]
            """
        )
        coalesce_box = of_type(doc, "rectangle")[0]
        self.assertEqual(len(coalesce_box["boundElements"]), 4)
        self.assertEqual(texts(doc).count("..."), 1)

        root = plan(
            "CoalesceBatchesExec: target_batch_size=8192\n"
            "  RepartitionExec: partitioning=Hash([a@0], 16), input_partitions=1\n"
            "    DataSourceExec: projection=[a]"
        )
        result, _ = layout_node(root)
        self.assertEqual(result.output_arrow_count, 16)
        self.assertEqual(len(result.output_arrow_positions), 4)

    def test_many_file_groups_collapse_into_four_arrows(self) -> None:
        groups = ", ".join(f"[f{i}.parquet]" for i in range(10))
        root = plan(
            "CoalesceBatchesExec: target_batch_size=8192\n"
            f"  DataSourceExec: file_groups={{10 groups: [{groups}]}}, projection=[a]"
        )
        doc = generate(root, seed=1, timestamp=0)
        source_box = of_type(doc, "rectangle")[1]
        into_source = [e for e in of_type(doc, "arrow") if e["endBinding"]["elementId"] == source_box["id"]]
        self.assertEqual(len(into_source), 4)
        # 4 file-group arrows in, 4 collapsed arrows out to the parent
        self.assertEqual(len(source_box["boundElements"]), 8)
        self.assertEqual(len(of_type(doc, "ellipse")), 10)
        self.assertEqual(len(of_type(doc, "arrow")), 8)
        self.assertEqual(texts(doc).count("..."), 2)

        result, _ = layout_node(root)
        self.assertEqual(result.output_arrow_count, 10)


class RegistryTests(unittest.TestCase):
    def test_registry_lists_known_operators(self) -> None:
        names = REGISTRY.operators()
        for operator in ("DataSourceExec", "HashJoinExec", "SortMergeJoin", "UnionExec"):
            self.assertIn(operator, names)
        self.assertNotIn("MysteryExec", REGISTRY)

    def test_registry_without_default_raises(self) -> None:
        registry = StrategyRegistry()
        with self.assertRaises(LookupError):
            registry.resolve("SortExec")

    def test_custom_registry_is_used(self) -> None:
        calls = []
        registry = StrategyRegistry()

        @registry.register("SortExec")
        def draw(ctx, node, x, y, is_root):
            calls.append((node.operator, x, y, is_root))
            return REGISTRY.resolve("MysteryExec")(ctx, node, x, y, is_root)

        generate(plan("SortExec: expr=[a@0 ASC]"), registry=registry, seed=0, timestamp=0)
        self.assertEqual(calls, [("SortExec", 0, 0, True)])


class SessionTests(unittest.TestCase):
    def test_arrow_requires_known_endpoints(self) -> None:
        session = GenerationSession(DiagramConfig(), seed=0, timestamp=5)
        box = rectangle(session, 0, 0, 10, 10)
        with self.assertRaises(ValueError):
            arrow(session, 0, 0, 1, 1, start_id=box["id"], end_id="missing")

    def test_translate_moves_elements_after_mark(self) -> None:
        session = GenerationSession(DiagramConfig(), seed=0, timestamp=5)
        first = rectangle(session, 0, 0, 10, 10)
        mark = session.mark()
        second = rectangle(session, 20, 0, 10, 10)
        session.translate(mark, -15)
        self.assertEqual(first["x"], 0)
        self.assertEqual(second["x"], 5)
        self.assertEqual(second["id"], "element-5-2")


class ConfigTests(unittest.TestCase):
    def test_font_sizes_are_derived(self) -> None:
        config = DiagramConfig()
        self.assertEqual((config.operator_font_size, config.details_font_size), (20, 14))
        larger = config.with_overrides(font_size=8)
        self.assertEqual((larger.operator_font_size, larger.details_font_size), (10, 7))

    def test_explicit_font_sizes_win(self) -> None:
        config = DiagramConfig(font_size=16, details_font_size=12)
        self.assertEqual(config.details_font_size, 12)

    def test_font_size_override_keeps_explicit_sizes(self) -> None:
        config = DiagramConfig(details_font_size=12).with_overrides(font_size=8)
        self.assertEqual(config.details_font_size, 12)
        self.assertEqual(config.operator_font_size, 10)
        again = config.with_overrides(node_height=90).with_overrides(font_size=24)
        self.assertEqual((again.operator_font_size, again.details_font_size), (30, 12))

    def test_internal_fields_are_not_overridable(self) -> None:
        with self.assertRaises(ConfigError):
            DiagramConfig().with_overrides(_derived_fonts=frozenset())

    def test_invalid_values_raise(self) -> None:
        with self.assertRaises(ConfigError):
            DiagramConfig(node_width=0)
        with self.assertRaises(ConfigError):
            DiagramConfig(vertical_spacing=-1)
        with self.assertRaises(ConfigError):
            DiagramConfig().with_overrides(colour="red")

    def test_none_overrides_are_ignored(self) -> None:
        config = DiagramConfig().with_overrides(node_width=None, node_height=90)
        self.assertEqual(config.node_width, 200)
        self.assertEqual(config.node_height, 90)

    def test_generation_errors_are_structural(self) -> None:
        with self.assertRaises(StructuralError):
            render("HashJoinExec: mode=CollectLeft\n  DataSourceExec: projection=[a]")


if __name__ == "__main__":
    unittest.main()
