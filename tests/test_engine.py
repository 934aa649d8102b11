import pytest

from calcpad.a1 import CellAddress, parse_address
from calcpad.classify import LineKind
from calcpad.engine import Document, Layout, Line, RecomputeEngine, recompute
from calcpad.evaluator import Evaluator
from calcpad.formatter import THIN_SPACE, UnitPreferences
from calcpad.namespace import NamespaceStore
from calcpad.types import Quantity
from calcpad.units import LENGTH, quantity_from_unit


def make_document(*texts, layout=Layout.PAD):
    return Document(
        lines=[Line(id=str(i + 1), text=text) for i, text in enumerate(texts)],
        layout=layout,
    )


@pytest.fixture
def grid():
    return {"0:0": "5 in", "0:1": "2 in", "1:0": "10 kN"}


@pytest.fixture
def cell_lookup(grid):
    return lambda row, col: grid.get(f"{row}:{col}", "")


class TestRecompute:
    def test_end_to_end(self, cell_lookup):
        doc = make_document("A = 5 in", "B = 2 in", "A + B", "A + 10 kN")
        recompute(doc, cell_lookup, parse_address)

        a, b, total, mismatch = doc.lines
        assert a.kind == LineKind.DEFINITION
        assert a.formatted == f"5{THIN_SPACE}in"
        assert b.formatted == f"2{THIN_SPACE}in"
        assert total.kind == LineKind.EXPRESSION
        assert total.result.isclose(quantity_from_unit(7, "in"))
        assert total.formatted == f"7{THIN_SPACE}in"
        assert total.error is None
        assert mismatch.result is None
        assert "Cannot add incompatible units" in mismatch.error

    def test_precedence(self):
        doc = recompute(make_document("2 + 3 * 4"))
        assert doc.lines[0].result.magnitude == 14
        assert doc.lines[0].formatted == "14"

    def test_returns_same_document(self):
        doc = make_document("1 + 1")
        assert recompute(doc) is doc

    def test_restricted_path(self):
        """Sums of written quantities compare unit strings."""
        doc = recompute(make_document("5 in + 4 in", "5 in + 4 kN", "5 ft + 12 in"))
        ok, incompatible, different_units = doc.lines
        assert ok.formatted == f"9{THIN_SPACE}in"
        assert "Unit mismatch: in vs kN" in incompatible.error
        assert "Unit mismatch: ft vs in" in different_units.error

    def test_relaxed_units(self):
        doc = recompute(make_document("5 ft + 12 in"), strict_units=False)
        assert doc.lines[0].formatted == f"6{THIN_SPACE}ft"

    def test_unified_path_converts(self):
        """The same sum goes through the full grammar once anything forces it there."""
        doc = recompute(make_document("(5 ft + 12 in)", "5 ft + 12 in * 1"))
        assert doc.lines[0].formatted == f"6{THIN_SPACE}ft"
        assert doc.lines[1].formatted == f"6{THIN_SPACE}ft"

    def test_fallback_matches_direct_evaluation(self):
        text = "2 kip/ft * 10 ft / 2"
        doc = recompute(make_document(text))
        expected = Evaluator().evaluate(text)
        assert doc.lines[0].result.isclose(expected)
        assert doc.lines[0].formatted == f"10{THIN_SPACE}kip"

    def test_ordering_sensitivity(self):
        """A name is only visible to lines after its definition."""
        doc = recompute(make_document("B + 1 in", "B = 3 in"))
        assert "Unknown identifier 'B'" in doc.lines[0].error
        assert doc.lines[1].formatted == f"3{THIN_SPACE}in"

        # Still no forward references on a second pass
        recompute(doc)
        assert "Unknown identifier 'B'" in doc.lines[0].error

    def test_ownership_invalidation(self):
        doc = Document(lines=[Line("C1", "X = 5 in"), Line("C2", "X + 1 in")])
        recompute(doc)
        assert doc.get_line("C2").formatted == f"6{THIN_SPACE}in"
        assert doc.namespace.get_defining_cell("X") == "C1"

        doc.get_line("C1").text = "just a note"
        recompute(doc)
        assert doc.get_line("C1").kind == LineKind.TEXT
        assert doc.get_line("C1").result is None
        assert "Unknown identifier 'X'" in doc.get_line("C2").error
        assert "X" not in doc.namespace

    def test_redefinition_in_later_line(self):
        doc = recompute(make_document("x = 1 in", "x + 1 in", "x = 5 in", "x + 1 in"))
        assert doc.lines[1].formatted == f"2{THIN_SPACE}in"
        assert doc.lines[3].formatted == f"6{THIN_SPACE}in"
        assert doc.namespace.get_defining_cell("x") == "3"

    def test_names_differing_in_case(self):
        doc = recompute(make_document("a = 5 in", "A = 2 kN", "a + 1 in", "A * 2"))
        assert doc.lines[2].formatted == f"6{THIN_SPACE}in"
        assert doc.lines[3].formatted == f"4{THIN_SPACE}kN"
        assert doc.namespace.get_defining_cell("a") == "1"
        assert doc.namespace.get_defining_cell("A") == "2"

    def test_text_lines_are_not_evaluated(self):
        doc = recompute(make_document("Beam design notes", "5 in"))
        for line in doc.lines:
            assert line.kind == LineKind.TEXT
            assert line.result is None
            assert line.error is None

    def test_errors_stay_on_their_line(self):
        doc = recompute(make_document("2 +", "1 in / 0", "q = 4 in", "q * 2"))
        assert "Unexpected end of input" in doc.lines[0].error
        assert "Division by zero" in doc.lines[1].error
        assert doc.lines[3].formatted == f"8{THIN_SPACE}in"

    def test_lex_issue_is_line_error(self):
        doc = recompute(make_document("5 in + 3 in $"))
        assert doc.lines[0].result is None
        assert "Unrecognized character '$'" in doc.lines[0].error

    def test_trailing_equals(self):
        doc = recompute(make_document("A = 2 ft", "A * 3 ="))
        assert doc.lines[1].formatted == f"6{THIN_SPACE}ft"

    def test_normalized_input(self):
        doc = recompute(make_document("2 × 3 in", "10 in − 4 in", "5 inin + 1 in"))
        assert doc.lines[0].formatted == f"6{THIN_SPACE}in"
        assert doc.lines[1].formatted == f"6{THIN_SPACE}in"
        assert doc.lines[2].formatted == f"6{THIN_SPACE}in"

    def test_mixed_unit_ratios(self):
        doc = recompute(make_document("12 in / 1 ft", "5 in / 2 ft", "r = 6 in / 1 ft", "r * 4"))
        assert [line.formatted for line in doc.lines] == ["1", "0.208", "0.5", "2"]

    def test_previous_results_are_cleared(self):
        doc = recompute(make_document("1 in + 1 in"))
        doc.lines[0].text = "1 in + 1 kN"
        recompute(doc)
        assert doc.lines[0].result is None
        assert doc.lines[0].formatted is None
        assert doc.lines[0].error is not None


class TestCellReferences:
    def test_cell_references(self, cell_lookup):
        doc = recompute(make_document("A1 + B1", "A2 * 2"), cell_lookup, parse_address)
        assert doc.lines[0].formatted == f"7{THIN_SPACE}in"
        assert doc.lines[1].formatted == f"20{THIN_SPACE}kN"

    def test_unresolved_reference(self, cell_lookup):
        doc = recompute(make_document("C9 + 1 in"), cell_lookup, parse_address)
        assert "Cell C9 is empty" in doc.lines[0].error

    def test_lookup_failures_do_not_escape(self):
        def broken(row, col):
            raise RuntimeError("disconnected")

        doc = recompute(make_document("A1 + 1 in", "1 in + 1 in"), broken)
        assert "disconnected" in doc.lines[0].error
        assert doc.lines[1].formatted == f"2{THIN_SPACE}in"


class TestLayouts:
    def test_canvas_reads_top_to_bottom(self):
        doc = Document(
            lines=[
                Line("late", "X + 1 in", x=0, y=100),
                Line("right", "Y = X * 2", x=200, y=10),
                Line("left", "X = 2 in", x=0, y=10),
            ],
            layout=Layout.CANVAS,
        )
        assert [line.id for line in doc.ordered_lines()] == ["left", "right", "late"]
        recompute(doc)
        assert doc.get_line("late").formatted == f"3{THIN_SPACE}in"
        assert doc.get_line("right").formatted == f"4{THIN_SPACE}in"

    def test_grid_is_row_major(self):
        doc = Document(
            lines=[
                Line("A2", "Y = X * 2", address=CellAddress(1, 0)),
                Line("B1", "X = 3 in", address=CellAddress(0, 1)),
                Line("A1", "W = 1 in", address=CellAddress(0, 0)),
            ],
            layout=Layout.GRID,
        )
        assert [line.id for line in doc.ordered_lines()] == ["A1", "B1", "A2"]
        recompute(doc)
        assert doc.get_line("A2").formatted == f"6{THIN_SPACE}in"

    def test_pad_keeps_given_order(self):
        doc = make_document("a", "b", "c")
        assert [line.id for line in doc.ordered_lines()] == ["1", "2", "3"]


class TestDocumentNamespace:
    def test_documents_do_not_share_names(self):
        first = recompute(make_document("X = 5 in"))
        second = recompute(make_document("X + 1 in"))
        assert "X" in first.namespace
        assert "Unknown identifier 'X'" in second.lines[0].error

    def test_explicit_namespace(self):
        store = NamespaceStore()
        store.define_variable("g", quantity_from_unit(2, "in"), "elsewhere")
        doc = recompute(make_document("g * 3"), namespace=store)
        assert doc.lines[0].formatted == f"6{THIN_SPACE}in"
        assert len(doc.namespace) == 0

    def test_dropped_line_names_do_not_survive(self):
        doc = recompute(make_document("X = 5 in", "X + 1 in"))
        assert doc.lines[1].formatted == f"6{THIN_SPACE}in"

        doc.lines = [doc.lines[1]]
        recompute(doc)
        assert doc.lines[0].result is None
        assert "Unknown identifier 'X'" in doc.lines[0].error
        assert "X" not in doc.namespace

    def test_explicit_namespace_keeps_outside_names(self):
        store = NamespaceStore()
        store.define_variable("g", quantity_from_unit(2, "in"), "elsewhere")
        doc = make_document("h = g * 2")
        recompute(doc, namespace=store)
        recompute(doc, namespace=store)
        assert store.get_defining_cell("g") == "elsewhere"
        assert store.get_defining_cell("h") == "1"

    def test_remove_line_clears_its_names(self):
        doc = recompute(make_document("X = 5 in", "Y = 2 in"))
        removed = doc.remove_line("1")
        assert removed.text == "X = 5 in"
        assert "X" not in doc.namespace
        assert "Y" in doc.namespace
        with pytest.raises(KeyError):
            doc.remove_line("1")


class TestRecomputeEngine:
    def test_engine_is_reusable(self, cell_lookup):
        engine = RecomputeEngine(cell_lookup, parse_address, strict_units=False)
        first = engine.recompute(make_document("A1 + 1 ft"))
        second = engine.recompute(make_document("B1 * 3"))
        assert first.lines[0].formatted == f"17{THIN_SPACE}in"
        assert second.lines[0].formatted == f"6{THIN_SPACE}in"

    def test_preferences_apply_to_unitless_results(self):
        store = NamespaceStore()
        store.define_variable("span", Quantity(0.5, LENGTH), "import")
        engine = RecomputeEngine(preferences=UnitPreferences.for_system("metric_m"))
        doc = engine.recompute(make_document("span * 2"), namespace=store)
        assert doc.lines[0].formatted == f"1{THIN_SPACE}m"
