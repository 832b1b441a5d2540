"""
Unit tests for the deterministic room post-processor.

Covers dimension parsing, level detection, stable room naming and
cross-sheet deduplication. No AI calls involved.
"""

import pytest

from planparse.services.plans.dimensions import normalize_dimension_text, parse_dimensions
from planparse.services.plans.levels import (
    CANONICAL_LEVELS,
    canonicalize_level,
    detect_level_from_text,
    extract_sheet_title,
)
from planparse.services.plans.room_processor import (
    apply_deterministic_names,
    clean_room_name,
    deduplicate_across_sheets,
    extract_base_name,
    merge_room_batches,
    post_process_rooms,
    strip_level_suffix,
)
from planparse.services.plans.schemas import SheetRoomResult


# =============================================================================
# DIMENSION PARSER
# =============================================================================

class TestParseDimensions:
    """Test freeform dimension strings -> feet."""

    @pytest.mark.parametrize("raw,expected", [
        ("12'-6\" x 14'-0\"", (12.5, 14.0)),
        ("12'6\" x 14'3\"", (12.5, 14.25)),
        ("12' x 14'", (12.0, 14.0)),
        ("12x14", (12.0, 14.0)),
        ("12 x 14", (12.0, 14.0)),
        ("12.5 x 14.5", (12.5, 14.5)),
        ("10'-3\" X 9'-7\"", (10.25, 9.58)),
    ])
    def test_supported_formats(self, raw, expected):
        result = parse_dimensions(raw)
        assert result == {"length_ft": expected[0], "width_ft": expected[1]}

    def test_smart_quotes(self):
        """Curly quotes from PDF text layers parse like ASCII quotes."""
        result = parse_dimensions("12’-6” x 14’-0”")
        assert result == {"length_ft": 12.5, "width_ft": 14.0}

    def test_prime_marks(self):
        result = parse_dimensions("11′-0″ × 13′-6″")
        assert result == {"length_ft": 11.0, "width_ft": 13.5}

    def test_feet_inches_formula(self):
        for a, b, c, d in [(8, 11, 20, 1), (15, 0, 3, 4), (9, 7, 9, 7)]:
            result = parse_dimensions(f"{a}'-{b}\" x {c}'-{d}\"")
            assert result == {
                "length_ft": round(a + b / 12, 2),
                "width_ft": round(c + d / 12, 2),
            }

    @pytest.mark.parametrize("raw", [None, "", "garbage", "approx. large", "12'"])
    def test_unparseable_returns_none(self, raw):
        assert parse_dimensions(raw) is None

    def test_non_string_returns_none(self):
        assert parse_dimensions(12) is None

    def test_normalize_collapses_whitespace(self):
        assert normalize_dimension_text("  12’   x\t14’ ") == "12' x 14'"


# =============================================================================
# LEVEL DETECTION
# =============================================================================

class TestLevelDetection:
    """Test sheet title / page text -> canonical level."""

    @pytest.mark.parametrize("title,expected", [
        ("Garage Floor Plan", "Garage"),
        ("Second Floor Plan", "Level 2"),
        ("FIRST FLOOR PLAN", "Level 1"),
        ("Ground Floor", "Level 1"),
        ("3RD FLOOR PLAN", "Level 3"),
        ("Fourth Floor", "Level 4"),
        ("BASEMENT PLAN", "Basement"),
        ("Lower Level Plan", "Basement"),
        ("Cellar", "Basement"),
        ("Attic Framing", "Attic"),
        ("ROOF PLAN", "Roof"),
        ("Level 3", "Level 3"),
        ("Main Level", "Level 1"),
        ("Upper Level Plan", "Level 2"),
        ("A2-01 FLOOR PLAN", "Level 2"),
    ])
    def test_title_patterns(self, title, expected):
        assert detect_level_from_text(title, "") == expected

    def test_garage_wins_over_numbered_level(self):
        assert detect_level_from_text("Garage Level 1") == "Garage"

    def test_title_checked_before_page_text(self):
        assert detect_level_from_text("SECOND FLOOR PLAN", "BASEMENT storage") == "Level 2"

    def test_page_text_used_when_title_has_no_level(self):
        assert detect_level_from_text("Untitled Sheet", "THIRD FLOOR PLAN\nBEDROOM") == "Level 3"

    def test_only_page_header_is_scanned(self):
        page_text = "x" * 600 + " BASEMENT"
        assert detect_level_from_text("Sheet", page_text) == "Level 1"

    def test_default_level(self):
        assert detect_level_from_text("", None) == "Level 1"

    def test_always_canonical(self):
        for title in ["", "Plan", "Level 9", "Mezzanine", "2nd floor"]:
            assert detect_level_from_text(title) in CANONICAL_LEVELS

    @pytest.mark.parametrize("raw,expected", [
        ("Level 2", "Level 2"),
        ("Basement", "Basement"),
        ("2nd Floor", "Level 2"),
        ("level 3", "Level 3"),
        (None, "Level 1"),
        ("Unknown", "Level 1"),
    ])
    def test_canonicalize_level(self, raw, expected):
        assert canonicalize_level(raw) == expected


class TestSheetTitle:
    """Test sheet title heuristics."""

    def test_title_line_with_plan_keyword(self, floor_plan_text):
        assert extract_sheet_title(floor_plan_text) == "A2-01 SECOND FLOOR PLAN"

    def test_title_found_below_first_line(self):
        text = "SMITH RESIDENCE\n\nBASEMENT PLAN\nSTORAGE"
        assert extract_sheet_title(text) == "BASEMENT PLAN"

    def test_first_reasonable_line_as_fallback(self):
        assert extract_sheet_title("Project notes page\nmore") == "Project notes page"

    def test_untitled(self):
        assert extract_sheet_title("") == "Untitled Sheet"
        assert extract_sheet_title("abc") == "Untitled Sheet"


# =============================================================================
# NAME CLEANUP
# =============================================================================

class TestNameCleanup:
    """Test level suffix stripping and abbreviation expansion."""

    @pytest.mark.parametrize("raw,expected", [
        ("Office – Level 2", "Office"),
        ("Kitchen - Level 1", "Kitchen"),
        ("Storage - Basement", "Storage"),
        ("Kitchen", "Kitchen"),
    ])
    def test_strip_level_suffix(self, raw, expected):
        assert strip_level_suffix(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("MBR", "Master Bedroom"),
        ("mba", "Master Bathroom"),
        ("BR1", "Bedroom"),
        ("BA 2", "Bathroom"),
        ("WIC", "Walk-in Closet"),
        ("PWDR", "Powder Room"),
        ("MASTER BEDROOM", "Master Bedroom"),
        ("walk-in closet", "Walk-in Closet"),
        ("Bathroom 2", "Bathroom 2"),
    ])
    def test_clean_room_name(self, raw, expected):
        assert clean_room_name(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("Bathroom 1", "Bathroom"),
        ("Bedroom #3", "Bedroom"),
        ("BR2", "Bedroom"),
        ("Walk-in Closet", "Walk-in Closet"),
        ("Kitchen – Level 2", "Kitchen"),
    ])
    def test_extract_base_name(self, raw, expected):
        assert extract_base_name(raw) == expected


# =============================================================================
# DETERMINISTIC NAMING
# =============================================================================

class TestDeterministicNaming:
    """Test stable numbering of same-named rooms."""

    @pytest.mark.parametrize("count", [2, 3, 5])
    def test_duplicates_numbered_in_order(self, make_room, count):
        rooms = [make_room("Bathroom") for _ in range(count)]
        named = apply_deterministic_names(rooms, "Level 2")

        assert [r.name for r in named] == [f"Bathroom {i}" for i in range(1, count + 1)]
        assert len(named) == count

    def test_unique_name_kept(self, make_room):
        named = apply_deterministic_names([make_room("Kitchen")], "Level 1")
        assert [r.name for r in named] == ["Kitchen"]

    def test_abbreviations_counted_with_expansions(self, make_room):
        rooms = [make_room("BR1"), make_room("Kitchen"), make_room("BR2")]
        named = apply_deterministic_names(rooms, "Level 2")
        assert [r.name for r in named] == ["Bedroom 1", "Kitchen", "Bedroom 2"]

    def test_case_insensitive_counting(self, make_room):
        rooms = [make_room("bathroom"), make_room("BATHROOM")]
        named = apply_deterministic_names(rooms, "Level 1")
        assert [r.name for r in named] == ["Bathroom 1", "Bathroom 2"]

    def test_level_overwritten(self, make_room):
        rooms = [make_room("Kitchen", level="Level 1"), make_room("Den")]
        named = apply_deterministic_names(rooms, "Basement")
        assert all(r.level == "Basement" for r in named)

    def test_other_fields_preserved(self, make_room):
        room = make_room("Closet", confidence=77, notes="Shelving", area_sqft=20)
        named = apply_deterministic_names([room, make_room("Closet")], "Level 1")
        assert named[0].confidence == 77
        assert named[0].notes == "Shelving"
        assert named[0].area_sqft == 20

    def test_empty(self):
        assert apply_deterministic_names([], "Level 1") == []


class TestPostProcessRooms:
    """Test the full post-processing step."""

    def test_dimensions_filled(self, make_room):
        rooms = post_process_rooms([make_room("Bedroom", dimensions="12'-0\" x 11'-6\"")], "Level 2")
        assert rooms[0].length_ft == 12.0
        assert rooms[0].width_ft == 11.5

    def test_ai_dimensions_not_overridden(self, make_room):
        room = make_room("Bedroom", dimensions="12'-0\" x 11'-6\"", length_ft=13)
        processed = post_process_rooms([room], "Level 2")[0]
        assert processed.length_ft == 13
        assert processed.width_ft == 11.5

    def test_unparseable_dimensions_left_null(self, make_room):
        processed = post_process_rooms([make_room("Den", dimensions="varies")], "Level 1")[0]
        assert processed.length_ft is None
        assert processed.width_ft is None

    def test_count_preserved(self, make_room):
        rooms = [make_room(n) for n in ["Bath", "Bath", "Closet", "Closet", "Closet", "Kitchen"]]
        processed = post_process_rooms(rooms, "Level 1")
        assert len(processed) == 6
        assert len({r.name for r in processed}) == 6


# =============================================================================
# CROSS-SHEET DEDUPLICATION
# =============================================================================

class TestDeduplication:
    """Test merging rooms seen on overlapping sheets."""

    def test_higher_confidence_wins(self, make_room, make_sheet):
        results = [
            SheetRoomResult(sheet=make_sheet(2), rooms=[make_room("Bathroom 1", level="Level 2", confidence=60)]),
            SheetRoomResult(sheet=make_sheet(3), rooms=[make_room("Bathroom 1", level="Level 2", confidence=90)]),
        ]
        rooms = deduplicate_across_sheets(results)
        assert len(rooms) == 1
        assert rooms[0].confidence == 90

    def test_tie_keeps_first(self, make_room):
        first = make_room("Kitchen", level="Level 1", confidence=80, sheet_label="A1")
        second = make_room("Kitchen", level="Level 1", confidence=80, sheet_label="A2")
        rooms = merge_room_batches([[first], [second]])
        assert [r.sheet_label for r in rooms] == ["A1"]

    def test_first_position_kept(self, make_room):
        batch_1 = [make_room("Kitchen", level="Level 1"), make_room("Pantry", level="Level 1", confidence=40)]
        batch_2 = [make_room("Pantry", level="Level 1", confidence=95)]
        rooms = merge_room_batches([batch_1, batch_2])
        assert [r.name for r in rooms] == ["Kitchen", "Pantry"]
        assert rooms[1].confidence == 95

    def test_name_match_is_case_insensitive(self, make_room):
        rooms = merge_room_batches([
            [make_room("Den", level="Level 1")],
            [make_room("den ", level="Level 1")],
        ])
        assert len(rooms) == 1

    def test_different_levels_not_merged(self, make_room):
        rooms = merge_room_batches([
            [make_room("Bathroom 1", level="Level 1")],
            [make_room("Bathroom 1", level="Level 2")],
        ])
        assert len(rooms) == 2

    def test_same_sheet_collisions_never_merged(self, make_room, make_sheet):
        closets = [make_room("Closet", level="Level 1") for _ in range(3)]
        rooms = deduplicate_across_sheets([SheetRoomResult(sheet=make_sheet(), rooms=closets)])
        assert len(rooms) == 3

    def test_never_fewer_than_largest_sheet(self, make_room):
        batch_1 = [make_room("Closet", level="Level 1") for _ in range(3)]
        batch_2 = [make_room("Closet", level="Level 1") for _ in range(2)]
        rooms = merge_room_batches([batch_1, batch_2])
        assert len(rooms) == 3

    def test_empty(self):
        assert deduplicate_across_sheets([]) == []
