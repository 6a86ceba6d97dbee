from matchup_ai.data_loader import (
    TYPES, NUM_TYPES, STATUS_TO_IDX, _to_id, builtin_typechart, parse_moves, parse_pokedex,
)
from tests.conftest import MOVES, POKEDEX


def test_to_id_strips_punctuation_and_case():
    assert _to_id("Life Orb") == "lifeorb"
    assert _to_id("Soft-Boiled") == "softboiled"
    assert _to_id("Porygon2") == "porygon2"


def test_parse_pokedex_skips_placeholder_entries():
    dex = parse_pokedex(POKEDEX)
    assert "missingno" not in dex
    chomp = dex["garchomp"]
    assert chomp["types"] == ["Dragon", "Ground"]
    assert chomp["abilities"] == ["Sand Veil"]
    assert chomp["baseStats"]["atk"] == 130


def test_parse_moves_normalizes_category_flags():
    moves = parse_moves(MOVES)
    assert "hiddenmove" not in moves
    eq = moves["earthquake"]
    assert eq["is_physical"] and not eq["is_special"] and not eq["is_status"]
    assert moves["softboiled"]["is_status"]
    assert moves["softboiled"]["heal"] == [1, 2]
    assert moves["quickattack"]["priority"] == 1
    assert moves["dracometeor"]["self"] == {"boosts": {"spa": -2}}


def test_builtin_typechart_shape_and_entries():
    chart = builtin_typechart()
    assert tuple(chart.shape) == (NUM_TYPES, NUM_TYPES)
    ground = TYPES.index("Ground")
    assert chart[ground, TYPES.index("Flying")].item() == 0.0
    assert chart[ground, TYPES.index("Steel")].item() == 2.0
    assert chart[TYPES.index("Normal"), TYPES.index("Normal")].item() == 1.0


def test_effectiveness_multiplies_dual_types(gd):
    assert gd.effectiveness("Electric", ["Water", "Flying"]) == 4.0
    assert gd.effectiveness("Ground", ["Flying", "Steel"]) == 0.0
    assert gd.effectiveness("Dragon", ["Dragon", "Ground"]) == 2.0
    assert gd.effectiveness("Fire", ["Water", "Dragon"]) == 0.25


def test_lookup_by_display_name(gd):
    assert gd.get_pokemon("Garchomp")["name"] == "Garchomp"
    assert gd.get_move("Soft-Boiled")["id"] == "softboiled"
    assert gd.get_pokemon("Mewtwo") is None


def test_status_index_treats_empty_as_none():
    assert STATUS_TO_IDX[""] == STATUS_TO_IDX["none"] == 0
