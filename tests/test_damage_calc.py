from matchup_ai.damage_calc import DamageCalculator, N_ROLLS


def _side(poke, **extra):
    d = {"types": poke.types, "stats": poke.stats, "ability": poke.ability,
         "item": poke.item, "status": poke.status, "boosts": poke.boosts,
         "cur_hp": poke.cur_hp}
    d.update(extra)
    return d


def test_rolls_are_sorted_and_sixteen(gd, mon):
    dc = DamageCalculator(gd)
    chomp = mon("Garchomp", ["earthquake"])
    urchin = mon("Pincurchin", ["thunderbolt"])
    rolls = dc.calc_damage_rolls(_side(chomp), _side(urchin), gd.get_move("earthquake"))
    assert len(rolls) == N_ROLLS
    assert rolls == sorted(rolls)
    assert rolls[0] > 0


def test_type_immunity_returns_no_rolls(gd, mon):
    dc = DamageCalculator(gd)
    chomp = mon("Garchomp", ["earthquake"])
    corv = mon("Corviknight", ["bravebird"])
    assert dc.calc_damage_rolls(_side(chomp), _side(corv), gd.get_move("earthquake")) == []


def test_ability_immunity_returns_no_rolls(gd, mon):
    dc = DamageCalculator(gd)
    chomp = mon("Garchomp", ["earthquake"])
    floating = mon("Pincurchin", ["thunderbolt"], ability="Levitate")
    assert dc.calc_damage_rolls(_side(chomp), _side(floating), gd.get_move("earthquake")) == []


def test_status_moves_deal_nothing(gd, mon):
    dc = DamageCalculator(gd)
    chomp = mon("Garchomp", ["swordsdance"])
    blissey = mon("Blissey", ["softboiled"])
    assert dc.calc_damage_rolls(_side(chomp), _side(blissey), gd.get_move("swordsdance")) == []
    assert dc.calc_damage(_side(chomp), _side(blissey), gd.get_move("swordsdance")) == (0, 0, 0)


def test_attack_boost_raises_damage(gd, mon):
    dc = DamageCalculator(gd)
    chomp = mon("Garchomp", ["dragonclaw"])
    pult = mon("Dragapult", ["shadowball"])
    move = gd.get_move("dragonclaw")
    plain = dc.calc_damage(_side(chomp), _side(pult), move)
    boosted = dc.calc_damage(_side(chomp, boosts={"atk": 2}), _side(pult), move)
    assert boosted[2] > plain[2]


def test_rain_boosts_water(gd, mon):
    dc = DamageCalculator(gd)
    peli = mon("Pelipper", ["surf"])
    chomp = mon("Garchomp", ["earthquake"])
    move = gd.get_move("surf")
    dry = dc.calc_damage(_side(peli), _side(chomp), move)
    wet = dc.calc_damage(_side(peli), _side(chomp), move, weather="rain")
    assert wet[1] > dry[1]


def test_boost_multiplier_stages():
    assert DamageCalculator._boost_multiplier(0) == 1.0
    assert DamageCalculator._boost_multiplier(2) == 2.0
    assert DamageCalculator._boost_multiplier(-1) == 2.0 / 3.0
    assert DamageCalculator._boost_multiplier(9) == 4.0


def test_stats_from_spread_level_50():
    base = {"hp": 108, "atk": 130, "def": 95, "spa": 80, "spd": 85, "spe": 102}
    stats = DamageCalculator.calc_stats_from_spread(base, "Hardy", {})
    assert stats["hp"] == 183
    assert stats["atk"] == 150
    jolly = DamageCalculator.calc_stats_from_spread(base, "Jolly", {"spe": 252})
    assert jolly["spe"] > stats["spe"]
