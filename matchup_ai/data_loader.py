"""Showdown 데이터 로더 — pokedex / moves / 상성표, 그리고 아이템·특성·기술 효과 테이블.

파일은 matchup_ai/data/ 아래 Showdown 원본 그대로:
    pokedex.json, moves.json, typechart.js (없으면 내장 Gen 9 상성표)
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import torch

DATA_DIR = Path(__file__).parent / "data"

TYPES = [
    "Normal", "Fire", "Water", "Electric", "Grass", "Ice",
    "Fighting", "Poison", "Ground", "Flying", "Psychic", "Bug",
    "Rock", "Ghost", "Dragon", "Dark", "Steel", "Fairy",
]
TYPE_TO_IDX = {t: i for i, t in enumerate(TYPES)}
NUM_TYPES = len(TYPES)

STATUS = ["none", "brn", "par", "psn", "tox", "slp", "frz"]
STATUS_TO_IDX = {s: i for i, s in enumerate(STATUS)}
STATUS_TO_IDX[""] = 0

STAT_KEYS = ["hp", "atk", "def", "spa", "spd", "spe"]
BOOST_KEYS = STAT_KEYS[1:]

# 성격표: 행 = 올리는 스탯, 열 = 내리는 스탯 (atk, def, spe, spa, spd 순).  대각선은 무보정.
_NATURE_AXES = ["atk", "def", "spe", "spa", "spd"]
_NATURE_GRID = [
    ["Hardy",   "Lonely", "Brave",   "Adamant", "Naughty"],
    ["Bold",    "Docile", "Relaxed", "Impish",  "Lax"],
    ["Timid",   "Hasty",  "Serious", "Jolly",   "Naive"],
    ["Modest",  "Mild",   "Quiet",   "Bashful", "Rash"],
    ["Calm",    "Gentle", "Sassy",   "Careful", "Quirky"],
]
NATURES: dict[str, tuple[str | None, str | None]] = {
    name: ((up, down) if up != down else (None, None))
    for up, row in zip(_NATURE_AXES, _NATURE_GRID)
    for down, name in zip(_NATURE_AXES, row)
}


def _to_id(name: str) -> str:
    """'Soft-Boiled' → 'softboiled'."""
    return re.sub(r"[^a-z0-9]", "", name.lower())


# ═══════════════════════════════════════════════════════════════
#  Pokédex / Moves
# ═══════════════════════════════════════════════════════════════

_DEX_SKIP = {"Future", "LGPE", "CAP", "Custom"}
_MOVE_SKIP = {"Past", "Future", "LGPE", "CAP"}


def _playable(info: dict, skip: set[str]) -> bool:
    return info.get("isNonstandard") not in skip and info.get("num", 0) > 0


def parse_pokedex(raw: dict[str, Any]) -> dict[str, dict]:
    """{id: {name, num, types, baseStats, abilities}}.  num ≤ 0 (더미)와 비표준은 제외."""
    dex = {}
    for key, info in raw.items():
        if not _playable(info, _DEX_SKIP):
            continue
        abilities = info.get("abilities", {})
        stats = info.get("baseStats", {})
        dex[_to_id(key)] = {
            "name": info.get("name", key),
            "num": info["num"],
            "types": list(info.get("types", [])),
            "baseStats": {k: stats.get(k, 0) for k in STAT_KEYS},
            "abilities": list(abilities.values() if isinstance(abilities, dict) else abilities),
        }
    return dex


# Showdown 필드 → 기본값 (그대로 복사)
_MOVE_FIELDS = {
    "basePower": 0, "type": "Normal", "accuracy": 100, "pp": 5, "priority": 0,
    "flags": {}, "target": "normal", "critRatio": 1,
    "drain": None, "recoil": None, "secondary": None, "multihit": None,
    "status": None, "volatileStatus": None, "boosts": None,
    "self": None,       # self.boosts: 용성군 등 자기 랭크 변화
    "heal": None,       # [1, 2] → 최대 HP 50%
}


def parse_moves(raw: dict[str, Any]) -> dict[str, dict]:
    """{id: 기술 정보}.  category에서 is_physical / is_special / is_status 파생."""
    moves = {}
    for key, info in raw.items():
        if not _playable(info, _MOVE_SKIP):
            continue
        move_id = _to_id(key)
        category = info.get("category", "Status")
        entry = {k: info.get(k, default) for k, default in _MOVE_FIELDS.items()}
        entry.update(
            id=move_id, name=info.get("name", key), num=info["num"],
            category=category,
            is_physical=category == "Physical",
            is_special=category == "Special",
            is_status=category == "Status",
        )
        moves[move_id] = entry
    return moves


def _read_json(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_pokedex(path: Path | None = None) -> dict[str, dict]:
    return parse_pokedex(_read_json(path or DATA_DIR / "pokedex.json"))


def load_moves(path: Path | None = None) -> dict[str, dict]:
    return parse_moves(_read_json(path or DATA_DIR / "moves.json"))


# ═══════════════════════════════════════════════════════════════
#  상성표 (18 × 18, chart[공격 타입, 방어 타입])
# ═══════════════════════════════════════════════════════════════

# 공격 타입 → (효과굉장, 효과별로, 무효)
_TYPE_MATCHUPS: dict[str, tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]]] = {
    "Normal":   ((), ("Rock", "Steel"), ("Ghost",)),
    "Fire":     (("Grass", "Ice", "Bug", "Steel"), ("Fire", "Water", "Rock", "Dragon"), ()),
    "Water":    (("Fire", "Ground", "Rock"), ("Water", "Grass", "Dragon"), ()),
    "Electric": (("Water", "Flying"), ("Electric", "Grass", "Dragon"), ("Ground",)),
    "Grass":    (("Water", "Ground", "Rock"),
                 ("Fire", "Grass", "Poison", "Flying", "Bug", "Dragon", "Steel"), ()),
    "Ice":      (("Grass", "Ground", "Flying", "Dragon"), ("Fire", "Water", "Ice", "Steel"), ()),
    "Fighting": (("Normal", "Ice", "Rock", "Dark", "Steel"),
                 ("Poison", "Flying", "Psychic", "Bug", "Fairy"), ("Ghost",)),
    "Poison":   (("Grass", "Fairy"), ("Poison", "Ground", "Rock", "Ghost"), ("Steel",)),
    "Ground":   (("Fire", "Electric", "Poison", "Rock", "Steel"), ("Grass", "Bug"), ("Flying",)),
    "Flying":   (("Grass", "Fighting", "Bug"), ("Electric", "Rock", "Steel"), ()),
    "Psychic":  (("Fighting", "Poison"), ("Psychic", "Steel"), ("Dark",)),
    "Bug":      (("Grass", "Psychic", "Dark"),
                 ("Fire", "Fighting", "Poison", "Flying", "Ghost", "Steel", "Fairy"), ()),
    "Rock":     (("Fire", "Ice", "Flying", "Bug"), ("Fighting", "Ground", "Steel"), ()),
    "Ghost":    (("Psychic", "Ghost"), ("Dark",), ("Normal",)),
    "Dragon":   (("Dragon",), ("Steel",), ("Fairy",)),
    "Dark":     (("Psychic", "Ghost"), ("Fighting", "Dark", "Fairy"), ()),
    "Steel":    (("Ice", "Rock", "Fairy"), ("Fire", "Water", "Electric", "Steel"), ()),
    "Fairy":    (("Fighting", "Dragon", "Dark"), ("Fire", "Poison", "Steel"), ()),
}


def builtin_typechart() -> torch.Tensor:
    chart = torch.ones(NUM_TYPES, NUM_TYPES)
    for atk, groups in _TYPE_MATCHUPS.items():
        for mult, defenders in zip((2.0, 0.5, 0.0), groups):
            for d in defenders:
                chart[TYPE_TO_IDX[atk], TYPE_TO_IDX[d]] = mult
    return chart


# damageTaken 코드 → 배율
_DAMAGE_TAKEN = {0: 1.0, 1: 2.0, 2: 0.5, 3: 0.0}


def load_typechart(path: Path | None = None) -> torch.Tensor:
    """Showdown typechart.js (exports.BattleTypeChart = {...};) → 상성표."""
    text = (path or DATA_DIR / "typechart.js").read_text(encoding="utf-8").strip()
    body = text[text.index("{"):].rstrip(";")
    data = json.loads(re.sub(r"(\w+)\s*:", r'"\1":', body))

    by_lower = {t.lower(): t for t in TYPES}
    chart = torch.ones(NUM_TYPES, NUM_TYPES)
    for def_name, info in data.items():
        def_type = by_lower.get(def_name.lower())
        if def_type is None:
            continue
        for atk_type, code in info.get("damageTaken", {}).items():
            if atk_type in TYPE_TO_IDX:
                chart[TYPE_TO_IDX[atk_type], TYPE_TO_IDX[def_type]] = _DAMAGE_TAKEN.get(code, 1.0)
    return chart


# ═══════════════════════════════════════════════════════════════
#  아이템 / 특성 효과
# ═══════════════════════════════════════════════════════════════

ITEM_EFFECTS: dict[str, dict] = {
    # 화력
    "lifeorb":     {"damage_mod": 1.3, "recoil_pct": 0.1},
    "choiceband":  {"damage_mod": 1.5, "choice_lock": True, "stat": "atk"},
    "choicespecs": {"damage_mod": 1.5, "choice_lock": True, "stat": "spa"},
    "choicescarf": {"speed_mod": 1.5, "choice_lock": True},
    "expertbelt":  {"super_eff_mod": 1.2},
    # 내구
    "assaultvest": {"spd_mod": 1.5},
    "eviolite":    {"def_mod": 1.5, "spd_mod": 1.5},
    "focussash":   {"sash": True},
    "airballoon":  {"levitate": True},
    "rockyhelmet": {"contact_damage_pct": 1/6},
    # 턴 종료 회복 (검은진흙은 독 타입만)
    "leftovers":   {"end_turn_heal_pct": 1/16},
    "blacksludge": {"end_turn_heal_pct": 1/16, "poison_only": True},
}

# 타입 강화 아이템 (1.2배)
_TYPE_BOOST_ITEMS: dict[str, tuple[str, float]] = {
    item: (type_, 1.2) for item, type_ in {
        "silkscarf": "Normal", "charcoal": "Fire", "mysticwater": "Water",
        "magnet": "Electric", "miracleseed": "Grass", "nevermeltice": "Ice",
        "blackbelt": "Fighting", "poisonbarb": "Poison", "softsand": "Ground",
        "sharpbeak": "Flying", "twistedspoon": "Psychic", "silverpowder": "Bug",
        "hardstone": "Rock", "spelltag": "Ghost", "dragonfang": "Dragon",
        "blackglasses": "Dark", "metalcoat": "Steel", "fairyfeather": "Fairy",
    }.items()
}

ABILITY_EFFECTS: dict[str, dict] = {
    "adaptability": {"stab_mod": 2.0},
    "hugepower":    {"atk_mod": 2.0},
    "purepower":    {"atk_mod": 2.0},
    "guts":         {"atk_mod_if_status": 1.5, "ignore_burn": True},
    "technician":   {"low_bp_mod": 1.5, "bp_threshold": 60},
    "sheerforce":   {"secondary_mod": 1.3},
    "ironfist":     {"punch_mod": 1.2},
    "strongjaw":    {"bite_mod": 1.5},
    "toughclaws":   {"contact_mod": 1.3},
    "multiscale":   {"full_hp_damage_mod": 0.5},
    "shadowshield": {"full_hp_damage_mod": 0.5},
    "thickfat":     {"fire_resist": 0.5, "ice_resist": 0.5},
    "heatproof":    {"fire_resist": 0.5},
    "icescales":    {"special_damage_mod": 0.5},
    "filter":       {"super_eff_mod": 0.75},
    "solidrock":    {"super_eff_mod": 0.75},
    "prismarmor":   {"super_eff_mod": 0.75},
    "sturdy":       {"sash_like": True},
    "magicguard":   {"indirect_immune": True},
    "regenerator":  {"switch_heal": 1/3},
    "noguard":      {"always_hit": True},
    "intimidate":   {"on_switch_atk_drop": 1},
}

# 타입 흡수 / 무효 특성
for _ability, _type in {
    "levitate": "Ground", "eartheater": "Ground",
    "flashfire": "Fire", "wellbakedbody": "Fire",
    "voltabsorb": "Electric", "lightningrod": "Electric", "motordrive": "Electric",
    "waterabsorb": "Water", "stormdrain": "Water", "dryskin": "Water",
    "sapsipper": "Grass",
}.items():
    ABILITY_EFFECTS[_ability] = {"immune_type": _type}

# 등장 시 날씨 / 필드
for _ability, _weather in {"drought": "sun", "orichalcumpulse": "sun", "drizzle": "rain",
                           "sandstream": "sand", "snowwarning": "snow"}.items():
    ABILITY_EFFECTS[_ability] = {"set_weather": _weather}
for _ability, _terrain in {"electricsurge": "electric", "hadronengine": "electric",
                           "grassysurge": "grassy", "mistysurge": "misty",
                           "psychicsurge": "psychic"}.items():
    ABILITY_EFFECTS[_ability] = {"set_terrain": _terrain}

# 날씨 / 필드 스피드 2배
for _ability, _weather in {"swiftswim": "rain", "chlorophyll": "sun",
                           "sandrush": "sand", "slushrush": "snow"}.items():
    ABILITY_EFFECTS[_ability] = {"speed_weather": _weather, "speed_mul": 2.0}
ABILITY_EFFECTS["surgesurfer"] = {"speed_terrain": "electric", "speed_mul": 2.0}


# ═══════════════════════════════════════════════════════════════
#  매치업 분석용 기술 테이블
# ═══════════════════════════════════════════════════════════════

# 회복기 → 최대 HP 대비 회복량
RECOVERY_MOVES: dict[str, float] = {
    **dict.fromkeys(("recover", "roost", "moonlight", "morningsun", "synthesis",
                     "slackoff", "milkdrink", "softboiled", "wish", "healorder",
                     "shoreup"), 0.5),
    "junglehealing": 0.25,
    "rest": 1.0,
}

# 매 턴 1/16 회복 (volatile로 남음)
PASSIVE_RECOVERY_MOVES: dict[str, float] = {"aquaring": 1/16, "ingrain": 1/16}

# 흡수기: 회복 수단으로 집계 (회복량은 준 데미지에 비례)
DRAIN_MOVES = {
    "drainpunch", "gigadrain", "hornleech", "drainingkiss",
    "oblivionwing", "paraboliccharge", "leechlife", "bitterblade",
}

LEECH_SEED = "leechseed"
LEECH_SEED_PCT = 1/8

# 바인드류 → 매 턴 상대 최대 HP 대비 데미지
TRAPPING_MOVES: dict[str, float] = dict.fromkeys(
    ("infestation", "magmastorm", "firespin", "whirlpool", "sandtomb"), 1/8)

# 랭크업 기술 → 1회 사용 시 랭크 변화
SETUP_MOVES: dict[str, dict[str, int]] = {
    "swordsdance": {"atk": 2},
    "nastyplot":   {"spa": 2},
    "tailglow":    {"spa": 2},
    "dragondance": {"atk": 1, "spe": 1},
    "calmmind":    {"spa": 1, "spd": 1},
    "bulkup":      {"atk": 1, "def": 1},
    "coil":        {"atk": 1, "def": 1},
    "quiverdance": {"spa": 1, "spd": 1, "spe": 1},
    "shellsmash":  {"atk": 2, "spa": 2, "spe": 2, "def": -1, "spd": -1},
}

# 자기 랭크 하락 공격기 → 다음 발의 화력 비율 (-2 = 0.5, -1 = 0.67)
STAT_DROP_MOVES: dict[str, float] = {
    **dict.fromkeys(("dracometeor", "leafstorm", "overheat", "psychoboost",
                     "fleurcannon"), 0.5),
    **dict.fromkeys(("superpower", "makeitrain", "hammerarm"), 0.67),
}

WEATHER_MOVES: dict[str, str] = {
    "sunnyday": "sun", "raindance": "rain", "sandstorm": "sand",
    "snowscape": "snow", "chillyreception": "snow",
}

TERRAIN_MOVES: dict[str, str] = {
    f"{terrain}terrain": terrain for terrain in ("electric", "grassy", "misty", "psychic")
}

TRICK_ROOM = "trickroom"


# ═══════════════════════════════════════════════════════════════
#  GameData
# ═══════════════════════════════════════════════════════════════

class GameData:
    """도감 / 기술 / 상성표 묶음.

    pokedex와 moves를 둘 다 넘기면 파일 없이 같은 파서로 정규화하고,
    아니면 data_dir (기본 DATA_DIR)의 Showdown 파일을 읽는다.
    typechart.js가 없으면 내장 상성표.
    """

    def __init__(self, device: str = "cpu", data_dir: Path | None = None,
                 pokedex: dict[str, Any] | None = None,
                 moves: dict[str, Any] | None = None,
                 type_chart: torch.Tensor | None = None):
        self.device = torch.device(device if torch.cuda.is_available() else "cpu")
        in_memory = pokedex is not None and moves is not None
        root = Path(data_dir) if data_dir is not None else (None if in_memory else DATA_DIR)

        self.pokedex = parse_pokedex(pokedex) if pokedex is not None \
            else load_pokedex(root / "pokedex.json")
        self.moves = parse_moves(moves) if moves is not None \
            else load_moves(root / "moves.json")

        if type_chart is None:
            chart_file = root / "typechart.js" if root is not None else None
            type_chart = load_typechart(chart_file) if chart_file and chart_file.exists() \
                else builtin_typechart()
        self.type_chart = type_chart.to(self.device)

    def get_pokemon(self, name: str) -> dict | None:
        return self.pokedex.get(_to_id(name))

    def get_move(self, name: str) -> dict | None:
        return self.moves.get(_to_id(name))

    def effectiveness(self, atk_type: str, def_types: list[str]) -> float:
        """복합 타입 상성 배율 (곱)."""
        row = self.type_chart[TYPE_TO_IDX.get(atk_type, 0)]
        eff = 1.0
        for t in def_types:
            eff *= float(row[TYPE_TO_IDX.get(t, 0)])
        return eff


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    print("=== Data Loader 검증 ===\n")

    gd = GameData(device="cpu")
    print(f"도감 {len(gd.pokedex)}종 / 기술 {len(gd.moves)}개")
    print(f"상성표 {tuple(gd.type_chart.shape)}, "
          f"내장 표와 다른 칸: {int((builtin_typechart().to(gd.device) != gd.type_chart).sum())}")

    for atk, defs in (("Electric", ["Water", "Flying"]), ("Ground", ["Flying", "Steel"]),
                      ("Fire", ["Water", "Dragon"])):
        print(f"  {atk} → {'/'.join(defs)}: {gd.effectiveness(atk, defs)}×")

    print(f"  성격 {len(NATURES)}개, 무보정 {sum(1 for v in NATURES.values() if v[0] is None)}개")
    print(f"  회복기 {len(RECOVERY_MOVES)}, 랭크업 {len(SETUP_MOVES)}, 바인드 {len(TRAPPING_MOVES)}")

    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
