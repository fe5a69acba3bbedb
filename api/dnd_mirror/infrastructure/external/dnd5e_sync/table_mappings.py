"""
Mapeos API D&D 5e -> tablas locales, uno por recurso.

Este es el punto para tener control total sobre:
- qué columnas existen en cada tabla (alineadas con models.py)
- cómo se transforman los valores del documento de detalle
- cómo se descomponen las colecciones anidadas en tablas hijas

Reglas generales:
- `index` y `name` son requeridos (no-null) salvo donde el esquema los admite null.
- Sub-objetos/arrays -> texto JSON (`to_json`).
- Arrays de párrafos `desc` -> un solo texto separado por línea en blanco.
"""

from __future__ import annotations

from typing import Any

from .api_client import Dnd5eApiClient
from .sync_config import ChildTableDescriptor, Extractor, ResourceDescriptor
from .types import DetailBundle, FlatRecord, indexes_of, join_paragraphs, optional, required, to_json


def _base(d: dict[str, Any], *, name_required: bool = True) -> FlatRecord:
    return {
        "index": required(d, "index"),
        "name": required(d, "name") if name_required else optional(d, "name"),
    }


def _refs(field: str, column: str) -> Extractor:
    """Extractor para listas de referencias {index, name, url} -> una columna."""

    def extract(bundle: DetailBundle) -> list[FlatRecord]:
        return [{column: idx} for idx in indexes_of(bundle.detail.get(field))]

    return extract


def _option_strings(d: dict[str, Any], field: str) -> list[Any]:
    # personality_traits/bonds/flaws usan `string`; ideals usa `desc`
    options = optional(d, field, "from", "options", default=[])
    return [o.get("string", o.get("desc")) for o in options if isinstance(o, dict)]


# ---------------------------------------------------------------------------
# Recursos simples (camino genérico)
# ---------------------------------------------------------------------------

def map_ability_score(d: dict[str, Any]) -> FlatRecord:
    return {**_base(d), "description": join_paragraphs(d.get("desc"))}


def map_skill(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "description": join_paragraphs(d.get("desc")),
        "ability_score": optional(d, "ability_score", "name"),
    }


def map_language(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "type": d.get("type"),
        "typical_speakers": to_json(d.get("typical_speakers")),
        "script": d.get("script"),
    }


def map_alignment(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "abbreviation": required(d, "abbreviation"),
        "description": join_paragraphs(d.get("desc")),
    }


def map_rule_section(d: dict[str, Any]) -> FlatRecord:
    return {**_base(d), "description": join_paragraphs(d.get("desc"))}


def map_rule(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "description": join_paragraphs(d.get("desc")),
        "rule_section_index": optional(d, "rule_section", "index"),
    }


def map_subrace(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "race_index": optional(d, "race", "index"),
        "description": join_paragraphs(d.get("desc")),
        "ability_bonuses": to_json(d.get("ability_bonuses")),
    }


def map_magic_school(d: dict[str, Any]) -> FlatRecord:
    return {**_base(d, name_required=False), "description": join_paragraphs(d.get("desc"))}


def map_feature(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "class": optional(d, "class", "name"),
        "subclass": optional(d, "subclass", "name"),
        "level": d.get("level"),
        "description": join_paragraphs(d.get("desc")),
    }


def map_equipment_category(d: dict[str, Any]) -> FlatRecord:
    return _base(d)


def map_described(d: dict[str, Any]) -> FlatRecord:
    """damage-types, conditions, weapon-properties: solo nombre y descripción."""
    return {**_base(d), "description": join_paragraphs(d.get("desc"))}


def map_equipment(d: dict[str, Any]) -> FlatRecord:
    cost = d.get("cost")
    capacity = d.get("capacity")
    return {
        **_base(d),
        "equipment_category_index": optional(d, "equipment_category", "index"),
        "gear_category": optional(d, "gear_category", "name"),
        "cost": f"{cost.get('quantity')} {cost.get('unit')}" if isinstance(cost, dict) else None,
        "weight": d.get("weight"),
        "description": join_paragraphs(d.get("desc")),
        "weapon_category": d.get("weapon_category"),
        "weapon_range": d.get("weapon_range"),
        "category_range": d.get("category_range"),
        "damage": to_json(d.get("damage")),
        "two_handed_damage": to_json(d.get("two_handed_damage")),
        "range_info": to_json(d.get("range")),
        "properties": to_json(indexes_of(d.get("properties"), "name")),
        "armor_category": d.get("armor_category"),
        "armor_class": to_json(d.get("armor_class")),
        "str_minimum": d.get("str_minimum"),
        "stealth_disadvantage": d.get("stealth_disadvantage"),
        "contents": to_json(d.get("contents")),
        "speed_info": to_json(d.get("speed")),
        "capacity": capacity if capacity is None or isinstance(capacity, str) else to_json(capacity),
    }


def map_magic_item(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "equipment_category_index": optional(d, "equipment_category", "index"),
        "rarity_name": optional(d, "rarity", "name"),
        "description": join_paragraphs(d.get("desc")),
    }


def map_background(d: dict[str, Any]) -> FlatRecord:
    starting_equipment = [
        {"name": optional(e, "equipment", "name"), "quantity": e.get("quantity")}
        for e in d.get("starting_equipment") or []
    ]
    return {
        **_base(d),
        "starting_proficiencies": to_json(indexes_of(d.get("starting_proficiencies"), "name")),
        "language_options": to_json(d.get("language_options")),
        "starting_equipment": to_json(starting_equipment),
        "feature_name": optional(d, "feature", "name"),
        "feature_desc": join_paragraphs(optional(d, "feature", "desc")),
        "personality_traits": to_json(_option_strings(d, "personality_traits")),
        "ideals": to_json(_option_strings(d, "ideals")),
        "bonds": to_json(_option_strings(d, "bonds")),
        "flaws": to_json(_option_strings(d, "flaws")),
    }


def map_feat(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "prerequisites": to_json(d.get("prerequisites")),
        "description": join_paragraphs(d.get("desc")),
    }


# ---------------------------------------------------------------------------
# Recursos con tablas hijas (camino enriquecido)
# ---------------------------------------------------------------------------

def map_class(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "hit_die": d.get("hit_die"),
        "saving_throws": to_json(indexes_of(d.get("saving_throws"), "name")),
        "multi_classing": to_json(d.get("multi_classing")),
        "spellcasting": to_json(d.get("spellcasting")),
    }


async def enrich_class(client: Dnd5eApiClient, d: dict[str, Any]) -> dict[str, Any]:
    """Descarga la tabla de niveles y la lista de conjuros referenciadas por URL."""
    levels = await client.fetch_list(d["class_levels"]) if d.get("class_levels") else []
    spells: list[Any] = []
    if d.get("spells"):
        payload = await client.fetch_detail(d["spells"])
        spells = payload.get("results") or []
    return {"levels": levels, "spells": spells}


def extract_class_levels(bundle: DetailBundle) -> list[FlatRecord]:
    return [
        {
            "level": lvl.get("level"),
            "ability_score_bonuses": lvl.get("ability_score_bonuses"),
            "prof_bonus": lvl.get("prof_bonus"),
            "features": to_json(indexes_of(lvl.get("features"), "name")),
            "class_specific": to_json(lvl.get("class_specific")),
        }
        for lvl in bundle.extras.get("levels", [])
    ]


def extract_class_spells(bundle: DetailBundle) -> list[FlatRecord]:
    return [
        {"spell_index": spell.get("index"), "level_acquired": spell.get("level")}
        for spell in bundle.extras.get("spells", [])
    ]


def extract_class_proficiency_choices(bundle: DetailBundle) -> list[FlatRecord]:
    rows = []
    for i, choice in enumerate(bundle.detail.get("proficiency_choices") or []):
        options = optional(choice, "from", "options", default=[])
        rows.append({
            "choice_index": i,
            "description": choice.get("desc"),
            "choose": choice.get("choose"),
            "type": choice.get("type"),
            "options": to_json([idx for idx in (optional(o, "item", "index") for o in options) if idx]),
        })
    return rows


def extract_class_starting_equipment(bundle: DetailBundle) -> list[FlatRecord]:
    return [
        {"equipment_index": optional(item, "equipment", "index"), "quantity": item.get("quantity")}
        for item in bundle.detail.get("starting_equipment") or []
        if optional(item, "equipment", "index")
    ]


def extract_class_starting_equipment_options(bundle: DetailBundle) -> list[FlatRecord]:
    return [
        {
            "choice_index": i,
            "description": choice.get("desc"),
            "choose": choice.get("choose"),
            "options": to_json(optional(choice, "from", "options")),
        }
        for i, choice in enumerate(bundle.detail.get("starting_equipment_options") or [])
    ]


def map_monster(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "size": d.get("size"),
        "type": d.get("type"),
        "subtype": d.get("subtype") or None,
        "alignment": d.get("alignment"),
        "armor_class": to_json(d.get("armor_class")),
        "hit_points": d.get("hit_points"),
        "hit_dice": d.get("hit_dice"),
        "speed": to_json(d.get("speed")),
        "strength": d.get("strength"),
        "dexterity": d.get("dexterity"),
        "constitution": d.get("constitution"),
        "intelligence": d.get("intelligence"),
        "wisdom": d.get("wisdom"),
        "charisma": d.get("charisma"),
        "damage_vulnerabilities": to_json(d.get("damage_vulnerabilities")),
        "damage_resistances": to_json(d.get("damage_resistances")),
        "damage_immunities": to_json(d.get("damage_immunities")),
        "senses": to_json(d.get("senses")),
        "languages": d.get("languages"),
        "challenge_rating": d.get("challenge_rating"),
        "xp": d.get("xp"),
        "special_abilities": to_json(d.get("special_abilities")),
        "actions": to_json(d.get("actions")),
        "legendary_actions": to_json(d.get("legendary_actions")),
    }


def extract_monster_proficiencies(bundle: DetailBundle) -> list[FlatRecord]:
    return [
        {"proficiency_index": optional(p, "proficiency", "index"), "value": p.get("value")}
        for p in bundle.detail.get("proficiencies") or []
    ]


def map_proficiency(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d, name_required=False),
        "type": d.get("type"),
        "reference_index": optional(d, "reference", "index"),
    }


def map_race(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "speed": d.get("speed"),
        "ability_bonuses": to_json(d.get("ability_bonuses")),
        "alignment": d.get("alignment"),
        "age": d.get("age"),
        "size": d.get("size"),
        "size_description": d.get("size_description"),
        "language_desc": d.get("language_desc"),
    }


def map_spell(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "description": join_paragraphs(d.get("desc")),
        "higher_level": join_paragraphs(d.get("higher_level")) or None,
        "spell_range": d.get("range"),
        "components": to_json(d.get("components")),
        "material": d.get("material") or None,
        "ritual": d.get("ritual"),
        "duration": d.get("duration"),
        "concentration": d.get("concentration"),
        "casting_time": d.get("casting_time"),
        "spell_level": d.get("level"),
        "school_index": optional(d, "school", "index"),
        "damage": to_json(d.get("damage")),
    }


def map_subclass(d: dict[str, Any]) -> FlatRecord:
    return {
        **_base(d),
        "class_index": optional(d, "class", "index"),
        "subclass_flavor": d.get("subclass_flavor"),
        "description": join_paragraphs(d.get("desc")),
    }


async def enrich_subclass(client: Dnd5eApiClient, d: dict[str, Any]) -> dict[str, Any]:
    levels = await client.fetch_list(d["subclass_levels"]) if d.get("subclass_levels") else []
    return {"levels": levels}


def extract_subclass_levels(bundle: DetailBundle) -> list[FlatRecord]:
    return [
        {"level": lvl.get("level"), "features": to_json(indexes_of(lvl.get("features")))}
        for lvl in bundle.extras.get("levels", [])
    ]


def extract_subclass_spells(bundle: DetailBundle) -> list[FlatRecord]:
    return [
        {
            "spell_index": optional(s, "spell", "index"),
            "prerequisites": to_json(indexes_of(s.get("prerequisites"))),
        }
        for s in bundle.detail.get("spells") or []
    ]


def map_trait(d: dict[str, Any]) -> FlatRecord:
    return {**_base(d), "description": join_paragraphs(d.get("desc"))}


# ---------------------------------------------------------------------------
# Catálogo de recursos (orden = orden de dependencias del panel de control)
# ---------------------------------------------------------------------------

RESOURCES: tuple[ResourceDescriptor, ...] = (
    ResourceDescriptor("ability-scores", "ability_scores", map_ability_score),
    ResourceDescriptor("skills", "skills", map_skill),
    ResourceDescriptor("languages", "languages", map_language),
    ResourceDescriptor("alignments", "alignments", map_alignment),
    ResourceDescriptor("conditions", "conditions", map_described),
    ResourceDescriptor("damage-types", "damage_types", map_described),
    ResourceDescriptor("magic-schools", "magic_schools", map_magic_school),
    ResourceDescriptor("weapon-properties", "weapon_properties", map_described),
    ResourceDescriptor("equipment-categories", "equipment_categories", map_equipment_category),
    ResourceDescriptor("rule-sections", "rule_sections", map_rule_section),
    ResourceDescriptor("rules", "rules", map_rule),
    ResourceDescriptor(
        "proficiencies", "proficiencies", map_proficiency,
        label="Proficiencies",
        children=(
            ChildTableDescriptor("proficiency_classes", "proficiency_index", _refs("classes", "class_index"), ("class_index",)),
            ChildTableDescriptor("proficiency_races", "proficiency_index", _refs("races", "race_index"), ("race_index",)),
        ),
    ),
    ResourceDescriptor(
        "traits", "traits", map_trait,
        label="Traits",
        children=(
            ChildTableDescriptor("trait_races", "trait_index", _refs("races", "race_index"), ("race_index",)),
            ChildTableDescriptor("trait_subraces", "trait_index", _refs("subraces", "subrace_index"), ("subrace_index",)),
            ChildTableDescriptor("trait_proficiencies", "trait_index", _refs("proficiencies", "proficiency_index"), ("proficiency_index",)),
        ),
    ),
    ResourceDescriptor(
        "races", "races", map_race,
        label="Races",
        children=(
            ChildTableDescriptor("race_proficiencies", "race_index", _refs("starting_proficiencies", "proficiency_index"), ("proficiency_index",)),
            ChildTableDescriptor("race_languages", "race_index", _refs("languages", "language_index"), ("language_index",)),
            ChildTableDescriptor("race_traits", "race_index", _refs("traits", "trait_index"), ("trait_index",)),
        ),
    ),
    ResourceDescriptor("subraces", "subraces", map_subrace),
    ResourceDescriptor(
        "classes", "classes", map_class,
        label="Classes",
        enrich=enrich_class,
        children=(
            ChildTableDescriptor("class_levels", "class_index", extract_class_levels, ("level",)),
            ChildTableDescriptor("class_spells", "class_index", extract_class_spells, ("spell_index",)),
            ChildTableDescriptor("class_proficiency_choices", "class_index", extract_class_proficiency_choices),
            ChildTableDescriptor("class_starting_equipment", "class_index", extract_class_starting_equipment),
            ChildTableDescriptor("class_starting_equipment_options", "class_index", extract_class_starting_equipment_options),
        ),
    ),
    ResourceDescriptor(
        "subclasses", "subclasses", map_subclass,
        label="Subclasses",
        enrich=enrich_subclass,
        children=(
            ChildTableDescriptor("subclass_levels", "subclass_index", extract_subclass_levels, ("level",)),
            ChildTableDescriptor("subclass_spells", "subclass_index", extract_subclass_spells, ("spell_index",)),
        ),
    ),
    ResourceDescriptor("features", "features", map_feature),
    ResourceDescriptor(
        "spells", "spells", map_spell,
        label="Spells",
        children=(
            ChildTableDescriptor("spell_classes", "spell_index", _refs("classes", "class_index"), ("class_index",)),
            ChildTableDescriptor("spell_subclasses", "spell_index", _refs("subclasses", "subclass_index"), ("subclass_index",)),
        ),
    ),
    ResourceDescriptor("backgrounds", "backgrounds", map_background),
    ResourceDescriptor("feats", "feats", map_feat),
    ResourceDescriptor("equipment", "equipment", map_equipment),
    ResourceDescriptor("magic-items", "magic_items", map_magic_item),
    ResourceDescriptor(
        "monsters", "monsters", map_monster,
        label="Monsters",
        children=(
            ChildTableDescriptor("monster_proficiencies", "monster_index", extract_monster_proficiencies, ("proficiency_index",)),
            ChildTableDescriptor("monster_condition_immunities", "monster_index", _refs("condition_immunities", "condition_index"), ("condition_index",)),
        ),
    ),
)
