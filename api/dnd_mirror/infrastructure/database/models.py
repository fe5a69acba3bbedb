"""
Modelos de base de datos (ORM) del espejo D&D 5e.

Una tabla padre por recurso (clave natural `index`, única) y tablas hijas
`<padre>_<relacion>` con clave única compuesta (clave del padre, clave hija).
Los sub-objetos estructurados se guardan como texto JSON (esquema no
normalizado a propósito para esos blobs).
"""
from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from dnd_mirror.infrastructure.database.session import Base


class ReferenceMixin:
    """Columnas comunes a toda tabla padre."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    index = Column(String(100), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    last_updated = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


# ---------------------------------------------------------------------------
# Reglas y mecánicas base
# ---------------------------------------------------------------------------

class AbilityScoreModel(ReferenceMixin, Base):
    __tablename__ = "ability_scores"

    description = Column(Text, nullable=True)


class SkillModel(ReferenceMixin, Base):
    __tablename__ = "skills"

    description = Column(Text, nullable=True)
    ability_score = Column(String(50), nullable=True)


class LanguageModel(ReferenceMixin, Base):
    __tablename__ = "languages"

    type = Column(String(50), nullable=True)
    typical_speakers = Column(Text, nullable=True)
    script = Column(String(50), nullable=True)


class AlignmentModel(ReferenceMixin, Base):
    __tablename__ = "alignments"

    abbreviation = Column(String(10), nullable=False)
    description = Column(Text, nullable=True)


class RuleSectionModel(ReferenceMixin, Base):
    __tablename__ = "rule_sections"

    description = Column(Text, nullable=True)


class RuleModel(ReferenceMixin, Base):
    __tablename__ = "rules"

    description = Column(Text, nullable=True)
    rule_section_index = Column(String(100), nullable=True)


# ---------------------------------------------------------------------------
# Construcción de personaje
# ---------------------------------------------------------------------------

class BackgroundModel(ReferenceMixin, Base):
    __tablename__ = "backgrounds"

    starting_proficiencies = Column(Text, nullable=True)
    language_options = Column(Text, nullable=True)
    starting_equipment = Column(Text, nullable=True)
    feature_name = Column(String(100), nullable=True)
    feature_desc = Column(Text, nullable=True)
    personality_traits = Column(Text, nullable=True)
    ideals = Column(Text, nullable=True)
    bonds = Column(Text, nullable=True)
    flaws = Column(Text, nullable=True)


class FeatModel(ReferenceMixin, Base):
    __tablename__ = "feats"

    prerequisites = Column(Text, nullable=True)
    description = Column(Text, nullable=True)


class RaceModel(ReferenceMixin, Base):
    __tablename__ = "races"

    speed = Column(Integer, nullable=True)
    ability_bonuses = Column(Text, nullable=True)
    alignment = Column(Text, nullable=True)
    age = Column(Text, nullable=True)
    size = Column(String(50), nullable=True)
    size_description = Column(Text, nullable=True)
    language_desc = Column(Text, nullable=True)


class RaceProficiencyModel(Base):
    __tablename__ = "race_proficiencies"
    __table_args__ = (UniqueConstraint("race_index", "proficiency_index", name="race_prof_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    race_index = Column(String(100), nullable=False)
    proficiency_index = Column(String(100), nullable=False)


class RaceLanguageModel(Base):
    __tablename__ = "race_languages"
    __table_args__ = (UniqueConstraint("race_index", "language_index", name="race_lang_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    race_index = Column(String(100), nullable=False)
    language_index = Column(String(100), nullable=False)


class RaceTraitModel(Base):
    __tablename__ = "race_traits"
    __table_args__ = (UniqueConstraint("race_index", "trait_index", name="race_trait_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    race_index = Column(String(100), nullable=False)
    trait_index = Column(String(100), nullable=False)


class SubraceModel(ReferenceMixin, Base):
    __tablename__ = "subraces"

    race_index = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    ability_bonuses = Column(Text, nullable=True)


class SubraceProficiencyModel(Base):
    __tablename__ = "subrace_proficiencies"
    __table_args__ = (UniqueConstraint("subrace_index", "proficiency_index", name="subrace_prof_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    subrace_index = Column(String(100), nullable=False)
    proficiency_index = Column(String(100), nullable=False)


class SubraceLanguageModel(Base):
    __tablename__ = "subrace_languages"
    __table_args__ = (UniqueConstraint("subrace_index", "language_index", name="subrace_lang_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    subrace_index = Column(String(100), nullable=False)
    language_index = Column(String(100), nullable=False)


class SubraceTraitModel(Base):
    __tablename__ = "subrace_traits"
    __table_args__ = (UniqueConstraint("subrace_index", "trait_index", name="subrace_trait_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    subrace_index = Column(String(100), nullable=False)
    trait_index = Column(String(100), nullable=False)


class ClassModel(ReferenceMixin, Base):
    __tablename__ = "classes"

    hit_die = Column(Integer, nullable=True)
    saving_throws = Column(Text, nullable=True)
    multi_classing = Column(Text, nullable=True)
    spellcasting = Column(Text, nullable=True)


class ClassLevelModel(Base):
    __tablename__ = "class_levels"
    __table_args__ = (UniqueConstraint("class_index", "level", name="class_level_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_index = Column(String(100), nullable=True)
    level = Column(Integer, nullable=True)
    ability_score_bonuses = Column(Integer, nullable=True)
    prof_bonus = Column(Integer, nullable=True)
    features = Column(Text, nullable=True)
    class_specific = Column(Text, nullable=True)


class ClassSpellModel(Base):
    __tablename__ = "class_spells"
    __table_args__ = (UniqueConstraint("class_index", "spell_index", name="class_spell_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_index = Column(String(100), nullable=True)
    spell_index = Column(String(100), nullable=True)
    level_acquired = Column(Integer, nullable=True)


class ClassProficiencyChoiceModel(Base):
    __tablename__ = "class_proficiency_choices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_index = Column(String(100), nullable=True)
    choice_index = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    choose = Column(Integer, nullable=True)
    type = Column(String(100), nullable=True)
    options = Column(Text, nullable=True)


class ClassStartingEquipmentModel(Base):
    __tablename__ = "class_starting_equipment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_index = Column(String(100), nullable=True)
    equipment_index = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=True)


class ClassStartingEquipmentOptionModel(Base):
    __tablename__ = "class_starting_equipment_options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_index = Column(String(100), nullable=True)
    choice_index = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    choose = Column(Integer, nullable=True)
    options = Column(Text, nullable=True)


class SubclassModel(ReferenceMixin, Base):
    __tablename__ = "subclasses"

    class_index = Column(String(100), nullable=True)
    subclass_flavor = Column(Text, nullable=True)
    description = Column(Text, nullable=True)


class SubclassLevelModel(Base):
    __tablename__ = "subclass_levels"
    __table_args__ = (UniqueConstraint("subclass_index", "level", name="subclass_level_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    subclass_index = Column(String(100), nullable=True)
    level = Column(Integer, nullable=True)
    features = Column(Text, nullable=True)


class SubclassSpellModel(Base):
    __tablename__ = "subclass_spells"
    __table_args__ = (UniqueConstraint("subclass_index", "spell_index", name="subclass_spell_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    subclass_index = Column(String(100), nullable=True)
    spell_index = Column(String(100), nullable=True)
    prerequisites = Column(Text, nullable=True)


class FeatureModel(ReferenceMixin, Base):
    __tablename__ = "features"

    # `class` es palabra reservada en Python: atributo distinto, misma columna
    class_name = Column("class", String(100), nullable=True)
    subclass = Column(String(100), nullable=True)
    level = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)


class TraitModel(ReferenceMixin, Base):
    __tablename__ = "traits"

    description = Column(Text, nullable=True)


class TraitRaceModel(Base):
    __tablename__ = "trait_races"
    __table_args__ = (UniqueConstraint("trait_index", "race_index", name="trait_race_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    trait_index = Column(String(100), nullable=False)
    race_index = Column(String(100), nullable=False)


class TraitSubraceModel(Base):
    __tablename__ = "trait_subraces"
    __table_args__ = (UniqueConstraint("trait_index", "subrace_index", name="trait_subrace_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    trait_index = Column(String(100), nullable=False)
    subrace_index = Column(String(100), nullable=False)


class TraitProficiencyModel(Base):
    __tablename__ = "trait_proficiencies"
    __table_args__ = (UniqueConstraint("trait_index", "proficiency_index", name="trait_prof_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    trait_index = Column(String(100), nullable=False)
    proficiency_index = Column(String(100), nullable=False)


class ProficiencyModel(ReferenceMixin, Base):
    __tablename__ = "proficiencies"

    name = Column(String(100), nullable=True)
    type = Column(String(100), nullable=True)
    reference_index = Column(String(100), nullable=True)


class ProficiencyClassModel(Base):
    __tablename__ = "proficiency_classes"
    __table_args__ = (UniqueConstraint("proficiency_index", "class_index", name="prof_class_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    proficiency_index = Column(String(100), nullable=False)
    class_index = Column(String(100), nullable=False)


class ProficiencyRaceModel(Base):
    __tablename__ = "proficiency_races"
    __table_args__ = (UniqueConstraint("proficiency_index", "race_index", name="prof_race_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    proficiency_index = Column(String(100), nullable=False)
    race_index = Column(String(100), nullable=False)


# ---------------------------------------------------------------------------
# Magia y combate
# ---------------------------------------------------------------------------

class SpellModel(ReferenceMixin, Base):
    __tablename__ = "spells"

    description = Column(Text, nullable=True)
    higher_level = Column(Text, nullable=True)
    spell_range = Column(String(100), nullable=True)
    components = Column(String(50), nullable=True)
    material = Column(Text, nullable=True)
    ritual = Column(Boolean, nullable=True)
    duration = Column(String(100), nullable=True)
    concentration = Column(Boolean, nullable=True)
    casting_time = Column(String(100), nullable=True)
    spell_level = Column(Integer, nullable=True)
    school_index = Column(String(50), nullable=True)
    damage = Column(Text, nullable=True)


class SpellClassModel(Base):
    __tablename__ = "spell_classes"
    __table_args__ = (UniqueConstraint("spell_index", "class_index", name="spell_class_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    spell_index = Column(String(100), nullable=False)
    class_index = Column(String(100), nullable=False)


class SpellSubclassModel(Base):
    __tablename__ = "spell_subclasses"
    __table_args__ = (UniqueConstraint("spell_index", "subclass_index", name="spell_subclass_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    spell_index = Column(String(100), nullable=False)
    subclass_index = Column(String(100), nullable=False)


class MagicSchoolModel(ReferenceMixin, Base):
    __tablename__ = "magic_schools"

    name = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)


class DamageTypeModel(ReferenceMixin, Base):
    __tablename__ = "damage_types"

    description = Column(Text, nullable=True)


class ConditionModel(ReferenceMixin, Base):
    __tablename__ = "conditions"

    description = Column(Text, nullable=True)


class WeaponPropertyModel(ReferenceMixin, Base):
    __tablename__ = "weapon_properties"

    description = Column(Text, nullable=True)


# ---------------------------------------------------------------------------
# Equipo y monstruos
# ---------------------------------------------------------------------------

class EquipmentModel(ReferenceMixin, Base):
    __tablename__ = "equipment"

    equipment_category_index = Column(String(100), nullable=True)
    gear_category = Column(String(100), nullable=True)
    cost = Column(String(50), nullable=True)
    weight = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    weapon_category = Column(String(100), nullable=True)
    weapon_range = Column(String(50), nullable=True)
    category_range = Column(String(100), nullable=True)
    damage = Column(Text, nullable=True)
    two_handed_damage = Column(Text, nullable=True)
    range_info = Column(Text, nullable=True)
    properties = Column(Text, nullable=True)
    armor_category = Column(String(100), nullable=True)
    armor_class = Column(Text, nullable=True)
    str_minimum = Column(Integer, nullable=True)
    stealth_disadvantage = Column(Boolean, nullable=True)
    contents = Column(Text, nullable=True)
    speed_info = Column(Text, nullable=True)
    capacity = Column(Text, nullable=True)


class EquipmentCategoryModel(ReferenceMixin, Base):
    __tablename__ = "equipment_categories"


class MagicItemModel(ReferenceMixin, Base):
    __tablename__ = "magic_items"

    equipment_category_index = Column(String(100), nullable=True)
    rarity_name = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)


class MonsterModel(ReferenceMixin, Base):
    __tablename__ = "monsters"

    size = Column(String(50), nullable=True)
    type = Column(String(50), nullable=True)
    subtype = Column(String(50), nullable=True)
    alignment = Column(String(100), nullable=True)
    armor_class = Column(Text, nullable=True)
    hit_points = Column(Integer, nullable=True)
    hit_dice = Column(String(50), nullable=True)
    speed = Column(Text, nullable=True)
    strength = Column(Integer, nullable=True)
    dexterity = Column(Integer, nullable=True)
    constitution = Column(Integer, nullable=True)
    intelligence = Column(Integer, nullable=True)
    wisdom = Column(Integer, nullable=True)
    charisma = Column(Integer, nullable=True)
    damage_vulnerabilities = Column(Text, nullable=True)
    damage_resistances = Column(Text, nullable=True)
    damage_immunities = Column(Text, nullable=True)
    senses = Column(Text, nullable=True)
    languages = Column(String(255), nullable=True)
    challenge_rating = Column(Float, nullable=True)
    xp = Column(Integer, nullable=True)
    special_abilities = Column(Text, nullable=True)
    actions = Column(Text, nullable=True)
    legendary_actions = Column(Text, nullable=True)


class MonsterProficiencyModel(Base):
    __tablename__ = "monster_proficiencies"
    __table_args__ = (UniqueConstraint("monster_index", "proficiency_index", name="monster_prof_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    monster_index = Column(String(100), nullable=False)
    proficiency_index = Column(String(100), nullable=False)
    value = Column(Integer, nullable=True)


class MonsterConditionImmunityModel(Base):
    __tablename__ = "monster_condition_immunities"
    __table_args__ = (UniqueConstraint("monster_index", "condition_index", name="monster_cond_unique"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    monster_index = Column(String(100), nullable=False)
    condition_index = Column(String(100), nullable=False)
