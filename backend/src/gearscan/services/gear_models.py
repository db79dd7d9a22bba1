from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class GearOcrError(Exception):
    """Base exception for the gear OCR pipeline."""

    code = "OCR_PROCESSING_ERROR"


class OcrInputError(GearOcrError):
    """Raised when OCR input payload is invalid."""

    code = "OCR_INPUT_ERROR"


class OcrDependencyError(GearOcrError):
    """Raised when required OCR dependency is missing."""

    code = "OCR_ENGINE_UNAVAILABLE"


class OcrEngineUnavailableError(GearOcrError):
    """Raised when OCR engine is installed but unavailable at runtime."""

    code = "OCR_ENGINE_UNAVAILABLE"


class OcrTimeoutError(OcrEngineUnavailableError):
    """Raised when the OCR engine does not answer in time."""

    code = "OCR_TIMEOUT"


class InvalidImageError(GearOcrError):
    """Raised when a bitmap has non-positive dimensions."""

    code = "INVALID_IMAGE"


class GearParseError(GearOcrError):
    """Base exception for structural failures while reading OCR text."""


class HeaderNotFoundError(GearParseError):
    """Raised when no line pairs a grade word with an item type word."""

    code = "HEADER_NOT_FOUND"


class SetNotFoundError(GearParseError):
    """Raised when the text ends before a set footer line."""

    code = "SET_NOT_FOUND"


class NoStatsFoundError(GearParseError):
    """Raised when a set footer is reached without any stat line."""

    code = "NO_STATS_FOUND"


class StatDecodeError(GearParseError):
    """Raised when a matched stat line has no known label for its flavor."""

    code = "STAT_DECODE_FAILED"


class ItemType(Enum):
    WEAPON = "Weapon"
    HELMET = "Helmet"
    ARMOR = "Armor"
    NECKLACE = "Necklace"
    RING = "Ring"
    BOOTS = "Boots"


class Grade(Enum):
    NORMAL = "Normal"
    GOOD = "Good"
    RARE = "Rare"
    HEROIC = "Heroic"
    EPIC = "Epic"


class StatKind(Enum):
    ATTACK = "Attack"
    ATTACK_PERCENT = "AttackPercent"
    DEFENSE = "Defense"
    DEFENSE_PERCENT = "DefensePercent"
    HEALTH = "Health"
    HEALTH_PERCENT = "HealthPercent"
    SPEED = "Speed"
    CRITICAL_CHANCE = "CriticalChance"
    CRITICAL_DAMAGE = "CriticalDamage"
    EFFECTIVENESS = "Effectiveness"
    EFFECT_RESISTANCE = "EffectResistance"


PERCENT_KINDS = frozenset(
    {
        StatKind.ATTACK_PERCENT,
        StatKind.DEFENSE_PERCENT,
        StatKind.HEALTH_PERCENT,
        StatKind.CRITICAL_CHANCE,
        StatKind.CRITICAL_DAMAGE,
        StatKind.EFFECTIVENESS,
        StatKind.EFFECT_RESISTANCE,
    }
)


class SetAffiliation(Enum):
    ATTACK = "Attack"
    COUNTER = "Counter"
    CRIT = "Crit"
    DEFENSE = "Defense"
    DESTRUCTION = "Destruction"
    HEALTH = "Health"
    HIT = "Hit"
    IMMUNITY = "Immunity"
    LIFESTEAL = "Lifesteal"
    RAGE = "Rage"
    RESIST = "Resist"
    SPEED = "Speed"
    UNITY = "Unity"


@dataclass(frozen=True)
class StatRoll:
    kind: StatKind
    value: float

    @property
    def is_percent(self) -> bool:
        return self.kind in PERCENT_KINDS

    def to_dict(self) -> dict[str, object]:
        return {
            "stat": self.kind.value,
            "value": self.value,
            "percent": self.is_percent,
        }


@dataclass(frozen=True)
class ItemRecord:
    type: ItemType
    grade: Grade
    main: StatRoll
    set: SetAffiliation
    sub_stats: tuple[StatRoll, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type.value,
            "grade": self.grade.value,
            "main": self.main.to_dict(),
            "subStats": [row.to_dict() for row in self.sub_stats],
            "set": self.set.value,
        }
