"""Identity models: roles, academic affiliation and users."""

from __future__ import annotations

from enum import Enum
from typing import Mapping
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from wanda.domain.identity.trust import TrustScore


class Role(str, Enum):
    STUDENT = "student"
    DELEGATE = "delegate"  # trusted source
    ADMIN = "admin"  # moderator


class Establishment(str, Enum):
    FS = "fs"
    IUT = "iut"
    ENSAI = "ensai"
    FSJP = "fsjp"
    FSEG = "fseg"
    FLSH = "flsh"
    EMVT = "emvt"


class Department(str, Enum):
    """Departments of the university; each belongs to one establishment."""

    BIOMEDICAL_SCIENCES = "biomedical_sciences"
    RADIOLOGY = "radiology"
    PUBLIC_HEALTH = "public_health"
    BIOLOGY = "biology"
    BIOCHEMISTRY = "biochemistry"
    CHEMISTRY = "chemistry"
    GEOLOGY = "geology"
    COMPUTER_SCIENCE = "computer_science"
    MATHEMATICS = "mathematics"

    FOOD_GENIUS = "food_genius"
    CHEMICAL_GENIUS = "chemical_genius"
    ELECTRICAL_GENIUS = "electrical_genius"
    IT_GENIUS = "it_genius"
    MECHANICAL_GENIUS = "mechanical_genius"
    INDUSTRIAL_MAINTENANCE = "industrial_maintenance"

    AGRO_INDUSTRY = "agro_industry"
    PROCESS_ENGINEERING = "process_engineering"
    FOOD_INDUSTRIES = "food_industries"

    PRIVATE_LAW = "private_law"
    PUBLIC_LAW = "public_law"
    INTERNATIONAL_LAW = "international_law"
    POLITICAL_SCIENCE = "political_science"
    INTERNATIONAL_RELATIONS = "international_relations"

    ACCOUNTING = "accounting"
    FINANCE = "finance"
    MANAGEMENT = "management"
    MARKETING = "marketing"
    ECONOMY = "economy"

    GEOGRAPHY = "geography"
    HISTORY = "history"
    SOCIOLOGY = "sociology"
    PSYCHOLOGY = "psychology"
    LANGUAGES = "languages"
    URBANISM = "urbanism"

    VETERINARY_SCIENCES = "veterinary_sciences"
    ANIMAL_HEALTH = "animal_health"

    @property
    def establishment(self) -> Establishment:
        return _ESTABLISHMENT_BY_DEPARTMENT[self]


def _catalogue() -> Mapping[Department, Establishment]:
    groups = {
        Establishment.FS: (
            Department.BIOMEDICAL_SCIENCES,
            Department.RADIOLOGY,
            Department.PUBLIC_HEALTH,
            Department.BIOLOGY,
            Department.BIOCHEMISTRY,
            Department.CHEMISTRY,
            Department.GEOLOGY,
            Department.COMPUTER_SCIENCE,
            Department.MATHEMATICS,
        ),
        Establishment.IUT: (
            Department.FOOD_GENIUS,
            Department.CHEMICAL_GENIUS,
            Department.ELECTRICAL_GENIUS,
            Department.IT_GENIUS,
            Department.MECHANICAL_GENIUS,
            Department.INDUSTRIAL_MAINTENANCE,
        ),
        Establishment.ENSAI: (
            Department.AGRO_INDUSTRY,
            Department.PROCESS_ENGINEERING,
            Department.FOOD_INDUSTRIES,
        ),
        Establishment.FSJP: (
            Department.PRIVATE_LAW,
            Department.PUBLIC_LAW,
            Department.INTERNATIONAL_LAW,
            Department.POLITICAL_SCIENCE,
            Department.INTERNATIONAL_RELATIONS,
        ),
        Establishment.FSEG: (
            Department.ACCOUNTING,
            Department.FINANCE,
            Department.MANAGEMENT,
            Department.MARKETING,
            Department.ECONOMY,
        ),
        Establishment.FLSH: (
            Department.GEOGRAPHY,
            Department.HISTORY,
            Department.SOCIOLOGY,
            Department.PSYCHOLOGY,
            Department.LANGUAGES,
            Department.URBANISM,
        ),
        Establishment.EMVT: (
            Department.VETERINARY_SCIENCES,
            Department.ANIMAL_HEALTH,
        ),
    }
    return {department: establishment for establishment, members in groups.items() for department in members}


_ESTABLISHMENT_BY_DEPARTMENT: Mapping[Department, Establishment] = _catalogue()


def departments_of(establishment: Establishment) -> list[Department]:
    return [dept for dept, owner in _ESTABLISHMENT_BY_DEPARTMENT.items() if owner is establishment]


class User(BaseModel):
    """A registered member; immutable per revision."""

    id: UUID = Field(default_factory=uuid4)
    matricule: str
    full_name: str
    department: Department
    level: str
    role: Role = Role.STUDENT
    trust_score: TrustScore = TrustScore.DEFAULT

    model_config = ConfigDict(frozen=True)

    @property
    def establishment(self) -> Establishment:
        return self.department.establishment

    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def can_publish_certified(self) -> bool:
        return self.role in (Role.DELEGATE, Role.ADMIN)

    def can_vote(self) -> bool:
        return self.trust_score.value > 0

    def with_trust(self, score: TrustScore) -> "User":
        return self.model_copy(update={"trust_score": score})

    def with_role(self, role: Role) -> "User":
        return self.model_copy(update={"role": role})


__all__ = ["Department", "Establishment", "Role", "User", "departments_of"]
