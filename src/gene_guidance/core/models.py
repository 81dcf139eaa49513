from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Sex(str, Enum):
    MALE = "M"
    FEMALE = "F"
    ANY = "ANY"


class Pathogenicity(str, Enum):
    PATHOGENIC = "pathogenic"
    LIKELY_PATHOGENIC = "likely_pathogenic"


class OverrideValue(str, Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


class InclusionSource(str, Enum):
    OVERRIDE_EXCLUDE = "override_exclude"
    OVERRIDE_INCLUDE = "override_include"
    AUTO = "auto"
    MANUAL = "manual"
    NONE = "none"


def normalize_sex(value: object) -> Sex:
    """Map a stored sex filter onto Sex; NULL and "ANY" both mean any sex."""
    if value is None:
        return Sex.ANY
    if isinstance(value, Sex):
        return value
    cleaned = str(value).strip().upper()
    if cleaned in {"", "ANY"}:
        return Sex.ANY
    return Sex(cleaned)


class _SexFiltered(BaseModel):
    sex: Sex = Sex.ANY

    @field_validator("sex", mode="before")
    @classmethod
    def _normalize_sex(cls, value: object) -> Sex:
        return normalize_sex(value)


class Gene(BaseModel):
    id: str
    symbol: str
    name: str | None = None


class RecommendationClass(BaseModel):
    id: str
    gene_id: str
    name: str


class RecommendationGroup(_SexFiltered):
    id: str
    gene_id: str
    age_min: int | None = None
    age_max: int | None = None
    recommendations: str
    applies_to_all_classes: bool = False


class GroupClassLink(BaseModel):
    group_id: str
    class_id: str


class Mutation(BaseModel):
    id: str
    gene_id: str
    mutation: str
    pathogenicity: Pathogenicity


class MutationGroupLink(BaseModel):
    mutation_id: str
    group_id: str


class MutationClassLink(BaseModel):
    mutation_id: str
    class_id: str


class MutationGroupOverride(BaseModel):
    mutation_id: str
    group_id: str
    override: OverrideValue


class Risk(_SexFiltered):
    id: str
    gene_id: str
    risk: str


class CancerRecommendation(_SexFiltered):
    id: str
    gene_id: str
    age_min: int | None = None
    age_max: int | None = None
    recommendations: str


class CatalogSnapshot(BaseModel):
    genes: list[Gene] = Field(default_factory=list)
    classes: list[RecommendationClass] = Field(default_factory=list)
    groups: list[RecommendationGroup] = Field(default_factory=list)
    group_class_links: list[GroupClassLink] = Field(default_factory=list)
    mutations: list[Mutation] = Field(default_factory=list)
    mutation_group_links: list[MutationGroupLink] = Field(default_factory=list)
    mutation_class_links: list[MutationClassLink] = Field(default_factory=list)
    overrides: list[MutationGroupOverride] = Field(default_factory=list)
    risks: list[Risk] = Field(default_factory=list)
    cancer_recommendations: list[CancerRecommendation] = Field(default_factory=list)


class GeneEntry(BaseModel):
    gene_id: str
    mutation_ids: list[str] = Field(default_factory=list)


class GenerationRequest(BaseModel):
    age: int = Field(ge=0)
    sex: Sex
    cancer_positive: bool = False
    cancer_linked_to_gene: bool = False
    entries: list[GeneEntry] = Field(default_factory=list)
    cancer_gene_ids: list[str] = Field(default_factory=list)

    @field_validator("sex")
    @classmethod
    def _patient_sex(cls, value: Sex) -> Sex:
        if value == Sex.ANY:
            raise ValueError("patient sex must be M or F")
        return value

    def include_cancer(self) -> bool:
        return self.cancer_positive and self.cancer_linked_to_gene and bool(self.cancer_gene_ids)

    def mutation_gene_ids(self) -> list[str]:
        return list(dict.fromkeys(entry.gene_id for entry in self.entries))

    def mutation_ids(self) -> list[str]:
        return list(dict.fromkeys(mid for entry in self.entries for mid in entry.mutation_ids))

    def effective_cancer_gene_ids(self) -> list[str]:
        return list(dict.fromkeys(self.cancer_gene_ids)) if self.include_cancer() else []


class InclusionDecision(BaseModel):
    group_id: str
    included: bool
    source: InclusionSource


class ReportBox(BaseModel):
    gene: Gene
    mutations: list[Mutation] = Field(default_factory=list)
    risks: list[Risk] = Field(default_factory=list)
    done_recs: list[RecommendationGroup] = Field(default_factory=list)
    future_recs: list[RecommendationGroup] = Field(default_factory=list)
    cancer_done_recs: list[CancerRecommendation] = Field(default_factory=list)
    cancer_future_recs: list[CancerRecommendation] = Field(default_factory=list)
    cancer_only: bool = False
