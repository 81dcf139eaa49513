from __future__ import annotations

from typing import Callable, Generic, Iterable, Mapping, TypeVar

from pydantic import BaseModel, Field

from gene_guidance.core.exceptions import InputValidationError
from gene_guidance.core.models import Gene, GeneEntry, GenerationRequest, Mutation, Sex
from gene_guidance.core.utils import unique_ids

INVALID_INPUT = "Invalid input"

T = TypeVar("T")


class GeneEntryForm(BaseModel):
    gene_text: str = ""
    mutation_texts: list[str] = Field(default_factory=list)


class GeneratorForm(BaseModel):
    """Raw generator input as typed by the user; nothing here is trusted yet."""

    age: str | int | None = None
    sex: str | None = None
    cancer_positive: bool | None = None
    cancer_linked_to_gene: bool | None = None
    gene_entries: list[GeneEntryForm] = Field(default_factory=list)
    cancer_gene_texts: list[str] = Field(default_factory=list)

    def entered_gene_texts(self) -> list[str]:
        texts = [entry.gene_text for entry in self.gene_entries]
        texts.extend(self.cancer_gene_texts)
        return [text for text in texts if text.strip()]


def _parse_age(raw: str | int | None) -> int | None:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    cleaned = raw.strip()
    if not cleaned.isdecimal():
        return None
    return int(cleaned)


def _parse_sex(raw: str | None) -> Sex | None:
    if raw is None:
        return None
    cleaned = raw.strip().upper()
    if cleaned == Sex.MALE.value:
        return Sex.MALE
    if cleaned == Sex.FEMALE.value:
        return Sex.FEMALE
    return None


class TextLookup(Generic[T]):
    """Resolve typed text to an item: exact match after trimming first, then case-insensitive."""

    def __init__(self, items: Iterable[T], text_of: Callable[[T], str]) -> None:
        self._exact: dict[str, T] = {}
        self._folded: dict[str, T] = {}
        for item in items:
            text = text_of(item).strip()
            self._exact.setdefault(text, item)
            self._folded.setdefault(text.lower(), item)

    def get(self, text: str) -> T | None:
        cleaned = text.strip()
        found = self._exact.get(cleaned)
        if found is None:
            found = self._folded.get(cleaned.lower())
        return found


def genes_by_symbol(genes: Iterable[Gene]) -> TextLookup[Gene]:
    return TextLookup(genes, lambda gene: gene.symbol)


def validate_form(
    form: GeneratorForm,
    genes: Iterable[Gene],
    mutations_by_gene: Mapping[str, Iterable[Mutation]],
) -> GenerationRequest:
    """Check completeness and resolve typed genes/mutations to ids.

    Raises InputValidationError with one message per offending field; rows left
    blank are ignored.
    """
    errors: dict[str, str] = {}
    gene_lookup = genes_by_symbol(genes)

    age = _parse_age(form.age)
    if age is None:
        errors["age"] = "Patient age must be a non-negative whole number."

    sex = _parse_sex(form.sex)
    if sex is None:
        errors["sex"] = "Pick patient sex."

    if form.cancer_positive is None:
        errors["cancer_positive"] = "Pick whether the patient is cancer-positive."
    if form.cancer_positive is True and form.cancer_linked_to_gene is None:
        errors["cancer_linked_to_gene"] = "Pick whether the cancer is linked to any gene."
    cancer_positive = form.cancer_positive is True
    linked = cancer_positive and form.cancer_linked_to_gene is True

    entries: list[GeneEntry] = []
    for i, entry in enumerate(form.gene_entries):
        if not entry.gene_text.strip():
            continue
        field = f"genes[{i}]"
        gene = gene_lookup.get(entry.gene_text)
        if gene is None:
            errors[field] = INVALID_INPUT

        mutation_lookup = TextLookup(
            mutations_by_gene.get(gene.id, []) if gene is not None else [],
            lambda mu: mu.mutation,
        )

        active = [(j, text) for j, text in enumerate(entry.mutation_texts) if text.strip()]
        if not active:
            errors.setdefault(field, "Add at least 1 mutation")

        mutation_ids: list[str] = []
        for j, text in active:
            mutation = mutation_lookup.get(text)
            if mutation is None:
                errors[f"{field}.mutations[{j}]"] = INVALID_INPUT
                continue
            mutation_ids.append(mutation.id)

        if gene is not None:
            entries.append(GeneEntry(gene_id=gene.id, mutation_ids=unique_ids(mutation_ids)))

    cancer_gene_ids: list[str] = []
    if linked:
        active_cancer = [(i, text) for i, text in enumerate(form.cancer_gene_texts) if text.strip()]
        if not active_cancer:
            errors["cancer_genes"] = 'Add at least 1 cancer-linked gene (or set "linked to gene" = No).'
        for i, text in active_cancer:
            gene = gene_lookup.get(text)
            if gene is None:
                errors[f"cancer_genes[{i}]"] = INVALID_INPUT
                continue
            cancer_gene_ids.append(gene.id)

    if errors:
        raise InputValidationError(errors)

    return GenerationRequest(
        age=age,
        sex=sex,
        cancer_positive=cancer_positive,
        cancer_linked_to_gene=linked,
        entries=entries,
        cancer_gene_ids=unique_ids(cancer_gene_ids),
    )
