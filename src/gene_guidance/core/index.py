from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from gene_guidance.core.models import (
    CancerRecommendation,
    CatalogSnapshot,
    Gene,
    Mutation,
    OverrideValue,
    RecommendationClass,
    RecommendationGroup,
    Risk,
)

_EMPTY_IDS: frozenset[str] = frozenset()
_EMPTY_OVERRIDES: Mapping[str, OverrideValue] = MappingProxyType({})


def _freeze_sets(grouped: dict[str, set[str]]) -> Mapping[str, frozenset[str]]:
    return MappingProxyType({key: frozenset(values) for key, values in grouped.items()})


def _group_by_gene(rows: Iterable) -> Mapping[str, tuple]:
    grouped: dict[str, list] = defaultdict(list)
    for row in rows:
        grouped[row.gene_id].append(row)
    return MappingProxyType({gene_id: tuple(values) for gene_id, values in grouped.items()})


@dataclass(frozen=True)
class ReferenceIndex:
    """Read-only lookup maps built from one catalog snapshot.

    Missing keys mean "no relation": the accessor methods return empty
    collections instead of raising.
    """

    genes_by_id: Mapping[str, Gene]
    mutations_by_id: Mapping[str, Mutation]
    classes_by_gene: Mapping[str, tuple[RecommendationClass, ...]]
    groups_by_gene: Mapping[str, tuple[RecommendationGroup, ...]]
    mutations_by_gene: Mapping[str, tuple[Mutation, ...]]
    class_ids_by_group: Mapping[str, frozenset[str]]
    group_ids_by_mutation: Mapping[str, frozenset[str]]
    class_ids_by_mutation: Mapping[str, frozenset[str]]
    overrides_by_mutation: Mapping[str, Mapping[str, OverrideValue]]
    risks_by_gene: Mapping[str, tuple[Risk, ...]]
    cancer_recs_by_gene: Mapping[str, tuple[CancerRecommendation, ...]]

    def gene(self, gene_id: str) -> Gene | None:
        return self.genes_by_id.get(gene_id)

    def mutation(self, mutation_id: str) -> Mutation | None:
        return self.mutations_by_id.get(mutation_id)

    def groups_for(self, gene_id: str) -> tuple[RecommendationGroup, ...]:
        return self.groups_by_gene.get(gene_id, ())

    def classes_for(self, gene_id: str) -> tuple[RecommendationClass, ...]:
        return self.classes_by_gene.get(gene_id, ())

    def mutations_for(self, gene_id: str) -> tuple[Mutation, ...]:
        return self.mutations_by_gene.get(gene_id, ())

    def risks_for(self, gene_id: str) -> tuple[Risk, ...]:
        return self.risks_by_gene.get(gene_id, ())

    def cancer_recs_for(self, gene_id: str) -> tuple[CancerRecommendation, ...]:
        return self.cancer_recs_by_gene.get(gene_id, ())

    def group_class_ids(self, group_id: str) -> frozenset[str]:
        return self.class_ids_by_group.get(group_id, _EMPTY_IDS)

    def manual_group_ids(self, mutation_id: str) -> frozenset[str]:
        return self.group_ids_by_mutation.get(mutation_id, _EMPTY_IDS)

    def mutation_class_ids(self, mutation_id: str) -> frozenset[str]:
        return self.class_ids_by_mutation.get(mutation_id, _EMPTY_IDS)

    def overrides_for(self, mutation_id: str) -> Mapping[str, OverrideValue]:
        return self.overrides_by_mutation.get(mutation_id, _EMPTY_OVERRIDES)


def build_reference_index(snapshot: CatalogSnapshot) -> ReferenceIndex:
    class_ids_by_group: dict[str, set[str]] = defaultdict(set)
    for link in snapshot.group_class_links:
        class_ids_by_group[link.group_id].add(link.class_id)

    group_ids_by_mutation: dict[str, set[str]] = defaultdict(set)
    for link in snapshot.mutation_group_links:
        group_ids_by_mutation[link.mutation_id].add(link.group_id)

    class_ids_by_mutation: dict[str, set[str]] = defaultdict(set)
    for link in snapshot.mutation_class_links:
        class_ids_by_mutation[link.mutation_id].add(link.class_id)

    # last row wins if a snapshot ever carries two overrides for one pair
    overrides: dict[str, dict[str, OverrideValue]] = defaultdict(dict)
    for row in snapshot.overrides:
        overrides[row.mutation_id][row.group_id] = row.override

    return ReferenceIndex(
        genes_by_id=MappingProxyType({gene.id: gene for gene in snapshot.genes}),
        mutations_by_id=MappingProxyType({mutation.id: mutation for mutation in snapshot.mutations}),
        classes_by_gene=_group_by_gene(snapshot.classes),
        groups_by_gene=_group_by_gene(snapshot.groups),
        mutations_by_gene=_group_by_gene(snapshot.mutations),
        class_ids_by_group=_freeze_sets(class_ids_by_group),
        group_ids_by_mutation=_freeze_sets(group_ids_by_mutation),
        class_ids_by_mutation=_freeze_sets(class_ids_by_mutation),
        overrides_by_mutation=MappingProxyType(
            {mutation_id: MappingProxyType(by_group) for mutation_id, by_group in overrides.items()}
        ),
        risks_by_gene=_group_by_gene(snapshot.risks),
        cancer_recs_by_gene=_group_by_gene(snapshot.cancer_recommendations),
    )
