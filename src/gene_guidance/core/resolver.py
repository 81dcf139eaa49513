from __future__ import annotations

from typing import AbstractSet, Mapping

from gene_guidance.core.index import ReferenceIndex
from gene_guidance.core.models import (
    InclusionDecision,
    InclusionSource,
    OverrideValue,
    RecommendationGroup,
)


def resolve_inclusion(
    group: RecommendationGroup,
    *,
    manual_group_ids: AbstractSet[str],
    mutation_class_ids: AbstractSet[str],
    group_class_ids: AbstractSet[str],
    overrides: Mapping[str, OverrideValue],
) -> InclusionDecision:
    """Decide whether one mutation includes one recommendation group.

    Precedence: an override for the pair wins outright (exclude, then include);
    otherwise the group is included when it applies to all classes, shares a
    class with the mutation, or is manually linked to the mutation.
    """
    override = overrides.get(group.id)
    if override == OverrideValue.EXCLUDE:
        return InclusionDecision(group_id=group.id, included=False, source=InclusionSource.OVERRIDE_EXCLUDE)
    if override == OverrideValue.INCLUDE:
        return InclusionDecision(group_id=group.id, included=True, source=InclusionSource.OVERRIDE_INCLUDE)

    auto = group.applies_to_all_classes or not mutation_class_ids.isdisjoint(group_class_ids)
    if auto:
        return InclusionDecision(group_id=group.id, included=True, source=InclusionSource.AUTO)
    if group.id in manual_group_ids:
        return InclusionDecision(group_id=group.id, included=True, source=InclusionSource.MANUAL)
    return InclusionDecision(group_id=group.id, included=False, source=InclusionSource.NONE)


def explain_mutation(index: ReferenceIndex, mutation_id: str, gene_id: str) -> list[InclusionDecision]:
    manual = index.manual_group_ids(mutation_id)
    mutation_classes = index.mutation_class_ids(mutation_id)
    overrides = index.overrides_for(mutation_id)
    return [
        resolve_inclusion(
            group,
            manual_group_ids=manual,
            mutation_class_ids=mutation_classes,
            group_class_ids=index.group_class_ids(group.id),
            overrides=overrides,
        )
        for group in index.groups_for(gene_id)
    ]


def included_group_ids(index: ReferenceIndex, mutation_id: str, gene_id: str) -> set[str]:
    return {decision.group_id for decision in explain_mutation(index, mutation_id, gene_id) if decision.included}
