from __future__ import annotations

import logging
from typing import AbstractSet, Iterable

from gene_guidance.core.index import ReferenceIndex
from gene_guidance.core.models import Mutation, ReportBox, Sex
from gene_guidance.core.resolver import included_group_ids
from gene_guidance.core.utils import partition_by_age, sex_matches, unique_ids


def _resolve_mutations(index: ReferenceIndex, gene_id: str, mutation_ids: Iterable[str]) -> list[Mutation]:
    mutations: list[Mutation] = []
    for mutation_id in unique_ids(mutation_ids):
        mutation = index.mutation(mutation_id)
        if mutation is None or mutation.gene_id != gene_id:
            logging.debug("Skipping mutation %s: not in snapshot for gene %s.", mutation_id, gene_id)
            continue
        mutations.append(mutation)
    return mutations


def _cancer_recs(index: ReferenceIndex, gene_id: str, *, age: int, sex: Sex) -> tuple[list, list]:
    matching = [rec for rec in index.cancer_recs_for(gene_id) if sex_matches(rec.sex, sex)]
    return partition_by_age(matching, age)


def build_gene_box(
    index: ReferenceIndex,
    gene_id: str,
    mutation_ids: Iterable[str],
    *,
    age: int,
    sex: Sex,
    cancer_gene_ids: AbstractSet[str] = frozenset(),
) -> ReportBox | None:
    gene = index.gene(gene_id)
    if gene is None:
        logging.debug("Skipping gene %s: not in snapshot.", gene_id)
        return None

    mutations = _resolve_mutations(index, gene_id, mutation_ids)

    # union across mutations; an override only speaks for its own mutation
    included: set[str] = set()
    for mutation in mutations:
        included |= included_group_ids(index, mutation.id, gene_id)

    groups = [
        group
        for group in index.groups_for(gene_id)
        if group.id in included and sex_matches(group.sex, sex)
    ]
    done_recs, future_recs = partition_by_age(groups, age)
    risks = [risk for risk in index.risks_for(gene_id) if sex_matches(risk.sex, sex)]

    cancer_done: list = []
    cancer_future: list = []
    if gene_id in cancer_gene_ids:
        cancer_done, cancer_future = _cancer_recs(index, gene_id, age=age, sex=sex)

    return ReportBox(
        gene=gene,
        mutations=mutations,
        risks=risks,
        done_recs=done_recs,
        future_recs=future_recs,
        cancer_done_recs=cancer_done,
        cancer_future_recs=cancer_future,
        cancer_only=False,
    )


def build_cancer_only_box(index: ReferenceIndex, gene_id: str, *, age: int, sex: Sex) -> ReportBox | None:
    gene = index.gene(gene_id)
    if gene is None:
        logging.debug("Skipping cancer gene %s: not in snapshot.", gene_id)
        return None
    cancer_done, cancer_future = _cancer_recs(index, gene_id, age=age, sex=sex)
    return ReportBox(
        gene=gene,
        cancer_done_recs=cancer_done,
        cancer_future_recs=cancer_future,
        cancer_only=True,
    )
