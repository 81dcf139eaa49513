from __future__ import annotations

from gene_guidance.core.aggregator import build_cancer_only_box, build_gene_box
from gene_guidance.core.index import build_reference_index
from gene_guidance.core.models import CatalogSnapshot, GeneEntry, GenerationRequest, ReportBox
from gene_guidance.core.utils import unique_ids


def merge_entries(entries: list[GeneEntry]) -> list[GeneEntry]:
    """Collapse repeated genes into one entry, keeping first-seen order."""
    merged: dict[str, list[str]] = {}
    for entry in entries:
        merged.setdefault(entry.gene_id, []).extend(entry.mutation_ids)
    return [GeneEntry(gene_id=gene_id, mutation_ids=unique_ids(ids)) for gene_id, ids in merged.items()]


def assemble_report(snapshot: CatalogSnapshot, request: GenerationRequest) -> list[ReportBox]:
    index = build_reference_index(snapshot)
    cancer_gene_ids = request.effective_cancer_gene_ids()
    cancer_set = frozenset(cancer_gene_ids)

    boxes: list[ReportBox] = []
    for entry in merge_entries(request.entries):
        box = build_gene_box(
            index,
            entry.gene_id,
            entry.mutation_ids,
            age=request.age,
            sex=request.sex,
            cancer_gene_ids=cancer_set,
        )
        if box is not None:
            boxes.append(box)

    represented = {box.gene.id for box in boxes}
    for gene_id in cancer_gene_ids:
        if gene_id in represented:
            continue
        box = build_cancer_only_box(index, gene_id, age=request.age, sex=request.sex)
        if box is not None:
            boxes.append(box)
            represented.add(gene_id)

    boxes.sort(key=lambda box: box.gene.symbol)
    return boxes


def report_to_dict(boxes: list[ReportBox]) -> list[dict]:
    return [box.model_dump(mode="json") for box in boxes]
