from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Protocol, Sequence

from pydantic import ValidationError

from gene_guidance.constants import DEFAULT_FETCH_WORKERS
from gene_guidance.core.exceptions import LookupFetchError
from gene_guidance.core.models import CatalogSnapshot, GenerationRequest


class EntityStore(Protocol):
    def fetch_genes(self, gene_ids: Sequence[str]) -> list[dict]: ...
    def fetch_mutations(self, mutation_ids: Sequence[str]) -> list[dict]: ...
    def fetch_classes(self, gene_ids: Sequence[str]) -> list[dict]: ...
    def fetch_groups(self, gene_ids: Sequence[str]) -> list[dict]: ...
    def fetch_risks(self, gene_ids: Sequence[str]) -> list[dict]: ...
    def fetch_cancer_recommendations(self, gene_ids: Sequence[str]) -> list[dict]: ...
    def fetch_group_class_links(self, group_ids: Sequence[str]) -> list[dict]: ...
    def fetch_mutation_group_links(self, mutation_ids: Sequence[str]) -> list[dict]: ...
    def fetch_mutation_class_links(self, mutation_ids: Sequence[str]) -> list[dict]: ...
    def fetch_overrides(self, mutation_ids: Sequence[str]) -> list[dict]: ...
    def list_genes(self) -> list[dict]: ...
    def list_mutations(self, gene_ids: Sequence[str]) -> list[dict]: ...
    def close(self) -> None: ...


StoreFactory = Callable[[], EntityStore]

# snapshot field -> (table name, store method)
READS: dict[str, tuple[str, str]] = {
    "genes": ("genes", "fetch_genes"),
    "mutations": ("gene_mutations", "fetch_mutations"),
    "classes": ("recommendation_classes", "fetch_classes"),
    "groups": ("recommendation_groups", "fetch_groups"),
    "risks": ("gene_risks", "fetch_risks"),
    "mutation_group_links": ("gene_mutation_groups", "fetch_mutation_group_links"),
    "mutation_class_links": ("gene_mutation_classes", "fetch_mutation_class_links"),
    "overrides": ("gene_mutation_group_overrides", "fetch_overrides"),
    "cancer_recommendations": ("gene_cancer_recommendations", "fetch_cancer_recommendations"),
    "group_class_links": ("recommendation_group_classes", "fetch_group_class_links"),
}


def _read(open_store: StoreFactory, method: str, ids: list[str]) -> list[dict]:
    store = open_store()
    try:
        return getattr(store, method)(ids)
    finally:
        store.close()


def run_reads(
    open_store: StoreFactory,
    keys: dict[str, list[str]],
    *,
    max_workers: int = DEFAULT_FETCH_WORKERS,
) -> dict[str, list[dict]]:
    """Run independent reads concurrently and join them.

    Reads with an empty key list are skipped. If any read fails the others are
    cancelled or awaited, their rows discarded, and LookupFetchError raised.
    """
    results: dict[str, list[dict]] = {field: [] for field, ids in keys.items() if not ids}
    pending = {field: ids for field, ids in keys.items() if ids}
    if not pending:
        return results

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(pending)))) as pool:
        futures = {
            pool.submit(_read, open_store, READS[field][1], ids): field
            for field, ids in pending.items()
        }
        try:
            for future in as_completed(futures):
                field = futures[future]
                try:
                    results[field] = future.result()
                except Exception as exc:
                    table = READS[field][0]
                    raise LookupFetchError(table, f"Failed to load {table}: {exc}") from exc
        except LookupFetchError:
            for future in futures:
                future.cancel()
            raise
    return results


def fetch_snapshot(
    open_store: StoreFactory,
    request: GenerationRequest,
    *,
    max_workers: int = DEFAULT_FETCH_WORKERS,
) -> CatalogSnapshot:
    start = time.monotonic()
    gene_ids = request.mutation_gene_ids()
    mutation_ids = request.mutation_ids()
    cancer_gene_ids = request.effective_cancer_gene_ids()
    all_gene_ids = list(dict.fromkeys(gene_ids + cancer_gene_ids))

    rows = run_reads(
        open_store,
        {
            "genes": all_gene_ids,
            "mutations": mutation_ids,
            "classes": gene_ids,
            "groups": gene_ids,
            "risks": gene_ids,
            "mutation_group_links": mutation_ids,
            "mutation_class_links": mutation_ids,
            "overrides": mutation_ids,
            "cancer_recommendations": cancer_gene_ids,
        },
        max_workers=max_workers,
    )

    # group links are keyed by the groups just fetched, so they wait for phase one
    group_ids = [row["id"] for row in rows["groups"]]
    rows.update(run_reads(open_store, {"group_class_links": group_ids}, max_workers=max_workers))

    try:
        snapshot = CatalogSnapshot(**rows)
    except ValidationError as exc:
        raise LookupFetchError("snapshot", f"Store returned malformed rows: {exc}") from exc

    logging.info(
        "Fetched snapshot in %.2fs: %s genes, %s mutations, %s groups, %s cancer recommendations.",
        max(time.monotonic() - start, 0.001),
        len(snapshot.genes),
        len(snapshot.mutations),
        len(snapshot.groups),
        len(snapshot.cancer_recommendations),
    )
    return snapshot
