from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from gene_guidance.constants import DEFAULT_FETCH_WORKERS
from gene_guidance.core.db import Database
from gene_guidance.core.exceptions import GenerationBusy, InputValidationError, LookupFetchError
from gene_guidance.core.fetch import StoreFactory, fetch_snapshot
from gene_guidance.core.models import Gene, GenerationRequest, Mutation, ReportBox
from gene_guidance.core.report import assemble_report
from gene_guidance.core.settings import AppSettings
from gene_guidance.core.utils import utc_now_iso
from gene_guidance.core.validation import GeneratorForm, genes_by_symbol, validate_form


class GenerationResult(BaseModel):
    request: GenerationRequest
    boxes: list[ReportBox] = Field(default_factory=list)
    generated_at: str


def sqlite_store_factory(db_path: Path) -> StoreFactory:
    # one connection per read; sqlite connections stay on the thread that opened them
    def open_store() -> Database:
        return Database(db_path)

    return open_store


class ReportGenerator:
    """Runs validate -> fetch -> assemble for one patient at a time."""

    def __init__(self, open_store: StoreFactory, settings: AppSettings | None = None) -> None:
        self.open_store = open_store
        self.max_workers = settings.fetch_workers if settings else DEFAULT_FETCH_WORKERS
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _load_form_catalog(self, form: GeneratorForm) -> tuple[list[Gene], dict[str, list[Mutation]]]:
        try:
            store = self.open_store()
        except Exception as exc:
            raise LookupFetchError("genes", f"Failed to open store: {exc}") from exc
        try:
            genes = [Gene(**row) for row in store.list_genes()]
            lookup = genes_by_symbol(genes)
            found = [lookup.get(text) for text in form.entered_gene_texts()]
            gene_ids = [gene.id for gene in found if gene is not None]
            mutations_by_gene: dict[str, list[Mutation]] = {}
            for row in store.list_mutations(gene_ids):
                mutations_by_gene.setdefault(row["gene_id"], []).append(Mutation(**row))
        except ValidationError as exc:
            raise LookupFetchError("genes", f"Store returned malformed rows: {exc}") from exc
        except Exception as exc:
            raise LookupFetchError("genes", f"Failed to load genes: {exc}") from exc
        finally:
            store.close()
        return genes, mutations_by_gene

    def _acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise GenerationBusy("A report is already being generated.")

    def generate(self, form: GeneratorForm) -> GenerationResult:
        self._acquire()
        try:
            genes, mutations_by_gene = self._load_form_catalog(form)
            try:
                request = validate_form(form, genes, mutations_by_gene)
            except InputValidationError as exc:
                logging.info("Generation rejected: %s invalid field(s).", len(exc.errors))
                raise
            return self._run(request)
        finally:
            self._lock.release()

    def generate_for_request(self, request: GenerationRequest) -> GenerationResult:
        self._acquire()
        try:
            return self._run(request)
        finally:
            self._lock.release()

    def _run(self, request: GenerationRequest) -> GenerationResult:
        start = time.monotonic()
        logging.info(
            "Generating report: %s gene entries, %s cancer genes.",
            len(request.entries),
            len(request.effective_cancer_gene_ids()),
        )
        try:
            snapshot = fetch_snapshot(self.open_store, request, max_workers=self.max_workers)
        except LookupFetchError as exc:
            logging.error("Report generation aborted (%s): %s", exc.table, exc)
            raise
        boxes = assemble_report(snapshot, request)
        logging.info(
            "Report generated in %.2fs with %s boxes.",
            max(time.monotonic() - start, 0.001),
            len(boxes),
        )
        return GenerationResult(request=request, boxes=boxes, generated_at=utc_now_iso())
