import pytest

from gene_guidance.core.index import build_reference_index
from gene_guidance.core.models import (
    CatalogSnapshot,
    InclusionSource,
    OverrideValue,
    RecommendationGroup,
)
from gene_guidance.core.resolver import explain_mutation, included_group_ids, resolve_inclusion


def _group(group_id: str = "A", applies_to_all: bool = False) -> RecommendationGroup:
    return RecommendationGroup(
        id=group_id,
        gene_id="G",
        recommendations=f"Group {group_id}",
        applies_to_all_classes=applies_to_all,
    )


def _snapshot(overrides=None) -> CatalogSnapshot:
    return CatalogSnapshot(
        genes=[{"id": "G", "symbol": "GENE1"}],
        classes=[{"id": "C1", "gene_id": "G", "name": "Class 1"}],
        groups=[
            {"id": "A", "gene_id": "G", "recommendations": "Linked to C1"},
            {"id": "B", "gene_id": "G", "recommendations": "All classes", "applies_to_all_classes": True},
        ],
        group_class_links=[{"group_id": "A", "class_id": "C1"}],
        mutations=[{"id": "Mu1", "gene_id": "G", "mutation": "c.1A>G", "pathogenicity": "pathogenic"}],
        mutation_class_links=[{"mutation_id": "Mu1", "class_id": "C1"}],
        overrides=overrides or [],
    )


def test_exclude_override_beats_every_other_signal() -> None:
    decision = resolve_inclusion(
        _group(applies_to_all=True),
        manual_group_ids={"A"},
        mutation_class_ids={"C1"},
        group_class_ids={"C1"},
        overrides={"A": OverrideValue.EXCLUDE},
    )
    assert decision.included is False
    assert decision.source == InclusionSource.OVERRIDE_EXCLUDE


def test_include_override_without_other_signals() -> None:
    decision = resolve_inclusion(
        _group(),
        manual_group_ids=set(),
        mutation_class_ids=set(),
        group_class_ids=set(),
        overrides={"A": OverrideValue.INCLUDE},
    )
    assert decision.included is True
    assert decision.source == InclusionSource.OVERRIDE_INCLUDE


@pytest.mark.parametrize(
    "applies_to_all, mutation_classes, manual, expected, source",
    [
        (True, set(), set(), True, InclusionSource.AUTO),
        (False, {"C1"}, set(), True, InclusionSource.AUTO),
        (False, {"C2"}, set(), False, InclusionSource.NONE),
        (False, set(), {"A"}, True, InclusionSource.MANUAL),
        (False, {"C1"}, {"A"}, True, InclusionSource.AUTO),
        (False, set(), set(), False, InclusionSource.NONE),
    ],
)
def test_inclusion_without_override(applies_to_all, mutation_classes, manual, expected, source) -> None:
    decision = resolve_inclusion(
        _group(applies_to_all=applies_to_all),
        manual_group_ids=manual,
        mutation_class_ids=mutation_classes,
        group_class_ids={"C1"},
        overrides={},
    )
    assert decision.included is expected
    assert decision.source == source


def test_override_for_another_group_is_ignored() -> None:
    decision = resolve_inclusion(
        _group(),
        manual_group_ids=set(),
        mutation_class_ids={"C1"},
        group_class_ids={"C1"},
        overrides={"Z": OverrideValue.EXCLUDE},
    )
    assert decision.included is True


def test_class_match_and_applies_to_all() -> None:
    index = build_reference_index(_snapshot())
    assert included_group_ids(index, "Mu1", "G") == {"A", "B"}
    sources = {decision.group_id: decision.source for decision in explain_mutation(index, "Mu1", "G")}
    assert sources == {"A": InclusionSource.AUTO, "B": InclusionSource.AUTO}


def test_exclude_override_removes_class_matched_group() -> None:
    index = build_reference_index(
        _snapshot(overrides=[{"mutation_id": "Mu1", "group_id": "A", "override": "exclude"}])
    )
    assert included_group_ids(index, "Mu1", "G") == {"B"}


def test_unknown_mutation_only_gets_applies_to_all_groups() -> None:
    index = build_reference_index(_snapshot())
    assert included_group_ids(index, "missing", "G") == {"B"}


def test_unknown_gene_has_no_groups() -> None:
    index = build_reference_index(_snapshot())
    assert explain_mutation(index, "Mu1", "other") == []
