import pytest

from gene_guidance.core.index import build_reference_index
from gene_guidance.core.models import CatalogSnapshot, OverrideValue, Sex


def _snapshot() -> CatalogSnapshot:
    return CatalogSnapshot(
        genes=[{"id": "g1", "symbol": "BRCA1"}, {"id": "g2", "symbol": "TP53"}],
        classes=[{"id": "c1", "gene_id": "g1", "name": "Truncating"}],
        groups=[
            {"id": "grp1", "gene_id": "g1", "recommendations": "First"},
            {"id": "grp2", "gene_id": "g1", "recommendations": "Second", "sex": "F"},
            {"id": "grp3", "gene_id": "g2", "recommendations": "Other gene"},
        ],
        group_class_links=[{"group_id": "grp1", "class_id": "c1"}],
        mutations=[{"id": "m1", "gene_id": "g1", "mutation": "c.1A>G", "pathogenicity": "pathogenic"}],
        mutation_group_links=[{"mutation_id": "m1", "group_id": "grp2"}],
        mutation_class_links=[{"mutation_id": "m1", "class_id": "c1"}],
        overrides=[
            {"mutation_id": "m1", "group_id": "grp1", "override": "include"},
            {"mutation_id": "m1", "group_id": "grp1", "override": "exclude"},
        ],
        risks=[{"id": "r1", "gene_id": "g1", "risk": "Breast cancer", "sex": None}],
    )


def test_index_groups_rows_by_gene_in_input_order() -> None:
    index = build_reference_index(_snapshot())
    assert [group.id for group in index.groups_for("g1")] == ["grp1", "grp2"]
    assert [group.id for group in index.groups_for("g2")] == ["grp3"]
    assert index.gene("g2").symbol == "TP53"
    assert index.mutation("m1").gene_id == "g1"
    assert [mutation.id for mutation in index.mutations_for("g1")] == ["m1"]
    assert index.risks_for("g1")[0].sex == Sex.ANY


def test_index_link_lookups() -> None:
    index = build_reference_index(_snapshot())
    assert index.group_class_ids("grp1") == frozenset({"c1"})
    assert index.manual_group_ids("m1") == frozenset({"grp2"})
    assert index.mutation_class_ids("m1") == frozenset({"c1"})
    assert [cls.id for cls in index.classes_for("g1")] == ["c1"]


def test_index_missing_keys_are_empty() -> None:
    index = build_reference_index(_snapshot())
    assert index.gene("nope") is None
    assert index.mutation("nope") is None
    assert index.groups_for("nope") == ()
    assert index.classes_for("g2") == ()
    assert index.mutations_for("g2") == ()
    assert index.cancer_recs_for("g1") == ()
    assert index.group_class_ids("grp3") == frozenset()
    assert index.manual_group_ids("nope") == frozenset()
    assert dict(index.overrides_for("nope")) == {}


def test_last_override_row_wins() -> None:
    index = build_reference_index(_snapshot())
    assert index.overrides_for("m1")["grp1"] == OverrideValue.EXCLUDE


def test_index_is_read_only() -> None:
    index = build_reference_index(_snapshot())
    with pytest.raises(TypeError):
        index.genes_by_id["g3"] = None
    with pytest.raises(AttributeError):
        index.genes_by_id = {}


def test_empty_snapshot() -> None:
    index = build_reference_index(CatalogSnapshot())
    assert index.groups_for("g1") == ()
    assert index.risks_for("g1") == ()
