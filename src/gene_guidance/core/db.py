from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from gene_guidance.core.models import CatalogSnapshot, OverrideValue, Pathogenicity, Sex, normalize_sex
from gene_guidance.core.utils import safe_uuid, unique_ids, utc_now_iso


SCHEMA_VERSION = 2

# Stays well under SQLITE_MAX_VARIABLE_NUMBER on older builds.
IN_CHUNK_SIZE = 500

GENE_COLUMNS = "id, symbol, name"
CLASS_COLUMNS = "id, gene_id, name"
GROUP_COLUMNS = "id, gene_id, sex, age_min, age_max, recommendations, applies_to_all_classes"
MUTATION_COLUMNS = "id, gene_id, mutation, pathogenicity"
RISK_COLUMNS = "id, gene_id, sex, risk"
CANCER_REC_COLUMNS = "id, gene_id, sex, age_min, age_max, recommendations"


def _sex_value(sex: str | None) -> str | None:
    normalized = normalize_sex(sex)
    return None if normalized == Sex.ANY else normalized.value


class Database:
    def __init__(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path, timeout=30)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.execute("PRAGMA journal_mode = WAL")
        self.conn.execute("PRAGMA synchronous = NORMAL")
        self.conn.execute("PRAGMA busy_timeout = 5000")
        self._migrate()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _migrate(self) -> None:
        cur = self.conn.execute("PRAGMA user_version")
        version = cur.fetchone()[0]
        if version < 1:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS genes (
                    id TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL UNIQUE,
                    name TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS recommendation_classes (
                    id TEXT PRIMARY KEY,
                    gene_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(gene_id) REFERENCES genes(id)
                );

                CREATE TABLE IF NOT EXISTS recommendation_groups (
                    id TEXT PRIMARY KEY,
                    gene_id TEXT NOT NULL,
                    sex TEXT,
                    age_min INTEGER,
                    age_max INTEGER,
                    recommendations TEXT NOT NULL,
                    applies_to_all_classes INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(gene_id) REFERENCES genes(id)
                );

                CREATE TABLE IF NOT EXISTS recommendation_group_classes (
                    group_id TEXT NOT NULL,
                    class_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY(group_id, class_id),
                    FOREIGN KEY(group_id) REFERENCES recommendation_groups(id),
                    FOREIGN KEY(class_id) REFERENCES recommendation_classes(id)
                );

                CREATE TABLE IF NOT EXISTS gene_mutations (
                    id TEXT PRIMARY KEY,
                    gene_id TEXT NOT NULL,
                    mutation TEXT NOT NULL,
                    pathogenicity TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE(gene_id, mutation),
                    FOREIGN KEY(gene_id) REFERENCES genes(id)
                );

                CREATE TABLE IF NOT EXISTS gene_mutation_groups (
                    mutation_id TEXT NOT NULL,
                    group_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY(mutation_id, group_id),
                    FOREIGN KEY(mutation_id) REFERENCES gene_mutations(id),
                    FOREIGN KEY(group_id) REFERENCES recommendation_groups(id)
                );

                CREATE TABLE IF NOT EXISTS gene_mutation_classes (
                    mutation_id TEXT NOT NULL,
                    class_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY(mutation_id, class_id),
                    FOREIGN KEY(mutation_id) REFERENCES gene_mutations(id),
                    FOREIGN KEY(class_id) REFERENCES recommendation_classes(id)
                );

                CREATE TABLE IF NOT EXISTS gene_mutation_group_overrides (
                    mutation_id TEXT NOT NULL,
                    group_id TEXT NOT NULL,
                    override TEXT NOT NULL CHECK(override IN ('include', 'exclude')),
                    created_at TEXT NOT NULL,
                    PRIMARY KEY(mutation_id, group_id),
                    FOREIGN KEY(mutation_id) REFERENCES gene_mutations(id),
                    FOREIGN KEY(group_id) REFERENCES recommendation_groups(id)
                );

                CREATE TABLE IF NOT EXISTS gene_risks (
                    id TEXT PRIMARY KEY,
                    gene_id TEXT NOT NULL,
                    sex TEXT,
                    risk TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(gene_id) REFERENCES genes(id)
                );
                """
            )

        if version < 2:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS gene_cancer_recommendations (
                    id TEXT PRIMARY KEY,
                    gene_id TEXT NOT NULL,
                    sex TEXT,
                    age_min INTEGER,
                    age_max INTEGER,
                    recommendations TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(gene_id) REFERENCES genes(id)
                );

                CREATE INDEX IF NOT EXISTS idx_groups_gene ON recommendation_groups(gene_id);
                CREATE INDEX IF NOT EXISTS idx_mutations_gene ON gene_mutations(gene_id);
                CREATE INDEX IF NOT EXISTS idx_risks_gene ON gene_risks(gene_id);
                CREATE INDEX IF NOT EXISTS idx_cancer_recs_gene ON gene_cancer_recommendations(gene_id);
                """
            )

        if version < SCHEMA_VERSION:
            self.conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            self.conn.commit()

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    # ---------- reads keyed by id lists ----------

    def _select_in(self, table: str, columns: str, key: str, ids: Iterable[str]) -> list[dict]:
        keys = unique_ids(ids)
        rows: list[dict] = []
        for start in range(0, len(keys), IN_CHUNK_SIZE):
            chunk = keys[start:start + IN_CHUNK_SIZE]
            placeholders = ", ".join("?" for _ in chunk)
            cur = self.conn.execute(
                f"SELECT {columns} FROM {table} WHERE {key} IN ({placeholders}) ORDER BY created_at, rowid",
                chunk,
            )
            rows.extend(dict(row) for row in cur.fetchall())
        return rows

    def fetch_genes(self, gene_ids: Iterable[str]) -> list[dict]:
        return self._select_in("genes", GENE_COLUMNS, "id", gene_ids)

    def fetch_mutations(self, mutation_ids: Iterable[str]) -> list[dict]:
        return self._select_in("gene_mutations", MUTATION_COLUMNS, "id", mutation_ids)

    def fetch_classes(self, gene_ids: Iterable[str]) -> list[dict]:
        return self._select_in("recommendation_classes", CLASS_COLUMNS, "gene_id", gene_ids)

    def fetch_groups(self, gene_ids: Iterable[str]) -> list[dict]:
        return self._select_in("recommendation_groups", GROUP_COLUMNS, "gene_id", gene_ids)

    def fetch_risks(self, gene_ids: Iterable[str]) -> list[dict]:
        return self._select_in("gene_risks", RISK_COLUMNS, "gene_id", gene_ids)

    def fetch_cancer_recommendations(self, gene_ids: Iterable[str]) -> list[dict]:
        return self._select_in("gene_cancer_recommendations", CANCER_REC_COLUMNS, "gene_id", gene_ids)

    def fetch_group_class_links(self, group_ids: Iterable[str]) -> list[dict]:
        return self._select_in("recommendation_group_classes", "group_id, class_id", "group_id", group_ids)

    def fetch_mutation_group_links(self, mutation_ids: Iterable[str]) -> list[dict]:
        return self._select_in("gene_mutation_groups", "mutation_id, group_id", "mutation_id", mutation_ids)

    def fetch_mutation_class_links(self, mutation_ids: Iterable[str]) -> list[dict]:
        return self._select_in("gene_mutation_classes", "mutation_id, class_id", "mutation_id", mutation_ids)

    def fetch_overrides(self, mutation_ids: Iterable[str]) -> list[dict]:
        return self._select_in(
            "gene_mutation_group_overrides",
            "mutation_id, group_id, override",
            "mutation_id",
            mutation_ids,
        )

    # ---------- catalog reads used by the generator form ----------

    def list_genes(self) -> list[dict]:
        cur = self.conn.execute(f"SELECT {GENE_COLUMNS} FROM genes ORDER BY symbol")
        return [dict(row) for row in cur.fetchall()]

    def list_mutations(self, gene_ids: Iterable[str]) -> list[dict]:
        rows = self._select_in("gene_mutations", MUTATION_COLUMNS, "gene_id", gene_ids)
        return sorted(rows, key=lambda row: (row["gene_id"], row["mutation"]))

    # ---------- authoring ----------

    def add_gene(self, symbol: str, name: str | None = None, *, gene_id: str | None = None) -> str:
        symbol = symbol.strip()
        if not symbol:
            raise ValueError("Gene symbol is required.")
        gene_id = gene_id or safe_uuid()
        self.conn.execute(
            "INSERT INTO genes (id, symbol, name, created_at) VALUES (?, ?, ?, ?)",
            (gene_id, symbol, (name or "").strip() or None, utc_now_iso()),
        )
        self.conn.commit()
        return gene_id

    def add_class(self, gene_id: str, name: str, *, class_id: str | None = None) -> str:
        name = name.strip()
        if not name:
            raise ValueError("Class name cannot be empty.")
        class_id = class_id or safe_uuid()
        self.conn.execute(
            "INSERT INTO recommendation_classes (id, gene_id, name, created_at) VALUES (?, ?, ?, ?)",
            (class_id, gene_id, name, utc_now_iso()),
        )
        self.conn.commit()
        return class_id

    def add_group(
        self,
        gene_id: str,
        recommendations: str,
        *,
        sex: str | None = None,
        age_min: int | None = None,
        age_max: int | None = None,
        applies_to_all_classes: bool = False,
        class_ids: Sequence[str] = (),
        group_id: str | None = None,
    ) -> str:
        if not recommendations.strip():
            raise ValueError("Recommendations text is required.")
        group_id = group_id or safe_uuid()
        created_at = utc_now_iso()
        self.conn.execute(
            f"INSERT INTO recommendation_groups ({GROUP_COLUMNS}, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                group_id,
                gene_id,
                _sex_value(sex),
                age_min,
                age_max,
                recommendations,
                int(applies_to_all_classes),
                created_at,
            ),
        )
        # applies-to-all groups cover every class implicitly; links would be redundant
        if not applies_to_all_classes:
            self.conn.executemany(
                "INSERT OR IGNORE INTO recommendation_group_classes (group_id, class_id, created_at)"
                " VALUES (?, ?, ?)",
                [(group_id, class_id, created_at) for class_id in unique_ids(class_ids)],
            )
        self.conn.commit()
        return group_id

    def add_mutation(
        self,
        gene_id: str,
        mutation: str,
        pathogenicity: str = Pathogenicity.PATHOGENIC.value,
        *,
        mutation_id: str | None = None,
    ) -> str:
        mutation = mutation.strip()
        if not mutation:
            raise ValueError("Mutation cannot be empty.")
        pathogenicity = Pathogenicity(pathogenicity).value
        mutation_id = mutation_id or safe_uuid()
        self.conn.execute(
            f"INSERT INTO gene_mutations ({MUTATION_COLUMNS}, created_at) VALUES (?, ?, ?, ?, ?)",
            (mutation_id, gene_id, mutation, pathogenicity, utc_now_iso()),
        )
        self.conn.commit()
        return mutation_id

    def _mutation_gene_id(self, mutation_id: str) -> str:
        row = self.conn.execute("SELECT gene_id FROM gene_mutations WHERE id = ?", (mutation_id,)).fetchone()
        if row is None:
            raise ValueError(f"Unknown mutation: {mutation_id}")
        return row["gene_id"]

    def _ids_for_gene(self, table: str, gene_id: str) -> set[str]:
        cur = self.conn.execute(f"SELECT id FROM {table} WHERE gene_id = ?", (gene_id,))
        return {row["id"] for row in cur.fetchall()}

    def set_mutation_links(
        self,
        mutation_id: str,
        *,
        group_ids: Sequence[str] = (),
        class_ids: Sequence[str] = (),
        overrides: Mapping[str, str] | None = None,
    ) -> None:
        """Replace a mutation's manual links, class links and overrides.

        Ids that do not belong to the mutation's gene are ignored.
        """
        gene_id = self._mutation_gene_id(mutation_id)
        allowed_groups = self._ids_for_gene("recommendation_groups", gene_id)
        allowed_classes = self._ids_for_gene("recommendation_classes", gene_id)
        created_at = utc_now_iso()

        override_rows = []
        for group_id, choice in (overrides or {}).items():
            if group_id not in allowed_groups or choice == "default":
                continue
            override_rows.append((mutation_id, group_id, OverrideValue(choice).value, created_at))

        try:
            self.conn.execute("DELETE FROM gene_mutation_groups WHERE mutation_id = ?", (mutation_id,))
            self.conn.executemany(
                "INSERT INTO gene_mutation_groups (mutation_id, group_id, created_at) VALUES (?, ?, ?)",
                [(mutation_id, gid, created_at) for gid in unique_ids(group_ids) if gid in allowed_groups],
            )
            self.conn.execute("DELETE FROM gene_mutation_classes WHERE mutation_id = ?", (mutation_id,))
            self.conn.executemany(
                "INSERT INTO gene_mutation_classes (mutation_id, class_id, created_at) VALUES (?, ?, ?)",
                [(mutation_id, cid, created_at) for cid in unique_ids(class_ids) if cid in allowed_classes],
            )
            self.conn.execute("DELETE FROM gene_mutation_group_overrides WHERE mutation_id = ?", (mutation_id,))
            self.conn.executemany(
                "INSERT INTO gene_mutation_group_overrides (mutation_id, group_id, override, created_at)"
                " VALUES (?, ?, ?, ?)",
                override_rows,
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def add_risk(self, gene_id: str, risk: str, *, sex: str | None = None, risk_id: str | None = None) -> str:
        risk = risk.strip()
        if not risk:
            raise ValueError("Risk text is required.")
        risk_id = risk_id or safe_uuid()
        self.conn.execute(
            f"INSERT INTO gene_risks ({RISK_COLUMNS}, created_at) VALUES (?, ?, ?, ?, ?)",
            (risk_id, gene_id, _sex_value(sex), risk, utc_now_iso()),
        )
        self.conn.commit()
        return risk_id

    def add_cancer_recommendation(
        self,
        gene_id: str,
        recommendations: str,
        *,
        sex: str | None = None,
        age_min: int | None = None,
        age_max: int | None = None,
        rec_id: str | None = None,
    ) -> str:
        if not recommendations.strip():
            raise ValueError("Recommendations text is required.")
        rec_id = rec_id or safe_uuid()
        self.conn.execute(
            f"INSERT INTO gene_cancer_recommendations ({CANCER_REC_COLUMNS}, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            (rec_id, gene_id, _sex_value(sex), age_min, age_max, recommendations, utc_now_iso()),
        )
        self.conn.commit()
        return rec_id

    def delete_mutation(self, mutation_id: str) -> None:
        self.conn.execute("DELETE FROM gene_mutation_groups WHERE mutation_id = ?", (mutation_id,))
        self.conn.execute("DELETE FROM gene_mutation_classes WHERE mutation_id = ?", (mutation_id,))
        self.conn.execute("DELETE FROM gene_mutation_group_overrides WHERE mutation_id = ?", (mutation_id,))
        self.conn.execute("DELETE FROM gene_mutations WHERE id = ?", (mutation_id,))
        self.conn.commit()

    def delete_group(self, group_id: str) -> None:
        self.conn.execute("DELETE FROM gene_mutation_groups WHERE group_id = ?", (group_id,))
        self.conn.execute("DELETE FROM recommendation_group_classes WHERE group_id = ?", (group_id,))
        self.conn.execute("DELETE FROM gene_mutation_group_overrides WHERE group_id = ?", (group_id,))
        self.conn.execute("DELETE FROM recommendation_groups WHERE id = ?", (group_id,))
        self.conn.commit()

    def load_snapshot(self, snapshot: CatalogSnapshot) -> dict[str, int]:
        """Bulk insert a catalog, keeping its ids. Returns row counts per table."""
        created_at = utc_now_iso()
        tables: list[tuple[str, str, list[tuple]]] = [
            ("genes", GENE_COLUMNS, [(g.id, g.symbol, g.name) for g in snapshot.genes]),
            ("recommendation_classes", CLASS_COLUMNS, [(c.id, c.gene_id, c.name) for c in snapshot.classes]),
            (
                "recommendation_groups",
                GROUP_COLUMNS,
                [
                    (
                        g.id,
                        g.gene_id,
                        _sex_value(g.sex.value),
                        g.age_min,
                        g.age_max,
                        g.recommendations,
                        int(g.applies_to_all_classes),
                    )
                    for g in snapshot.groups
                ],
            ),
            (
                "recommendation_group_classes",
                "group_id, class_id",
                [(link.group_id, link.class_id) for link in snapshot.group_class_links],
            ),
            (
                "gene_mutations",
                MUTATION_COLUMNS,
                [(m.id, m.gene_id, m.mutation, m.pathogenicity.value) for m in snapshot.mutations],
            ),
            (
                "gene_mutation_groups",
                "mutation_id, group_id",
                [(link.mutation_id, link.group_id) for link in snapshot.mutation_group_links],
            ),
            (
                "gene_mutation_classes",
                "mutation_id, class_id",
                [(link.mutation_id, link.class_id) for link in snapshot.mutation_class_links],
            ),
            (
                "gene_mutation_group_overrides",
                "mutation_id, group_id, override",
                [(o.mutation_id, o.group_id, o.override.value) for o in snapshot.overrides],
            ),
            (
                "gene_risks",
                RISK_COLUMNS,
                [(r.id, r.gene_id, _sex_value(r.sex.value), r.risk) for r in snapshot.risks],
            ),
            (
                "gene_cancer_recommendations",
                CANCER_REC_COLUMNS,
                [
                    (r.id, r.gene_id, _sex_value(r.sex.value), r.age_min, r.age_max, r.recommendations)
                    for r in snapshot.cancer_recommendations
                ],
            ),
        ]

        counts: dict[str, int] = {}
        try:
            for table, columns, rows in tables:
                placeholders = ", ".join("?" for _ in range(columns.count(",") + 2))
                self.conn.executemany(
                    f"INSERT OR REPLACE INTO {table} ({columns}, created_at) VALUES ({placeholders})",
                    [row + (created_at,) for row in rows],
                )
                counts[table] = len(rows)
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return counts
