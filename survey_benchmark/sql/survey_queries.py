"""
Parameterized SQL for the survey store.

Tables:
    survey                    - one row per uploaded survey
    survey_row                - raw uploaded rows as JSONB, ordered by row_index
    column_mapping            - canonical field -> uploaded column names
    specialty_mapping         - standardized specialty + JSONB source specialties
    learned_specialty_mapping - lower-cased original label -> corrected name

All queries use asyncpg positional placeholders ($1, $2, ...). JSONB columns
are exchanged as JSON text and decoded by the repository.
"""


# =============================================================================
# SCHEMA
# =============================================================================

SCHEMA_DDL: str = """
CREATE TABLE IF NOT EXISTS survey (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL DEFAULT '',
    survey_source   TEXT NOT NULL DEFAULT '',
    year            TEXT NOT NULL DEFAULT '',
    provider_type   TEXT NOT NULL DEFAULT '',
    row_count       INTEGER NOT NULL DEFAULT 0,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS survey_row (
    survey_id       TEXT NOT NULL REFERENCES survey(id) ON DELETE CASCADE,
    row_index       INTEGER NOT NULL,
    data            JSONB NOT NULL,
    PRIMARY KEY (survey_id, row_index)
);

CREATE TABLE IF NOT EXISTS column_mapping (
    id              TEXT PRIMARY KEY,
    survey_id       TEXT REFERENCES survey(id) ON DELETE CASCADE,
    survey_source   TEXT,
    standard_name   TEXT NOT NULL,
    mapped_columns  JSONB NOT NULL DEFAULT '[]'::jsonb
);

CREATE TABLE IF NOT EXISTS specialty_mapping (
    id                  TEXT PRIMARY KEY,
    standardized_name   TEXT NOT NULL,
    source_specialties  JSONB NOT NULL DEFAULT '[]'::jsonb,
    created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS specialty_mapping_name_idx
    ON specialty_mapping (LOWER(standardized_name));

CREATE TABLE IF NOT EXISTS learned_specialty_mapping (
    original_name   TEXT PRIMARY KEY,
    corrected_name  TEXT NOT NULL,
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


# =============================================================================
# SURVEYS
# =============================================================================

LIST_SURVEYS: str = """
    SELECT id, name, survey_source, year, provider_type, row_count
    FROM survey
    ORDER BY created_at, id
"""

GET_SURVEY_ROWS: str = """
    SELECT row_index, data
    FROM survey_row
    WHERE survey_id = $1
    ORDER BY row_index
    LIMIT $2 OFFSET $3
"""


# =============================================================================
# COLUMN MAPPINGS
# =============================================================================

LIST_COLUMN_MAPPINGS: str = """
    SELECT id, survey_id, survey_source, standard_name, mapped_columns
    FROM column_mapping
    ORDER BY standard_name, id
"""


# =============================================================================
# SPECIALTY MAPPINGS
# =============================================================================

LIST_SPECIALTY_MAPPINGS: str = """
    SELECT id, standardized_name, source_specialties, created_at, updated_at
    FROM specialty_mapping
    ORDER BY created_at, id
"""

UPSERT_SPECIALTY_MAPPING: str = """
    INSERT INTO specialty_mapping (id, standardized_name, source_specialties, created_at, updated_at)
    VALUES ($1, $2, $3::jsonb, COALESCE($4, NOW()), NOW())
    ON CONFLICT (id) DO UPDATE SET
        standardized_name = EXCLUDED.standardized_name,
        source_specialties = EXCLUDED.source_specialties,
        updated_at = NOW()
    RETURNING id, standardized_name, source_specialties, created_at, updated_at
"""

DELETE_SPECIALTY_MAPPING: str = """
    DELETE FROM specialty_mapping WHERE id = $1
"""


# =============================================================================
# LEARNED MAPPINGS
# =============================================================================

LIST_LEARNED_MAPPINGS: str = """
    SELECT original_name, corrected_name
    FROM learned_specialty_mapping
    ORDER BY original_name
"""

UPSERT_LEARNED_MAPPING: str = """
    INSERT INTO learned_specialty_mapping (original_name, corrected_name, updated_at)
    VALUES ($1, $2, NOW())
    ON CONFLICT (original_name) DO UPDATE SET
        corrected_name = EXCLUDED.corrected_name,
        updated_at = NOW()
"""

DELETE_LEARNED_MAPPING: str = """
    DELETE FROM learned_specialty_mapping WHERE original_name = $1
"""
