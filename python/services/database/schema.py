"""Database schema (idempotent DDL applied by BaseClient.ensure_schema)."""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS photos (
    id BIGSERIAL PRIMARY KEY,
    storage_key TEXT NOT NULL,
    filename TEXT,
    processing_status TEXT NOT NULL DEFAULT 'pending'
        CHECK (processing_status IN ('pending', 'processing', 'completed', 'failed')),
    face_count INTEGER NOT NULL DEFAULT 0 CHECK (face_count >= 0),
    processing_attempts INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS people (
    id BIGSERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_people_name_lower ON people (LOWER(name));

CREATE TABLE IF NOT EXISTS photo_faces (
    id BIGSERIAL PRIMARY KEY,
    photo_id BIGINT NOT NULL REFERENCES photos(id),
    person_id BIGINT REFERENCES people(id) ON DELETE SET NULL,
    remote_template_id TEXT,
    confidence DOUBLE PRECISION CHECK (confidence BETWEEN 0 AND 100),
    detection_confidence DOUBLE PRECISION,
    bounding_box JSONB NOT NULL,
    quality_score DOUBLE PRECISION,
    review_status TEXT NOT NULL DEFAULT 'pending'
        CHECK (review_status IN ('pending', 'review', 'confirmed', 'rejected')),
    is_confirmed BOOLEAN NOT NULL DEFAULT FALSE,
    detection_method TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT photo_faces_template_needs_person
        CHECK (person_id IS NOT NULL OR remote_template_id IS NULL)
);

CREATE INDEX IF NOT EXISTS idx_photo_faces_photo ON photo_faces (photo_id);
CREATE INDEX IF NOT EXISTS idx_photo_faces_person ON photo_faces (person_id);
CREATE INDEX IF NOT EXISTS idx_photo_faces_template ON photo_faces (remote_template_id);

CREATE TABLE IF NOT EXISTS face_encodings (
    id BIGSERIAL PRIMARY KEY,
    person_id BIGINT NOT NULL REFERENCES people(id),
    remote_template_id TEXT NOT NULL UNIQUE,
    confidence DOUBLE PRECISION,
    source_image_ref TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_face_encodings_person ON face_encodings (person_id);
"""
