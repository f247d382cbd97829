"""
SQL statements for the insights_cache table.

Every write is scoped by the natural key (user_id, period, version) and is a
single statement. Race-sensitive transitions are conditional writes rather
than read-then-write sequences: the pending -> calculating claim, the dead-row
overwrite on creation, and the worker writes that finish a claimed entry
(which only apply while the row is still calculating).

Parameter conventions (asyncpg positional placeholders):
    $1 = user_id, $2 = period, $3 = version, then statement-specific values.
"""


# =============================================================================
# SCHEMA
# =============================================================================

INSIGHTS_CACHE_DDL = """
CREATE TABLE IF NOT EXISTS insights_cache (
    id              BIGSERIAL PRIMARY KEY,
    user_id         TEXT        NOT NULL,
    period          TEXT        NOT NULL
                    CHECK (period IN ('7d', '30d', '90d', 'yearly')),
    version         TEXT        NOT NULL,
    status          TEXT        NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'calculating', 'completed', 'error')),
    inputs_hash     TEXT        NOT NULL DEFAULT '',
    insights        JSONB       NOT NULL DEFAULT '[]'::jsonb,
    total_links     INTEGER     NOT NULL DEFAULT 0,
    total_clicks    BIGINT      NOT NULL DEFAULT 0,
    start_date      DATE,
    end_date        DATE,
    error           TEXT,
    calculated_at   TIMESTAMPTZ,
    expires_at      TIMESTAMPTZ NOT NULL,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT insights_cache_user_period_version_key
        UNIQUE (user_id, period, version)
);

CREATE INDEX IF NOT EXISTS insights_cache_status_created_idx
    ON insights_cache (status, created_at);

CREATE INDEX IF NOT EXISTS insights_cache_expires_idx
    ON insights_cache (expires_at);
"""


CACHE_COLUMNS = """
    user_id, period, version, status, inputs_hash, insights,
    total_links, total_clicks, start_date, end_date, error,
    calculated_at, expires_at, created_at, updated_at
"""


# =============================================================================
# READS
# =============================================================================

# $4 = now
SELECT_LIVE_CACHE = f"""
    SELECT {CACHE_COLUMNS}
    FROM insights_cache
    WHERE user_id = $1
      AND period = $2
      AND version = $3
      AND status IN ('pending', 'calculating', 'completed')
      AND expires_at > $4
"""

SELECT_CACHE = f"""
    SELECT {CACHE_COLUMNS}
    FROM insights_cache
    WHERE user_id = $1
      AND period = $2
      AND version = $3
"""

# $1 = version, $2 = now, $3 = limit
SELECT_PENDING_CACHES = f"""
    SELECT {CACHE_COLUMNS}
    FROM insights_cache
    WHERE status = 'pending'
      AND version = $1
      AND expires_at > $2
    ORDER BY created_at ASC
    LIMIT $3
"""

SELECT_STATUS_COUNTS = """
    SELECT status, COUNT(*) AS count
    FROM insights_cache
    GROUP BY status
"""


# =============================================================================
# STATE TRANSITIONS
# =============================================================================

# Creates a pending entry, or resets a dead one in place. The conflict branch
# only fires when the existing row has expired, so a live row written by a
# concurrent creator is left alone and no row is returned. The previous hash,
# insights and totals survive the reset for the unchanged-inputs path.
# $4 = expires_at, $5 = now
UPSERT_PENDING_CACHE = f"""
    INSERT INTO insights_cache (
        user_id, period, version, status, inputs_hash, insights,
        total_links, total_clicks, expires_at, created_at, updated_at
    ) VALUES (
        $1, $2, $3, 'pending', '', '[]'::jsonb, 0, 0, $4, $5, $5
    )
    ON CONFLICT (user_id, period, version)
    DO UPDATE SET
        status = 'pending',
        error = NULL,
        expires_at = EXCLUDED.expires_at,
        created_at = EXCLUDED.created_at,
        updated_at = EXCLUDED.updated_at
    WHERE insights_cache.expires_at <= EXCLUDED.created_at
    RETURNING {CACHE_COLUMNS}
"""

# The claim: one round trip, match on status and set status.
# $4 = now
CLAIM_PENDING_CACHE = """
    UPDATE insights_cache
    SET status = 'calculating',
        updated_at = $4
    WHERE user_id = $1
      AND period = $2
      AND version = $3
      AND status = 'pending'
"""

# Worker writes only land on the entry they claimed: a row that was invalidated
# and recreated as pending meanwhile is left alone.
# $4 = inputs_hash, $5 = insights, $6 = total_links, $7 = total_clicks,
# $8 = start_date, $9 = end_date, $10 = calculated_at, $11 = expires_at, $12 = now
UPSERT_COMPLETED_CACHE = """
    INSERT INTO insights_cache (
        user_id, period, version, status, inputs_hash, insights,
        total_links, total_clicks, start_date, end_date, error,
        calculated_at, expires_at, created_at, updated_at
    ) VALUES (
        $1, $2, $3, 'completed', $4, $5, $6, $7, $8, $9, NULL, $10, $11, $12, $12
    )
    ON CONFLICT (user_id, period, version)
    DO UPDATE SET
        status = 'completed',
        inputs_hash = EXCLUDED.inputs_hash,
        insights = EXCLUDED.insights,
        total_links = EXCLUDED.total_links,
        total_clicks = EXCLUDED.total_clicks,
        start_date = EXCLUDED.start_date,
        end_date = EXCLUDED.end_date,
        error = NULL,
        calculated_at = EXCLUDED.calculated_at,
        expires_at = EXCLUDED.expires_at,
        updated_at = EXCLUDED.updated_at
    WHERE insights_cache.status = 'calculating'
"""

# $4 = expires_at, $5 = now, $6 = start_date, $7 = end_date
REFRESH_COMPLETED_CACHE = """
    UPDATE insights_cache
    SET status = 'completed',
        error = NULL,
        expires_at = $4,
        updated_at = $5,
        start_date = COALESCE($6, start_date),
        end_date = COALESCE($7, end_date)
    WHERE user_id = $1
      AND period = $2
      AND version = $3
      AND status = 'calculating'
"""

# $4 = error message, $5 = expires_at, $6 = now
MARK_CACHE_ERROR = """
    UPDATE insights_cache
    SET status = 'error',
        error = $4,
        expires_at = $5,
        updated_at = $6
    WHERE user_id = $1
      AND period = $2
      AND version = $3
      AND status = 'calculating'
"""


# =============================================================================
# DELETES
# =============================================================================

DELETE_USER_CACHES = """
    DELETE FROM insights_cache
    WHERE user_id = $1
"""

DELETE_CACHE = """
    DELETE FROM insights_cache
    WHERE user_id = $1
      AND period = $2
      AND version = $3
"""

# $1 = now
DELETE_EXPIRED_CACHES = """
    DELETE FROM insights_cache
    WHERE expires_at < $1
"""


__all__ = [
    'INSIGHTS_CACHE_DDL',
    'CACHE_COLUMNS',
    'SELECT_LIVE_CACHE',
    'SELECT_CACHE',
    'SELECT_PENDING_CACHES',
    'SELECT_STATUS_COUNTS',
    'UPSERT_PENDING_CACHE',
    'CLAIM_PENDING_CACHE',
    'UPSERT_COMPLETED_CACHE',
    'REFRESH_COMPLETED_CACHE',
    'MARK_CACHE_ERROR',
    'DELETE_USER_CACHES',
    'DELETE_CACHE',
    'DELETE_EXPIRED_CACHES',
]
