#!/usr/bin/env python3
"""
Table definitions for feeds and articles.

Unique constraints on articles back the skip-on-conflict insert: two fetch
cycles racing on the same guid or link produce one row.
"""

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS feeds (
        id BIGSERIAL PRIMARY KEY,
        url TEXT NOT NULL UNIQUE,
        title TEXT NOT NULL,
        description TEXT,
        last_fetched_at TIMESTAMPTZ,
        etag TEXT,
        last_modified TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS articles (
        id BIGSERIAL PRIMARY KEY,
        feed_id BIGINT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
        guid TEXT UNIQUE,
        link TEXT NOT NULL UNIQUE,
        content_hash VARCHAR(64),
        title TEXT NOT NULL,
        description TEXT,
        content TEXT,
        author TEXT,
        pub_date TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_feed_content_hash ON articles (feed_id, content_hash)",
    "CREATE INDEX IF NOT EXISTS idx_feeds_last_fetched_at ON feeds (last_fetched_at)",
]
