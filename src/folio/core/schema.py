"""
Catalog schema bootstrapped on first connect.

Every statement is idempotent (``IF NOT EXISTS`` / ``ON CONFLICT DO
NOTHING``) so the script can run on every process start. There is no
migration engine: columns added later use ``ADD COLUMN IF NOT EXISTS``.

Table Registry (TABLES):
    users             accounts and roles
    books             catalog entries
    user_collections  books a user has collected
    reset_tokens      password reset tokens
    authors           author records
    author_books      author/book link, composite key (no ``id``)
    reviews           user reviews, 1..5 stars
    site_settings     single-row site configuration
"""

from __future__ import annotations

TABLES: tuple[str, ...] = (
    "users",
    "books",
    "user_collections",
    "reset_tokens",
    "authors",
    "author_books",
    "reviews",
    "site_settings",
)

# Tables whose primary key is not a single ``id`` column.
TABLES_WITHOUT_ID: tuple[str, ...] = ("author_books",)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id BIGSERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT UNIQUE NOT NULL,
    password TEXT NOT NULL,
    email_verified BOOLEAN DEFAULT FALSE,
    verification_token TEXT,
    verification_token_expires TIMESTAMPTZ,
    role TEXT DEFAULT 'USER',
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS books (
    id BIGSERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    isbn TEXT UNIQUE,
    isbn10 TEXT UNIQUE,
    isbn13 TEXT UNIQUE,
    publish_year INTEGER,
    author TEXT,
    cover TEXT,
    cover_key TEXT,
    description TEXT,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
);

ALTER TABLE books ADD COLUMN IF NOT EXISTS cover_key TEXT;

CREATE TABLE IF NOT EXISTS user_collections (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    book_id BIGINT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, book_id)
);

CREATE TABLE IF NOT EXISTS reset_tokens (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    token TEXT NOT NULL,
    expires_at TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS authors (
    id BIGSERIAL PRIMARY KEY,
    name TEXT UNIQUE NOT NULL,
    biography TEXT,
    birth_date TEXT,
    photo_url TEXT,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS author_books (
    author_id BIGINT NOT NULL REFERENCES authors(id) ON DELETE CASCADE,
    book_id BIGINT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    is_primary BOOLEAN DEFAULT FALSE,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (author_id, book_id)
);

CREATE TABLE IF NOT EXISTS reviews (
    id BIGSERIAL PRIMARY KEY,
    book_id BIGINT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    user_id BIGINT REFERENCES users(id) ON DELETE SET NULL,
    username TEXT NOT NULL,
    rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
    comment TEXT NOT NULL,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_author_books_author ON author_books(author_id);
CREATE INDEX IF NOT EXISTS idx_author_books_book ON author_books(book_id);
CREATE INDEX IF NOT EXISTS idx_reviews_book ON reviews(book_id);
CREATE INDEX IF NOT EXISTS idx_reviews_user ON reviews(user_id);

CREATE TABLE IF NOT EXISTS site_settings (
    id INTEGER PRIMARY KEY DEFAULT 1,
    show_about_page BOOLEAN DEFAULT TRUE,
    show_contact_page BOOLEAN DEFAULT TRUE,
    site_name TEXT DEFAULT 'Folio',
    site_description TEXT DEFAULT 'Your digital library management system',
    logo_url TEXT,
    favicon_url TEXT,
    seo_keywords TEXT,
    hero_title TEXT DEFAULT 'Your Digital Library Awaits',
    hero_subtitle TEXT DEFAULT 'Discover, collect, and manage your favorite books in one beautiful place.',
    hero_cta_text TEXT DEFAULT 'Get Started',
    hero_cta_link TEXT DEFAULT '/signup',
    hero_image_url TEXT,
    footer_text TEXT DEFAULT 'All rights reserved.',
    footer_links JSONB DEFAULT '[]',
    social_links JSONB DEFAULT '[]',
    contact_email TEXT,
    contact_phone TEXT,
    contact_address TEXT,
    contact_form_enabled BOOLEAN DEFAULT TRUE,
    smtp_enabled BOOLEAN DEFAULT FALSE,
    smtp_from_name TEXT DEFAULT 'Folio',
    smtp_from_email TEXT,
    email_test_rate_limit INTEGER DEFAULT 5,
    email_test_count INTEGER DEFAULT 0,
    email_test_reset_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    mobile_app_enabled BOOLEAN DEFAULT FALSE,
    mobile_api_base_url TEXT,
    mobile_app_store_url TEXT,
    mobile_play_store_url TEXT,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    CONSTRAINT single_row CHECK (id = 1)
);

INSERT INTO site_settings (id) VALUES (1) ON CONFLICT DO NOTHING;
"""


__all__ = [
    "TABLES",
    "TABLES_WITHOUT_ID",
    "SCHEMA_SQL",
]
