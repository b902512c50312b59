"""Shared pytest fixtures for schemascope tests."""

import sqlite3

import pytest

from schemascope.config import Settings
from schemascope.drivers import MariaDBDriver, MySQLDriver, PostgresDriver, SQLiteDriver

from .fixtures import FakeConnection, by_table, first_row


BLOG_DDL = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    email TEXT,
    active INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    body TEXT,
    CONSTRAINT posts_user_id_fk FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    CONSTRAINT posts_title_check CHECK (length(title) > 0)
);
CREATE INDEX posts_user_id_idx ON posts (user_id);
CREATE TABLE comments (
    id INTEGER PRIMARY KEY,
    post_id INTEGER NOT NULL REFERENCES posts (id),
    author_id INTEGER REFERENCES archived_users (id),
    body TEXT
);
CREATE VIEW active_users AS SELECT * FROM users WHERE active=1;
CREATE TRIGGER posts_touch AFTER UPDATE ON posts
BEGIN
    UPDATE users SET active = 1 WHERE id = NEW.user_id;
END;
"""

LINE_ITEMS_DDL = """
CREATE TABLE line_items (
    id INTEGER PRIMARY KEY,
    price REAL NOT NULL,
    qty INTEGER NOT NULL CHECK (qty > 0),
    total REAL GENERATED ALWAYS AS (price * qty) VIRTUAL,
    total_stored REAL AS (price * qty) STORED
);
"""


@pytest.fixture
def sequential_settings():
    """Settings that keep every fetch on the calling thread."""
    return Settings(max_workers=1)


@pytest.fixture
def blog_db():
    """In-memory SQLite database with users, posts, comments and a view."""
    conn = sqlite3.connect(":memory:")
    conn.executescript(BLOG_DDL)
    yield conn
    conn.close()


@pytest.fixture
def sqlite_driver(blog_db, sequential_settings):
    return SQLiteDriver(blog_db, settings=sequential_settings, schema_name="main")


# MySQL catalog rows for a small blog schema

MYSQL_TABLES = [
    ("users", "BASE TABLE", "registered users", None),
    ("posts", "BASE TABLE", "blog posts", None),
    ("active_users", "VIEW", "VIEW", None),
    ("audit_log", "SYSTEM VERSIONED", "", None),
]

MYSQL_CREATE_POSTS = (
    "CREATE TABLE `posts` (\n"
    "  `id` bigint NOT NULL AUTO_INCREMENT,\n"
    "  `user_id` int NOT NULL,\n"
    "  `title` varchar(255) NOT NULL,\n"
    "  PRIMARY KEY (`id`)\n"
    ") ENGINE=InnoDB AUTO_INCREMENT=42 DEFAULT CHARSET=utf8mb4"
)

MYSQL_CREATE_USERS = (
    "CREATE TABLE `users` (\n"
    "  `id` int NOT NULL AUTO_INCREMENT,\n"
    "  `username` varchar(50) NOT NULL,\n"
    "  PRIMARY KEY (`id`)\n"
    ") ENGINE=InnoDB AUTO_INCREMENT=7 DEFAULT CHARSET=utf8mb4"
)

MYSQL_COLUMNS = {
    "users": [
        ("id", None, "NO", "int", "", "auto_increment", ""),
        ("username", None, "NO", "varchar(50)", "login name", "", ""),
        ("email", None, "YES", "varchar(255)", "", "", None),
    ],
    "posts": [
        ("id", None, "NO", "bigint", "", "auto_increment", ""),
        ("user_id", None, "NO", "int", "", "", ""),
        ("title", None, "NO", "varchar(255)", "", "", ""),
        ("title_length", None, "YES", "int", "", "VIRTUAL GENERATED", "char_length(`title`)"),
        ("slug", None, "YES", "varchar(255)", "", "STORED GENERATED", "lower(`title`)"),
        ("created", "CURRENT_TIMESTAMP", "no", "datetime", "", "DEFAULT_GENERATED", "now()"),
        ("status", "draft", "", "varchar(10)", None, None, None),
    ],
    "active_users": [
        ("id", "0", "NO", "int", "", "", None),
        ("username", None, "NO", "varchar(50)", "", "", None),
    ],
    "audit_log": [],
}

MYSQL_INDEXES = {
    "users": [
        ("PRIMARY", 0, "BTREE", "id", ""),
    ],
    "posts": [
        ("PRIMARY", 0, "BTREE", "id", ""),
        ("posts_user_id_idx", 1, "BTREE", "user_id", "lookup by author"),
        ("posts_user_id_title_unique", 0, "BTREE", "user_id, title", ""),
        ("posts_title_fulltext", 1, "FULLTEXT", "title", ""),
    ],
}

MYSQL_CONSTRAINTS = {
    "users": [
        ("PRIMARY", "PRIMARY KEY", "id", None, None, None, None),
    ],
    "posts": [
        ("PRIMARY", "PRIMARY KEY", "id", None, None, None, None),
        ("posts_user_id_fk", "FOREIGN KEY", "user_id", "users", "id", "NO ACTION", "CASCADE"),
        ("posts_user_id_title_unique", "UNIQUE", "user_id, title", None, None, None, None),
    ],
}

MYSQL_TRIGGERS = {
    "posts": [
        ("update_posts_updated", "BEFORE", "UPDATE", "ROW", "SET NEW.updated = CURRENT_TIMESTAMP()"),
    ],
}


def _filter_tables(rows):
    def respond(params):
        pattern = params[1].strip("%")
        return [row for row in rows if pattern in row[0] or pattern in (row[2] or "")]
    return respond


def make_mysql_connection(version: str = "8.0.32") -> FakeConnection:
    conn = FakeConnection()
    conn.add_response(r"SELECT version\(\)", [(version,)])
    conn.add_response(r"FROM information_schema\.tables", _filter_tables(MYSQL_TABLES))
    conn.add_response(r"SHOW CREATE TABLE `blog`\.`posts`", [("posts", MYSQL_CREATE_POSTS)])
    conn.add_response(r"SHOW CREATE TABLE `blog`\.`users`", [("users", MYSQL_CREATE_USERS)])
    conn.add_response(
        r"FROM information_schema\.views",
        first_row({"active_users": ("select `blog`.`users`.`id` AS `id` from `blog`.`users` where `active` = 1",)}),
    )
    # Legacy servers get the six-column variant
    conn.add_response(
        r"FROM information_schema\.columns",
        by_table({name: [row[:6] for row in rows] for name, rows in MYSQL_COLUMNS.items()}),
    )
    conn.add_response(r"generation_expression\s+FROM information_schema\.columns", by_table(MYSQL_COLUMNS))
    conn.add_response(r"information_schema\.statistics", by_table(MYSQL_INDEXES))
    conn.add_response(r"information_schema\.key_column_usage", by_table(MYSQL_CONSTRAINTS))
    conn.add_response(r"information_schema\.check_constraints", by_table({}))
    conn.add_response(r"information_schema\.triggers", by_table(MYSQL_TRIGGERS))
    return conn


@pytest.fixture
def mysql_conn():
    return make_mysql_connection()


@pytest.fixture
def mysql_driver(mysql_conn, sequential_settings):
    return MySQLDriver(mysql_conn, settings=sequential_settings, schema_name="blog")


@pytest.fixture
def mariadb_conn():
    conn = make_mysql_connection("10.6.12-MariaDB-1:10.6.12+maria~ubu2004")
    conn.add_response(r"generation_expression\s+FROM information_schema\.columns", by_table({
        "users": [
            ("id", "NULL", "NO", "int(11)", "", "auto_increment", None),
            ("status", "'draft'", "NO", "varchar(10)", "", "", None),
            ("motto", "'it''s fine'", "YES", "varchar(50)", "", "", None),
            ("score", "0", "NO", "int(11)", "", "", None),
            ("created", "current_timestamp()", "NO", "datetime", "", "", None),
            ("upper_name", "NULL", "YES", "varchar(50)", "", "STORED GENERATED", "ucase(`status`)"),
        ],
    }))
    # Column-level checks are named after their column, so both tables have one called "status"
    conn.add_response(r"information_schema\.check_constraints", lambda params: [
        ("status", "`status` in ('draft','live')"),
        ("status", "`status` <> ''"),
    ])
    conn.add_response(r"cc\.table_name = %s", by_table({
        "users": [("status", "`status` in ('draft','live')")],
        "posts": [("status", "`status` <> ''")],
    }))
    return conn


@pytest.fixture
def mariadb_driver(mariadb_conn, sequential_settings):
    return MariaDBDriver(mariadb_conn, settings=sequential_settings, schema_name="blog")


# PostgreSQL catalog rows

POSTGRES_TABLES = [
    ("users", "BASE TABLE", "registered users"),
    ("orders", "BASE TABLE", None),
    ("active_users", "VIEW", None),
    ("user_stats", "MATERIALIZED VIEW", "rollup"),
]

POSTGRES_COLUMNS = {
    "users": [
        ("id", None, "NO", "integer", None, "GENERATED ALWAYS AS IDENTITY", None),
        ("name", None, "NO", "character varying(100)", "display name", "", None),
        ("active", "true", "YES", "boolean", None, "", None),
    ],
    "orders": [
        ("id", "nextval('orders_id_seq'::regclass)", "NO", "integer", None, "", None),
        ("user_id", None, "NO", "integer", None, "", None),
        ("price", None, "NO", "numeric(10,2)", None, "", None),
        ("qty", "1", "NO", "integer", None, "", None),
        ("total", None, "YES", "numeric", None, "STORED GENERATED", "(price * qty::numeric)"),
        ("coupon_id", None, "YES", "integer", None, "", None),
    ],
    "active_users": [
        ("id", None, "YES", "integer", None, "", None),
        ("name", None, "YES", "character varying(100)", None, "", None),
    ],
    "user_stats": [
        ("user_id", None, "YES", "integer", None, "", None),
    ],
}

POSTGRES_INDEXES = {
    "users": [
        ("users_pkey", "CREATE UNIQUE INDEX users_pkey ON public.users USING btree (id)", "id", True, True, None),
    ],
    "orders": [
        ("orders_pkey", "CREATE UNIQUE INDEX orders_pkey ON public.orders USING btree (id)", "id", True, True, None),
        ("orders_user_id_idx", "CREATE INDEX orders_user_id_idx ON public.orders USING btree (user_id)",
         "user_id", False, False, "orders by user"),
    ],
}

POSTGRES_CONSTRAINTS = {
    "users": [
        ("users_pkey", "p", "PRIMARY KEY (id)", "id", None, ""),
    ],
    "orders": [
        ("orders_coupon_id_fkey", "f", "FOREIGN KEY (coupon_id) REFERENCES coupons(id)", "coupon_id", "coupons", "id"),
        ("orders_pkey", "p", "PRIMARY KEY (id)", "id", None, ""),
        ("orders_qty_check", "c", "CHECK (qty > 0)", "qty", None, ""),
        ("orders_user_id_fkey", "f", "FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE",
         "user_id", "users", "id"),
    ],
}

POSTGRES_TRIGGERS = {
    "orders": [
        ("orders_audit", "AFTER", "INSERT OR UPDATE",
         "CREATE TRIGGER orders_audit AFTER INSERT OR UPDATE ON public.orders "
         "FOR EACH ROW EXECUTE FUNCTION audit()"),
    ],
}


def make_postgres_connection(version: str = "15.2", version_num: str = "150002") -> FakeConnection:
    conn = FakeConnection()
    conn.add_response(r"server_version_num", [(version, version_num)])
    conn.add_response(r"FROM pg_class AS c", _filter_tables(POSTGRES_TABLES))
    conn.add_response(
        r"FROM information_schema\.views",
        first_row({"active_users": (" SELECT users.id,\n    users.name\n   FROM users\n  WHERE users.active;",)}),
    )
    conn.add_response(
        r"FROM pg_attribute AS a",
        by_table({name: [row[:6] for row in rows] for name, rows in POSTGRES_COLUMNS.items()}),
    )
    conn.add_response(r"attgenerated", by_table(POSTGRES_COLUMNS))
    conn.add_response(r"FROM pg_index AS x", by_table(POSTGRES_INDEXES))
    conn.add_response(r"FROM pg_constraint AS con", by_table(POSTGRES_CONSTRAINTS))
    conn.add_response(r"FROM pg_trigger AS t", by_table(POSTGRES_TRIGGERS))
    return conn


@pytest.fixture
def postgres_conn():
    return make_postgres_connection()


@pytest.fixture
def postgres_driver(postgres_conn, sequential_settings):
    return PostgresDriver(postgres_conn, settings=sequential_settings, schema_name="public")
