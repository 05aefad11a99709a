"""
Database manager for SST.

This module implements the content store on DuckDB: posts, terms, their meta
and the relationships between them.
"""

import duckdb
import json
import logging
import re
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional
from datetime import datetime

from ..config import config
from ..errors import NotFoundError, StoreError, TermExistsError
from ..models import Post, Term
from .base import ContentStore, OVERWRITE, REPLACE_LIST


VALID_STATUSES = ["publish", "future", "draft", "pending", "private", "inherit", "trash"]

# Post model field -> posts column
POST_COLUMNS = {
    "post_type": "post_type",
    "title": "title",
    "content": "content",
    "excerpt": "excerpt",
    "status": "status",
    "slug": "slug",
    "parent": "parent",
    "author": "author",
    "menu_order": "menu_order",
    "date": "post_date",
    "date_gmt": "post_date_gmt",
    "mime_type": "mime_type",
    "file_path": "file_path",
}

POST_SELECT = """
    SELECT p.id, p.post_type, p.title, p.content, p.excerpt, p.status, p.slug,
           p.parent, p.author, p.menu_order, p.post_date, p.post_date_gmt,
           p.mime_type, p.file_path, p.modified_at
    FROM posts p
"""

TERM_SELECT = """
    SELECT term_id, name, slug, taxonomy, description, parent
    FROM terms
"""

META_TABLES = {
    "post": ("postmeta", "post_id"),
    "term": ("termmeta", "term_id"),
}


def slugify(text: str) -> str:
    """
    Build a URL-safe slug from a display name.

    Args:
        text: The text to convert

    Returns:
        Lowercase slug with runs of non-word characters collapsed to "-"
    """
    slug = re.sub(r"[^\w]+", "-", (text or "").lower(), flags=re.UNICODE)
    slug = slug.replace("_", "-")
    slug = re.sub(r"-{2,}", "-", slug).strip("-")
    return slug


class DatabaseManager(ContentStore):
    """
    Manages the DuckDB database holding posts, terms and meta.
    """

    def __init__(self, db_path: Optional[str] = None,
                 post_types: Optional[List[str]] = None,
                 taxonomies: Optional[List[str]] = None,
                 base_url: Optional[str] = None,
                 uploads_url: Optional[str] = None,
                 image_sizes: Optional[Dict[str, List[int]]] = None):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the DuckDB database file (defaults to config value)
            post_types: Registered post types (defaults to config value)
            taxonomies: Registered taxonomies (defaults to config value)
            base_url: Site base URL used for permalinks (defaults to config value)
            uploads_url: Base URL of stored files (defaults to config value)
            image_sizes: Named image sizes (defaults to config value)
        """
        self.db_path = db_path or config.database_filename
        self.post_types = list(post_types or config.post_types)
        self.taxonomies = list(taxonomies or config.taxonomies)
        self.base_url = (base_url or config.base_url).rstrip('/')
        if uploads_url:
            self.uploads_url = uploads_url.rstrip('/')
        elif base_url:
            self.uploads_url = f"{self.base_url}/uploads"
        else:
            self.uploads_url = config.uploads_url
        self.image_sizes = image_sizes if image_sizes is not None else config.image_sizes
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _conn(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        conn = self._conn()

        conn.execute("CREATE SEQUENCE IF NOT EXISTS post_id_seq;")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS posts (
                id BIGINT PRIMARY KEY DEFAULT nextval('post_id_seq'),
                post_type VARCHAR NOT NULL,
                title VARCHAR DEFAULT '',
                content VARCHAR DEFAULT '',
                excerpt VARCHAR DEFAULT '',
                status VARCHAR NOT NULL,
                slug VARCHAR,
                parent BIGINT,
                author BIGINT,
                menu_order INTEGER DEFAULT 0,
                post_date VARCHAR,
                post_date_gmt VARCHAR,
                mime_type VARCHAR,
                file_path VARCHAR,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                modified_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("CREATE SEQUENCE IF NOT EXISTS postmeta_id_seq;")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS postmeta (
                meta_id BIGINT PRIMARY KEY DEFAULT nextval('postmeta_id_seq'),
                post_id BIGINT NOT NULL,
                meta_key VARCHAR NOT NULL,
                meta_value VARCHAR
            )
        """)

        conn.execute("CREATE SEQUENCE IF NOT EXISTS term_id_seq;")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS terms (
                term_id BIGINT PRIMARY KEY DEFAULT nextval('term_id_seq'),
                name VARCHAR NOT NULL,
                slug VARCHAR NOT NULL,
                taxonomy VARCHAR NOT NULL,
                description VARCHAR DEFAULT '',
                parent BIGINT DEFAULT 0
            )
        """)

        conn.execute("CREATE SEQUENCE IF NOT EXISTS termmeta_id_seq;")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS termmeta (
                meta_id BIGINT PRIMARY KEY DEFAULT nextval('termmeta_id_seq'),
                term_id BIGINT NOT NULL,
                meta_key VARCHAR NOT NULL,
                meta_value VARCHAR
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS term_relationships (
                object_id BIGINT NOT NULL,
                term_id BIGINT NOT NULL,
                taxonomy VARCHAR NOT NULL,
                PRIMARY KEY (object_id, term_id)
            )
        """)

    # Registration

    def post_type_exists(self, post_type: str) -> bool:
        return post_type in self.post_types

    def taxonomy_exists(self, taxonomy: str) -> bool:
        return taxonomy in self.taxonomies

    # Posts

    def _row_to_post(self, row) -> Post:
        return Post(
            id=row[0],
            post_type=row[1],
            title=row[2] or "",
            content=row[3] or "",
            excerpt=row[4] or "",
            status=row[5],
            slug=row[6],
            parent=row[7],
            author=row[8],
            menu_order=row[9] or 0,
            date=row[10],
            date_gmt=row[11],
            mime_type=row[12],
            file_path=row[13],
            modified_at=row[14]
        )

    def _prepare_post_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Map model field names to columns and validate values.

        Raises:
            StoreError: On unknown fields, post types or statuses
        """
        columns = {}
        for name, value in fields.items():
            if name not in POST_COLUMNS:
                raise StoreError("invalid_field", f"Unknown post field: {name}", status=400)
            columns[POST_COLUMNS[name]] = value

        if "post_type" in columns and not self.post_type_exists(columns["post_type"]):
            raise StoreError("invalid_post_type", f"Invalid post type: {columns['post_type']}", status=400)

        if "status" in columns and columns["status"] not in VALID_STATUSES:
            raise StoreError("invalid_status", f"Invalid post status: {columns['status']}", status=400)

        return columns

    def get(self, object_id: int) -> Optional[Post]:
        """
        Retrieve a post by ID.

        Args:
            object_id: Local ID of the post

        Returns:
            The post if found, None otherwise
        """
        conn = self._conn()
        if object_id is None or int(object_id) <= 0:
            return None

        row = conn.execute(POST_SELECT + " WHERE p.id = ?", [int(object_id)]).fetchone()
        return self._row_to_post(row) if row else None

    def create(self, kind: str, fields: Dict[str, Any]) -> Post:
        """
        Insert a new post.

        Args:
            kind: Post type of the new object
            fields: Post fields (title, content, status, ...)

        Returns:
            The created post

        Raises:
            StoreError: If the post type, status or fields are invalid
        """
        conn = self._conn()

        values = dict(fields)
        values["post_type"] = kind
        values.setdefault("status", "inherit" if kind == "attachment" else "draft")
        columns = self._prepare_post_fields(values)

        names = list(columns.keys())
        placeholders = ", ".join("?" for _ in names)
        try:
            row = conn.execute(
                f"INSERT INTO posts ({', '.join(names)}) VALUES ({placeholders}) RETURNING id",
                [columns[name] for name in names]
            ).fetchone()
        except duckdb.Error as e:
            raise StoreError("db_insert_error", f"Could not insert post into the database: {e}")

        logging.info(f"Created {kind} {row[0]}")
        return self.get(row[0])

    def update(self, object_id: int, fields: Dict[str, Any]) -> Post:
        """
        Update an existing post.

        Args:
            object_id: Local ID of the post
            fields: Fields to change

        Returns:
            The updated post

        Raises:
            NotFoundError: If the post does not exist
            StoreError: If the fields are invalid
        """
        conn = self._conn()

        if not self.get(object_id):
            raise NotFoundError("rest_post_invalid_id", "Invalid post ID.")

        columns = self._prepare_post_fields(fields)
        if columns:
            assignments = ", ".join(f"{name} = ?" for name in columns)
            try:
                conn.execute(
                    f"UPDATE posts SET {assignments}, modified_at = ? WHERE id = ?",
                    list(columns.values()) + [datetime.now(), int(object_id)]
                )
            except duckdb.Error as e:
                raise StoreError("db_update_error", f"Could not update post in the database: {e}")

        return self.get(object_id)

    def find_by_upstream_id(self, kind: Optional[str], upstream_id: str) -> Optional[Post]:
        """
        Find the most recently created post tagged with an upstream source ID.

        Args:
            kind: Post type to restrict the search to (None for any type)
            upstream_id: The sst_source_id to look for

        Returns:
            The post if found, None otherwise
        """
        conn = self._conn()

        query = POST_SELECT + """
            JOIN postmeta m ON m.post_id = p.id
            WHERE m.meta_key = 'sst_source_id' AND m.meta_value = ?
        """
        params = [json.dumps(upstream_id)]

        if kind:
            query += " AND p.post_type = ?"
            params.append(kind)

        query += " ORDER BY p.id DESC LIMIT 1"

        row = conn.execute(query, params).fetchone()
        return self._row_to_post(row) if row else None

    # Meta

    def _meta_table(self, object_kind: str):
        if object_kind not in META_TABLES:
            raise ValueError(f"Unknown object kind for meta: {object_kind}")
        return META_TABLES[object_kind]

    def set_meta(self, object_kind: str, object_id: int, key: str, values: Any,
                 mode: str = OVERWRITE) -> None:
        """
        Write meta for a post or term.

        With OVERWRITE the key ends up holding exactly one value. With
        REPLACE_LIST every existing value is removed and each list item is
        added as its own row.

        Args:
            object_kind: "post" or "term"
            object_id: Local ID of the object
            key: Meta key
            values: Value, or list of values for REPLACE_LIST
            mode: OVERWRITE or REPLACE_LIST
        """
        conn = self._conn()
        table, id_column = self._meta_table(object_kind)

        if mode == REPLACE_LIST:
            items = list(values) if isinstance(values, (list, tuple)) else [values]
        elif mode == OVERWRITE:
            items = [values]
        else:
            raise ValueError(f"Unknown meta write mode: {mode}")

        conn.execute(
            f"DELETE FROM {table} WHERE {id_column} = ? AND meta_key = ?",
            [int(object_id), key]
        )
        for item in items:
            conn.execute(
                f"INSERT INTO {table} ({id_column}, meta_key, meta_value) VALUES (?, ?, ?)",
                [int(object_id), key, json.dumps(item)]
            )

    def get_meta(self, object_kind: str, object_id: int, key: str, single: bool = True) -> Any:
        """
        Read meta for a post or term.

        Args:
            object_kind: "post" or "term"
            object_id: Local ID of the object
            key: Meta key
            single: Return only the first value

        Returns:
            First value (or None) if single, otherwise list of values
        """
        conn = self._conn()
        table, id_column = self._meta_table(object_kind)

        rows = conn.execute(
            f"SELECT meta_value FROM {table} WHERE {id_column} = ? AND meta_key = ? ORDER BY meta_id",
            [int(object_id), key]
        ).fetchall()

        values = [json.loads(row[0]) if row[0] is not None else None for row in rows]
        if single:
            return values[0] if values else None
        return values

    def get_all_meta(self, object_kind: str, object_id: int) -> Dict[str, List[Any]]:
        """
        Read every meta key of a post or term.

        Returns:
            Mapping of meta key to list of values
        """
        conn = self._conn()
        table, id_column = self._meta_table(object_kind)

        rows = conn.execute(
            f"SELECT meta_key, meta_value FROM {table} WHERE {id_column} = ? ORDER BY meta_id",
            [int(object_id)]
        ).fetchall()

        result: Dict[str, List[Any]] = {}
        for meta_key, meta_value in rows:
            result.setdefault(meta_key, []).append(json.loads(meta_value) if meta_value is not None else None)
        return result

    # Terms

    def _row_to_term(self, row) -> Term:
        return Term(
            term_id=row[0],
            name=row[1],
            slug=row[2],
            taxonomy=row[3],
            description=row[4] or "",
            parent=row[5] or 0
        )

    def get_term(self, term_id: int) -> Optional[Term]:
        """
        Retrieve a term by ID.

        Args:
            term_id: The term ID

        Returns:
            The term if found, None otherwise
        """
        conn = self._conn()
        row = conn.execute(TERM_SELECT + " WHERE term_id = ?", [int(term_id)]).fetchone()
        return self._row_to_term(row) if row else None

    def _unique_slug(self, slug: str, taxonomy: str) -> str:
        conn = self._conn()
        candidate = slug
        suffix = 2
        while conn.execute(
            "SELECT 1 FROM terms WHERE taxonomy = ? AND slug = ? LIMIT 1",
            [taxonomy, candidate]
        ).fetchone():
            candidate = f"{slug}-{suffix}"
            suffix += 1
        return candidate

    def create_term(self, name: str, taxonomy: str, args: Optional[Dict[str, Any]] = None) -> Term:
        """
        Create a term in a taxonomy.

        A term with the same name under the same parent, or with the explicitly
        requested slug, counts as already existing.

        Args:
            name: Display name
            taxonomy: Taxonomy name
            args: Optional slug, description and parent

        Returns:
            The created term

        Raises:
            TermExistsError: If an equivalent term exists (carries its ID)
            StoreError: If the taxonomy, name or parent is invalid
        """
        conn = self._conn()
        args = args or {}

        if not self.taxonomy_exists(taxonomy):
            raise StoreError("invalid_taxonomy", f"Invalid taxonomy: {taxonomy}", status=400)

        name = (name or "").strip()
        if not name:
            raise StoreError("empty_term_name", "A name is required for this term.", status=400)

        parent = int(args.get("parent") or 0)
        if parent:
            parent_term = self.get_term(parent)
            if not parent_term or parent_term.taxonomy != taxonomy:
                raise StoreError("missing_parent", "Parent term does not exist.", status=400)

        requested_slug = args.get("slug")

        existing = conn.execute("""
            SELECT term_id FROM terms
            WHERE taxonomy = ? AND lower(name) = lower(?) AND parent = ?
            ORDER BY term_id LIMIT 1
        """, [taxonomy, name, parent]).fetchone()

        if not existing and requested_slug:
            existing = conn.execute(
                "SELECT term_id FROM terms WHERE taxonomy = ? AND slug = ? LIMIT 1",
                [taxonomy, requested_slug]
            ).fetchone()

        if existing:
            raise TermExistsError(existing[0])

        slug = self._unique_slug(requested_slug or slugify(name) or "term", taxonomy)

        try:
            row = conn.execute("""
                INSERT INTO terms (name, slug, taxonomy, description, parent)
                VALUES (?, ?, ?, ?, ?)
                RETURNING term_id
            """, [name, slug, taxonomy, args.get("description") or "", parent]).fetchone()
        except duckdb.Error as e:
            raise StoreError("db_insert_error", f"Could not insert term into the database: {e}")

        logging.info(f"Created {taxonomy} term {row[0]} ({name})")
        return self.get_term(row[0])

    def attach_term(self, object_id: int, term_id: int, taxonomy: str) -> None:
        """
        Assign a term to an object without removing other assignments.

        Args:
            object_id: Local ID of the post
            term_id: The term to assign
            taxonomy: Taxonomy of the term
        """
        conn = self._conn()

        try:
            conn.execute("""
                INSERT INTO term_relationships (object_id, term_id, taxonomy)
                VALUES (?, ?, ?)
            """, [int(object_id), int(term_id), taxonomy])
        except duckdb.IntegrityError:
            # Already assigned
            pass

    def set_object_terms(self, object_id: int, term_ids: List[int], taxonomy: str) -> None:
        """
        Replace an object's terms in one taxonomy.

        Raises:
            StoreError: If the taxonomy is unknown or a term does not belong to it
        """
        conn = self._conn()

        if not self.taxonomy_exists(taxonomy):
            raise StoreError("invalid_taxonomy", f"Invalid taxonomy: {taxonomy}", status=400)

        for term_id in term_ids:
            term = self.get_term(term_id)
            if not term or term.taxonomy != taxonomy:
                raise StoreError("invalid_term", f"Invalid term ID {term_id} for taxonomy {taxonomy}.", status=400)

        conn.execute(
            "DELETE FROM term_relationships WHERE object_id = ? AND taxonomy = ?",
            [int(object_id), taxonomy]
        )
        for term_id in dict.fromkeys(term_ids):
            self.attach_term(object_id, term_id, taxonomy)

    def get_object_terms(self, object_id: int, taxonomy: str) -> List[Term]:
        """
        List the terms assigned to an object in a taxonomy.
        """
        conn = self._conn()

        rows = conn.execute("""
            SELECT t.term_id, t.name, t.slug, t.taxonomy, t.description, t.parent
            FROM term_relationships r
            JOIN terms t ON t.term_id = r.term_id
            WHERE r.object_id = ? AND r.taxonomy = ?
            ORDER BY t.term_id
        """, [int(object_id), taxonomy]).fetchall()

        return [self._row_to_term(row) for row in rows]

    # URLs

    def canonical_url(self, object_id: int) -> str:
        """
        Get the permalink of a post. Attachments resolve to their file URL.
        """
        post = self.get(object_id)
        if not post:
            return ""

        if post.post_type == "attachment":
            return self.file_url(post.id)

        if post.status == "publish" and post.slug:
            if post.post_type == "post":
                return f"{self.base_url}/{post.slug}/"
            return f"{self.base_url}/{post.post_type}/{post.slug}/"

        return f"{self.base_url}/?p={post.id}"

    def term_url(self, term_id: int) -> str:
        term = self.get_term(term_id)
        if not term:
            return ""
        return f"{self.base_url}/{term.taxonomy}/{term.slug}/"

    def is_image(self, object_id: int) -> bool:
        post = self.get(object_id)
        return bool(
            post
            and post.post_type == "attachment"
            and (post.mime_type or "").startswith("image/")
        )

    def file_url(self, object_id: int) -> str:
        post = self.get(object_id)
        if not post or not post.file_path:
            return ""
        return f"{self.uploads_url}/{post.file_path}"

    def image_url(self, object_id: int, size: str = "full") -> str:
        """
        Get the URL of an image rendered at a named size.

        Intermediate sizes follow the "<name>-<width>x<height>.<ext>" file
        naming convention next to the original file. Unknown sizes and
        "full" return the original file URL.

        Args:
            object_id: Local ID of the attachment
            size: Named size (thumbnail, medium, large, full, ...)

        Returns:
            The image URL, or "" if the object has no file
        """
        post = self.get(object_id)
        if not post or not post.file_path:
            return ""

        dimensions = self.image_sizes.get(size)
        if size == "full" or not dimensions:
            return self.file_url(object_id)

        path = PurePosixPath(post.file_path)
        width, height = dimensions[0], dimensions[1]
        sized = path.with_name(f"{path.stem}-{width}x{height}{path.suffix}")
        return f"{self.uploads_url}/{sized.as_posix()}"
