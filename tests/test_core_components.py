"""
Unit tests for core SST components.

Tests configuration management, request and response models, error types
and the DuckDB content store.
"""

import shutil
import tempfile
import unittest
from pathlib import Path

from pydantic import ValidationError

from sst.config import ConfigManager
from sst.database import DatabaseManager, OVERWRITE, REPLACE_LIST, slugify
from sst.errors import (
    MediaFetchError, NotFoundError, ReferenceResolutionError,
    SSTError, StoreError, TermExistsError
)
from sst.models import Post, Request, Reference, ReferenceArgs, ResponseObject, Term


class TestConfigManager(unittest.TestCase):
    """Test configuration management functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "test_config.yaml"

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_config_creation_with_defaults(self):
        """Test config manager falls back to defaults when file missing."""
        config = ConfigManager(str(self.config_path))

        self.assertEqual(config.database_filename, "sst.db")
        self.assertEqual(config.base_url, "http://localhost")
        self.assertEqual(config.uploads_url, "http://localhost/uploads")
        self.assertIn("attachment", config.post_types)
        self.assertIn("category", config.taxonomies)
        self.assertEqual(config.default_status, "draft")
        self.assertEqual(config.max_term_depth, 10)
        self.assertEqual(config.image_sizes["thumbnail"], [150, 150])

    def test_config_loading_from_file(self):
        """Test loading configuration from YAML file."""
        test_config = """
site:
  base_url: "https://promises.example.test/"

media:
  timeout: 5.0
  image_sizes:
    medium: [640, 480]

content:
  post_types: ["post", "attachment", "promise"]
  taxonomies: ["topic"]
  default_status: "publish"
"""
        with open(self.config_path, 'w') as f:
            f.write(test_config)

        config = ConfigManager(str(self.config_path))

        self.assertEqual(config.base_url, "https://promises.example.test")
        self.assertEqual(config.uploads_url, "https://promises.example.test/uploads")
        self.assertEqual(config.media_timeout, 5.0)
        self.assertEqual(config.image_sizes, {"medium": [640, 480]})
        self.assertEqual(config.post_types, ["post", "attachment", "promise"])
        self.assertEqual(config.taxonomies, ["topic"])
        self.assertEqual(config.default_status, "publish")

    def test_dot_notation_access(self):
        """Test accessing config values with dot notation."""
        config = ConfigManager(str(self.config_path))  # Uses defaults

        self.assertEqual(config.get("media.image_sizes.medium"), [300, 300])
        self.assertEqual(config.get("references.max_term_depth"), 10)
        self.assertEqual(config.get("nonexistent.key", "default"), "default")
        self.assertEqual(config.get_section("site"), {"base_url": "http://localhost"})

    def test_config_reload(self):
        """Test configuration reloading."""
        with open(self.config_path, 'w') as f:
            f.write("content:\n  default_status: 'pending'")

        config = ConfigManager(str(self.config_path))
        self.assertEqual(config.default_status, "pending")

        with open(self.config_path, 'w') as f:
            f.write("content:\n  default_status: 'private'")

        config.reload()
        self.assertEqual(config.default_status, "private")


class TestDataModels(unittest.TestCase):
    """Test data model validation and functionality."""

    def test_request_parsing(self):
        """Test a full request document is parsed into typed models."""
        request = Request.model_validate({
            "type": "sst-promise",
            "title": "Build 10,000 homes",
            "meta": {"sst_source_id": "promise-1", "tags": ["housing", "cities"]},
            "nestedMeta": {"progress": {"steps": [{"label": "Funded"}]}},
            "references": [
                {
                    "type": "post",
                    "subtype": "attachment",
                    "sst_source_id": "img-1",
                    "args": {"url": "https://cdn.example.test/photo.jpg", "title": "Photo"},
                    "save_to_meta": "featured_image"
                }
            ]
        })

        self.assertEqual(request.type, "sst-promise")
        self.assertEqual(request.source_id, "promise-1")
        self.assertEqual(request.nested_meta["progress"]["steps"][0]["label"], "Funded")
        self.assertEqual(len(request.references), 1)
        self.assertTrue(request.references[0].is_attachment)
        self.assertEqual(request.references[0].args.url, "https://cdn.example.test/photo.jpg")
        self.assertEqual(request.references[0].save_to_meta, "featured_image")

    def test_source_id_is_stringified(self):
        """Test numeric upstream IDs are exposed as strings."""
        request = Request.model_validate({"type": "post", "meta": {"sst_source_id": 123}})
        self.assertEqual(request.source_id, "123")

        request = Request.model_validate({"type": "post"})
        self.assertIsNone(request.source_id)

    def test_flat_meta_rejects_nested_values(self):
        """Test flat meta only accepts scalars and lists of scalars."""
        with self.assertRaises(ValidationError):
            Request.model_validate({"type": "post", "meta": {"bad": {"nested": True}}})

        with self.assertRaises(ValidationError):
            Request.model_validate({"type": "post", "meta": {"bad": [{"nested": True}]}})

        with self.assertRaises(ValidationError):
            ReferenceArgs.model_validate({"meta": {"bad": [[1, 2]]}})

    def test_inline_parent_reference(self):
        """Test a term parent may be a local ID or an inline reference."""
        args = ReferenceArgs.model_validate({
            "title": "Child",
            "parent": {"title": "Parent", "sst_source_id": "topic-1"}
        })
        self.assertIsInstance(args.parent, ReferenceArgs)
        self.assertEqual(args.parent.title, "Parent")
        self.assertEqual(args.parent.sst_source_id, "topic-1")

        args = ReferenceArgs.model_validate({"title": "Child", "parent": 7})
        self.assertEqual(args.parent, 7)

    def test_post_fields_only_supplied(self):
        """Test only the fields present in the request are passed on."""
        request = Request.model_validate({
            "type": "post",
            "title": "Hello",
            "status": "publish",
            "menu_order": 2
        })

        self.assertEqual(request.post_fields(), {"title": "Hello", "status": "publish", "menu_order": 2})

    def test_term_assignments(self):
        """Test extra top-level keys holding id lists become term assignments."""
        request = Request.model_validate({
            "type": "post",
            "category": [3, 4],
            "post_tag": [],
            "flags": [True, False],
            "note": "not a taxonomy"
        })

        self.assertEqual(request.term_assignments(), {"category": [3, 4], "post_tag": []})

    def test_reference_requires_type_and_subtype(self):
        """Test references without a type are rejected."""
        with self.assertRaises(ValidationError):
            Reference.model_validate({"subtype": "page"})

    def test_response_wire_format(self):
        """Test the response body excludes the status."""
        response = ResponseObject(status=200)
        response.add_post(Post(id=5, post_type="page"), "page-1")
        response.add_post(Post(id=4, post_type="sst-promise"), "promise-1", first=True)
        response.add_term(Term(term_id=9, name="Housing", slug="housing", taxonomy="category"))
        response.errors.append("Reference 2 (post/attachment): boom")

        wire = response.to_wire()

        self.assertEqual(set(wire.keys()), {"posts", "terms", "errors"})
        self.assertEqual([entry["post_id"] for entry in wire["posts"]], [4, 5])
        self.assertEqual(wire["posts"][1]["sst_source_id"], "page-1")
        self.assertEqual(wire["terms"][0]["slug"], "housing")
        self.assertEqual(len(wire["errors"]), 1)


class TestErrors(unittest.TestCase):
    """Test the error taxonomy."""

    def test_default_statuses(self):
        """Test each error class carries its default status."""
        self.assertEqual(SSTError("x", "y").status, 400)
        self.assertEqual(NotFoundError("x", "y").status, 404)
        self.assertEqual(StoreError("x", "y").status, 500)
        self.assertEqual(StoreError("x", "y", status=400).status, 400)

    def test_term_exists_carries_id(self):
        """Test TermExistsError exposes the existing term ID."""
        error = TermExistsError(12)

        self.assertIsInstance(error, StoreError)
        self.assertEqual(error.term_id, 12)
        self.assertEqual(error.status, 400)
        self.assertEqual(error.to_dict()["data"], {"term_id": 12, "status": 400})

    def test_media_errors_are_reference_errors(self):
        """Test media failures are non-fatal reference errors."""
        self.assertTrue(issubclass(MediaFetchError, ReferenceResolutionError))


class TestSlugify(unittest.TestCase):
    """Test slug generation."""

    def test_slugify(self):
        """Test names are lowercased and punctuation collapses to dashes."""
        self.assertEqual(slugify("Hello, World!"), "hello-world")
        self.assertEqual(slugify("snake_case name"), "snake-case-name")
        self.assertEqual(slugify("  --  "), "")


class TestDatabaseManager(unittest.TestCase):
    """Test database management functionality."""

    def setUp(self):
        """Set up test database."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "test.db"
        self.db = DatabaseManager(
            str(self.db_path),
            post_types=["post", "page", "attachment", "sst-promise"],
            taxonomies=["category", "post_tag"],
            base_url="http://example.test",
            image_sizes={"thumbnail": [150, 150], "medium": [300, 300]}
        )
        self.db.connect()
        self.db.initialize_database()

    def tearDown(self):
        """Clean up test database."""
        self.db.disconnect()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_database_initialization(self):
        """Test database creation and table initialization."""
        self.assertTrue(self.db_path.exists())
        self.assertIsNotNone(self.db.connection)

        # Initializing twice is harmless
        self.db.initialize_database()

    def test_requires_connection(self):
        """Test operations fail clearly without a connection."""
        db = DatabaseManager(str(self.db_path))
        with self.assertRaises(RuntimeError):
            db.get(1)

    def test_post_operations(self):
        """Test post create, get and update."""
        post = self.db.create("page", {"title": "About", "content": "Hi"})

        self.assertEqual(post.post_type, "page")
        self.assertEqual(post.title, "About")
        self.assertEqual(post.status, "draft")

        updated = self.db.update(post.id, {"title": "About us", "status": "publish"})
        self.assertEqual(updated.id, post.id)
        self.assertEqual(updated.title, "About us")
        self.assertEqual(updated.status, "publish")
        self.assertEqual(updated.content, "Hi")

        self.assertIsNone(self.db.get(9999))

    def test_attachment_default_status(self):
        """Test attachments are created with the inherit status."""
        attachment = self.db.create("attachment", {"file_path": "2024/05/a.pdf"})
        self.assertEqual(attachment.status, "inherit")

    def test_invalid_post_values(self):
        """Test the store rejects unknown types, statuses and fields."""
        with self.assertRaises(StoreError) as cm:
            self.db.create("product", {"title": "x"})
        self.assertEqual(cm.exception.status, 400)

        with self.assertRaises(StoreError):
            self.db.create("post", {"title": "x", "status": "published"})

        with self.assertRaises(StoreError):
            self.db.create("post", {"colour": "red"})

        with self.assertRaises(NotFoundError):
            self.db.update(9999, {"title": "x"})

    def test_find_by_upstream_id(self):
        """Test lookups return the most recent post of the requested type."""
        first = self.db.create("page", {"title": "One"})
        second = self.db.create("page", {"title": "Two"})
        other = self.db.create("post", {"title": "Other"})
        for post in (first, second):
            self.db.set_meta("post", post.id, "sst_source_id", "page-1")
        self.db.set_meta("post", other.id, "sst_source_id", "post-1")

        found = self.db.find_by_upstream_id("page", "page-1")
        self.assertEqual(found.id, second.id)

        self.assertIsNone(self.db.find_by_upstream_id("post", "page-1"))
        self.assertEqual(self.db.find_by_upstream_id(None, "post-1").id, other.id)
        self.assertIsNone(self.db.find_by_upstream_id("page", "missing"))

    def test_meta_write_modes(self):
        """Test overwrite and replace-list meta writes."""
        post = self.db.create("post", {"title": "Meta"})

        self.db.set_meta("post", post.id, "tags", ["a", "b"], REPLACE_LIST)
        self.assertEqual(self.db.get_meta("post", post.id, "tags", single=False), ["a", "b"])

        self.db.set_meta("post", post.id, "tags", ["c"], REPLACE_LIST)
        self.assertEqual(self.db.get_meta("post", post.id, "tags", single=False), ["c"])

        self.db.set_meta("post", post.id, "count", 3, OVERWRITE)
        self.db.set_meta("post", post.id, "count", 4, OVERWRITE)
        self.assertEqual(self.db.get_meta("post", post.id, "count"), 4)
        self.assertEqual(self.db.get_meta("post", post.id, "count", single=False), [4])

        self.db.set_meta("post", post.id, "progress", {"done": [1, 2]}, OVERWRITE)
        self.assertEqual(self.db.get_meta("post", post.id, "progress"), {"done": [1, 2]})

        self.assertIsNone(self.db.get_meta("post", post.id, "missing"))
        self.assertEqual(self.db.get_all_meta("post", post.id)["tags"], ["c"])

    def test_term_operations(self):
        """Test term creation, duplicates and hierarchy."""
        parent = self.db.create_term("Climate Policy", "category", {"description": "Policy"})
        self.assertEqual(parent.slug, "climate-policy")
        self.assertEqual(parent.parent, 0)

        with self.assertRaises(TermExistsError) as cm:
            self.db.create_term("climate policy", "category")
        self.assertEqual(cm.exception.term_id, parent.term_id)

        with self.assertRaises(TermExistsError):
            self.db.create_term("Something else", "category", {"slug": "climate-policy"})

        child = self.db.create_term("Climate Policy", "category", {"parent": parent.term_id})
        self.assertEqual(child.parent, parent.term_id)
        self.assertEqual(child.slug, "climate-policy-2")

        # Same name in another taxonomy is a different term
        tag = self.db.create_term("Climate Policy", "post_tag")
        self.assertEqual(tag.slug, "climate-policy")

        with self.assertRaises(StoreError):
            self.db.create_term("Orphan", "category", {"parent": 9999})

        with self.assertRaises(StoreError):
            self.db.create_term("Nope", "genre")

        with self.assertRaises(StoreError):
            self.db.create_term("   ", "category")

    def test_object_terms(self):
        """Test attaching and replacing an object's terms."""
        post = self.db.create("post", {"title": "Tagged"})
        housing = self.db.create_term("Housing", "category")
        transport = self.db.create_term("Transport", "category")
        tag = self.db.create_term("Urgent", "post_tag")

        self.db.attach_term(post.id, housing.term_id, "category")
        self.db.attach_term(post.id, housing.term_id, "category")
        self.db.attach_term(post.id, tag.term_id, "post_tag")
        self.assertEqual([t.term_id for t in self.db.get_object_terms(post.id, "category")], [housing.term_id])

        self.db.set_object_terms(post.id, [transport.term_id], "category")
        self.assertEqual([t.term_id for t in self.db.get_object_terms(post.id, "category")], [transport.term_id])
        self.assertEqual([t.term_id for t in self.db.get_object_terms(post.id, "post_tag")], [tag.term_id])

        with self.assertRaises(StoreError):
            self.db.set_object_terms(post.id, [tag.term_id], "category")

    def test_urls(self):
        """Test permalinks, file URLs and sized image URLs."""
        draft = self.db.create("post", {"title": "Draft"})
        published = self.db.create("post", {"title": "Live", "status": "publish", "slug": "live"})
        page = self.db.create("page", {"title": "About", "status": "publish", "slug": "about"})
        image = self.db.create("attachment", {"file_path": "2024/05/photo.jpg", "mime_type": "image/jpeg"})
        document = self.db.create("attachment", {"file_path": "2024/05/report.pdf", "mime_type": "application/pdf"})
        term = self.db.create_term("Housing", "category")

        self.assertEqual(self.db.canonical_url(draft.id), f"http://example.test/?p={draft.id}")
        self.assertEqual(self.db.canonical_url(published.id), "http://example.test/live/")
        self.assertEqual(self.db.canonical_url(page.id), "http://example.test/page/about/")
        self.assertEqual(self.db.canonical_url(image.id), "http://example.test/uploads/2024/05/photo.jpg")
        self.assertEqual(self.db.canonical_url(9999), "")

        self.assertTrue(self.db.is_image(image.id))
        self.assertFalse(self.db.is_image(document.id))
        self.assertFalse(self.db.is_image(page.id))

        self.assertEqual(self.db.file_url(document.id), "http://example.test/uploads/2024/05/report.pdf")
        self.assertEqual(self.db.image_url(image.id, "medium"), "http://example.test/uploads/2024/05/photo-300x300.jpg")
        self.assertEqual(self.db.image_url(image.id, "full"), "http://example.test/uploads/2024/05/photo.jpg")
        self.assertEqual(self.db.image_url(image.id, "poster"), "http://example.test/uploads/2024/05/photo.jpg")

        self.assertEqual(self.db.term_url(term.term_id), "http://example.test/category/housing/")


if __name__ == '__main__':
    unittest.main(verbosity=2)
