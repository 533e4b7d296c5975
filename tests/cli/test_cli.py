"""Tests for the content-collections command line."""

import json

import pytest
from typer.testing import CliRunner

from content_collections.cli.main import app as cli_app

from conftest import BLOG_SCHEMA, write_markdown

runner = CliRunner()


@pytest.fixture
def site(content_root, posts_folder):
    (content_root / "collections.json").write_text(
        json.dumps({"collections": {"posts": {"folder": "posts", "schema": BLOG_SCHEMA}}})
    )
    write_markdown(
        posts_folder, "2024-01-01-first.md", "title: First\npublishDate: 2024-01-01\ndraft: false"
    )
    write_markdown(
        posts_folder, "2024-02-01-second.md", "title: Second\npublishDate: 2024-02-01\ndraft: true"
    )
    write_markdown(posts_folder, "untitled.md", "publishDate: 2024-03-01")
    return content_root


def invoke(site, *args):
    return runner.invoke(cli_app, ["--root", str(site), *args])


class TestCollections:
    def test_json_listing(self, site):
        result = invoke(site, "collections", "--json")

        assert result.exit_code == 0
        (summary,) = json.loads(result.stdout)
        assert summary["name"] == "posts"
        assert summary["item_count"] == 2
        assert summary["invalid_count"] == 1

    def test_table_listing(self, site):
        result = invoke(site, "collections")
        assert result.exit_code == 0
        assert "posts" in result.stdout

    def test_missing_collections_file(self, tmp_path):
        result = runner.invoke(cli_app, ["--root", str(tmp_path), "collections"])
        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestGet:
    def test_get_item_json(self, site):
        result = invoke(site, "get", "posts", "second", "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["id"] == "second"
        assert data["metadata"]["publishDate"] == "2024-02-01"
        assert data["body"].strip() == "Body text."

    def test_unknown_item(self, site):
        result = invoke(site, "get", "posts", "nope")
        assert result.exit_code == 1

    def test_unknown_collection(self, site):
        result = invoke(site, "get", "pages", "first")
        assert result.exit_code == 1
        assert "Collection not found" in result.stdout


class TestQuery:
    def test_query_json(self, site):
        result = invoke(site, "query", "posts", "filter=draft eq false&select=title", "--json")

        assert result.exit_code == 0
        page = json.loads(result.stdout)
        assert page["total_count"] == 1
        assert page["items"][0]["metadata"] == {"title": "First"}

    def test_query_table(self, site):
        result = invoke(site, "query", "posts", "orderby=publishDate desc")
        assert result.exit_code == 0
        assert "Showing 1-2 of 2 matches" in result.stdout

    def test_query_error_exit_code(self, site):
        result = invoke(site, "query", "posts", "filter=title eq")
        assert result.exit_code == 2
        assert "Query error" in result.stdout


class TestValidate:
    def test_validate_json(self, site):
        result = invoke(site, "validate", "posts", "--json")

        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["invalid_count"] == 1
        assert report["items"][0]["identifier"] == "untitled"

    def test_strict_fails_on_invalid_items(self, site):
        result = invoke(site, "validate", "posts", "--strict")
        assert result.exit_code == 1
        assert "Summary: 2/3 valid, 1 invalid" in result.stdout

    def test_check_valid_file(self, site, tmp_path):
        path = write_markdown(tmp_path / "drafts", "third.md", "title: Third\npublishDate: 2024-04-01")
        result = invoke(site, "check", "posts", str(path))
        assert result.exit_code == 0
        assert "is valid" in result.stdout

    def test_check_invalid_file(self, site, tmp_path):
        path = write_markdown(tmp_path / "drafts", "third.md", "title: Third\nrating: 9")
        result = invoke(site, "check", "posts", str(path), "--json")

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        kinds = sorted(e["kind"] for e in data["errors"])
        assert kinds == ["out-of-range", "required-field-missing"]
