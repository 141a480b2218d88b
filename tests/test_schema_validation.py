from __future__ import annotations

import json

import pytest

from swapduel.paths import get_paths
from swapduel.services.content import ContentError, ContentService


def test_content_schemas_validate() -> None:
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    content.validate_all()


def test_invalid_catalog_is_reported(tmp_path) -> None:
    paths = get_paths()
    bad = {"version": 1, "card_back": "dos", "cards": [{"name": "x", "label": "X"}]}
    (tmp_path / "cards.json").write_text(json.dumps(bad), encoding="utf-8")
    content = ContentService(tmp_path, paths.schema_dir)
    with pytest.raises(ContentError) as exc:
        content.load_catalog()
    assert "Schema validation failed" in str(exc.value)


def test_missing_catalog_is_reported(tmp_path) -> None:
    content = ContentService(tmp_path, get_paths().schema_dir)
    with pytest.raises(ContentError):
        content.load_catalog()
