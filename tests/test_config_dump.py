from __future__ import annotations

import io
import json

import pytest

from csds_client.export.config_dump import load_config_dump, render_config_dump, write_config_dump
from csds_client.util.errors import ConfigError
from csds_client.util.serialization import REDACTED_VALUE


def test_write_config_dump_prints_when_no_path(simple_response) -> None:
    stream = io.StringIO()

    saved = write_config_dump(simple_response, None, stream)

    assert saved is None
    assert json.loads(stream.getvalue()) == simple_response


def test_write_config_dump_saves_file(tmp_path, simple_response) -> None:
    path = tmp_path / "dumps" / "config.json"
    stream = io.StringIO()

    saved = write_config_dump(simple_response, path, stream)

    assert saved == path
    assert stream.getvalue() == ""
    assert load_config_dump(path) == simple_response


def test_rendered_dump_redacts_secrets() -> None:
    response = {"config": [{"xdsConfig": [{"clusterConfig": {"staticClusters": [{"cluster": {"name": "c", "password": "x"}}]}}]}]}

    data = json.loads(render_config_dump(response))

    cluster = data["config"][0]["xdsConfig"][0]["clusterConfig"]["staticClusters"][0]["cluster"]
    assert cluster == {"name": "c", "password": REDACTED_VALUE}


def test_load_config_dump_missing_file(tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config_dump(tmp_path / "missing.json")


def test_load_config_dump_invalid_json(tmp_path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config_dump(path)


def test_load_config_dump_requires_object(tmp_path) -> None:
    path = tmp_path / "list.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(ConfigError, match="must be an object"):
        load_config_dump(path)
