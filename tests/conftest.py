"""Shared test fixtures for configanalyzer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml


def keyvault_doc(url: str, as_target: bool = False) -> dict:
    """A document with one AzureKeyvault task (as source, or as target)."""
    vault = {"type": "AzureKeyvault", "url": url, "secretType": "secret"}
    task = (
        {"source": {"type": "Environment"}, "target": vault, "mapping": {"A": ["A"]}}
        if as_target
        else {"source": vault, "target": {"type": "Command"}, "mapping": {"A": ["A"]}}
    )
    return {"version": "1.0.0", "tasks": [task]}


def redis_doc(hostname: str, mapping: dict, as_target: bool = False) -> dict:
    """A document with one Redis task (as source, or as target)."""
    redis = {"type": "Redis", "hostname": hostname}
    task = (
        {"source": {"type": "Environment"}, "target": redis, "mapping": mapping}
        if as_target
        else {"source": redis, "target": {"type": "ProcessEnvironment"}, "mapping": mapping}
    )
    return {"version": "1.0.0", "tasks": [task]}


@pytest.fixture
def full_document() -> dict:
    """A document touching every source and target variant."""
    return {
        "version": "1.2.3-rc.1+build.5",
        "tasks": [
            {
                "source": {"type": "Environment"},
                "target": {"type": "Command"},
                "mapping": {"HOME": ["HOME"]},
            },
            {
                "source": {"type": "TerraformFile", "file_name": "out.json", "file_format": "State"},
                "target": {"type": "EnvFile", "file": ".env"},
                "mapping": {"db_host": ["DB_HOST"]},
            },
            {
                "source": {"type": "GitlabProjectTerraformState", "project_id": 10,
                           "environment": "prod", "tokenVariableName": "TF_TOKEN"},
                "target": {"type": "GlobalEnvironment"},
                "mapping": {},
            },
            {
                "source": {"type": "EnvFile", "file": "in.env"},
                "target": {"type": "StdOutEnvironment"},
                "mapping": {},
            },
            {
                "source": {"type": "HardCoded", "variables": {"REGION": "westeurope"}},
                "target": {"type": "File"},
                "mapping": {"REGION": ["REGION"]},
            },
            {
                "source": {"type": "AzureKeyvault", "url": "https://kv1", "secretType": "certificate"},
                "target": {"type": "KubeConfig"},
                "mapping": {},
            },
            {
                "source": {"type": "Redis", "hostname": "r1", "sp_object_id": "sp-1"},
                "target": {
                    "type": "GitlabProjectVariables",
                    "config": {"project_id": 20, "url": "https://gitlab.example.com"},
                    "details": {"protected_variables": ["A"], "masked_variables": ["A"]},
                },
                "mapping": {"A": ["A", {"key": "B"}, {"key": "C", "function": "base64"}]},
            },
            {
                "source": {"type": "Environment"},
                "target": {"type": "Redis", "hostname": "r1"},
                "mapping": {},
            },
            {
                "source": {"type": "Environment"},
                "target": {"type": "AzureKeyvault", "url": "https://kv2", "secretType": "secret"},
                "mapping": {},
            },
        ],
    }


@pytest.fixture
def projects_dir(tmp_path: Path) -> Path:
    """A local project tree: 10 reads kv1 and redis r1, 20 writes both."""
    root = tmp_path / "projects"

    consumer = root / "consumer"
    consumer.mkdir(parents=True)
    (consumer / "project.yaml").write_text(
        yaml.dump({"id": 10, "name": "consumer", "group": "platform"})
    )
    (consumer / "cli-config-app.json").write_text(json.dumps(keyvault_doc("https://kv1")))
    (consumer / "redis-cache.json").write_text(
        json.dumps(redis_doc("r1", {"A": ["A"]}))
    )

    producer = root / "producer"
    (producer / "deploy").mkdir(parents=True)
    (producer / "project.json").write_text(
        json.dumps({"id": 20, "name": "producer", "group": "platform"})
    )
    (producer / "deploy" / "cli-config-infra.json").write_text(
        json.dumps(keyvault_doc("https://kv1", as_target=True))
    )
    (producer / "notes.json").write_text("{}")

    lonely = root / "lonely"
    lonely.mkdir()
    (lonely / "cli-config-broken.json").write_text('{"version": "1.0.0", "tasks": [{"source": {}}]}')

    return root
