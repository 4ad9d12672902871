import json

import pytest
from django.core.exceptions import ImproperlyConfigured

from processor.config import load_worker_config, parse_tasks
from processor.exceptions import ConfigurationError

TASKS = [
    {"taskId": "t1", "userId": "u1", "assetId": "a1", "inputKey": "in/1.mp4", "outputKey": "u1/a1"},
    {"taskId": "t2", "userId": "u2", "assetId": "a2", "inputKey": "in/2.mp4", "outputKey": "u2/a2"},
]


@pytest.fixture
def worker_settings(settings, tmp_path):
    settings.FOOTAGE_DIR = str(tmp_path)
    settings.S3_REGION = "eu-west-1"
    settings.TRANSPORT_BUCKET = "transport"
    settings.CONTENT_BUCKET = "content"
    settings.COMPLETION_TRIGGER = "completion.json"
    settings.BATCH_TASKS = json.dumps(TASKS)
    return settings


def test_parse_tasks_keeps_order():
    tasks = parse_tasks(json.dumps(TASKS))
    assert [t.task_id for t in tasks] == ["t1", "t2"]
    assert tasks[0].input_key == "in/1.mp4"
    assert tasks[1].output_key == "u2/a2"


@pytest.mark.parametrize("raw", [
    "",
    "   ",
    "{not json",
    json.dumps({"taskId": "t1"}),
    json.dumps([]),
    json.dumps([{"taskId": "t1", "userId": "u1"}]),
    json.dumps([dict(TASKS[0], userId="")]),
    json.dumps([dict(TASKS[0], assetId="a/b")]),
    json.dumps([dict(TASKS[0], userId="..", assetId="..")]),
    json.dumps([dict(TASKS[0], assetId=".")]),
    json.dumps([dict(TASKS[0], userId=".hidden")]),
    json.dumps([dict(TASKS[0], assetId="a\\b")]),
    json.dumps([dict(TASKS[0], userId="u 1")]),
])
def test_parse_tasks_rejects_bad_input(raw):
    with pytest.raises(ConfigurationError):
        parse_tasks(raw)


def test_load_worker_config(worker_settings, tmp_path):
    config = load_worker_config()
    assert len(config.tasks) == 2
    assert config.footage_dir == tmp_path
    assert config.content_bucket == "content"
    assert config.upload_buffer_size == 1000


def test_explicit_tasks_override_settings(worker_settings):
    config = load_worker_config(tasks=TASKS[:1])
    assert [t.task_id for t in config.tasks] == ["t1"]


def test_missing_settings_are_all_named(worker_settings):
    worker_settings.FOOTAGE_DIR = ""
    worker_settings.CONTENT_BUCKET = ""
    with pytest.raises(ImproperlyConfigured) as exc:
        load_worker_config()
    assert "FOOTAGE_DIR" in str(exc.value)
    assert "CONTENT_BUCKET" in str(exc.value)


def test_missing_batch_tasks(worker_settings):
    worker_settings.BATCH_TASKS = ""
    with pytest.raises(ConfigurationError, match="BATCH_TASKS"):
        load_worker_config()


def test_dotted_ids_inside_a_name_are_allowed():
    [task] = parse_tasks([dict(TASKS[0], userId="u1.team", assetId="clip_01-v2.final")])
    assert (task.user_id, task.asset_id) == ("u1.team", "clip_01-v2.final")
