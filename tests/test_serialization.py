import pytest

from analyzer_operator.core.errors import ValidationError
from analyzer_operator.core.serialization import backoff_to_object, config_from_object
from analyzer_operator.core.types import BackOff


def _object(spec: dict, **meta) -> dict:
    metadata = {"name": "analyzer", "namespace": "ops"}
    metadata.update(meta)
    return {"kind": "Analyzer", "metadata": metadata, "spec": spec}


def test_full_spec_is_parsed():
    config = config_from_object(
        {
            "kind": "Analyzer",
            "metadata": {"name": "analyzer", "namespace": "ops", "uid": "u1", "resourceVersion": "7"},
            "spec": {
                "version": "v0.4.1",
                "ai": {
                    "backend": "amazonbedrock",
                    "region": "eu-west-1",
                    "secret": {"name": "bedrock-keys"},
                    "backOff": {"enabled": True, "maxRetries": 3},
                },
                "resources": {"limits": {"cpu": "2"}},
                "nodeSelector": {"pool": "ai"},
                "kubeconfig": {"name": "remote", "key": "value"},
                "remoteCache": {"s3": {"bucketName": "cache", "region": "eu-west-1"}, "credentials": {"name": "s3"}},
                "extraOptions": {"serviceAccountRoleArn": "arn:role"},
            },
            "status": {"serverReady": True},
        }
    )

    assert config.ref.key().name == "analyzer"
    assert config.meta.resource_version == "7"
    assert config.spec.version == "v0.4.1"
    assert config.spec.ai.backoff == BackOff(enabled=True, max_retries=3)
    assert config.spec.resources.limits == {"cpu": "2"}
    assert config.spec.out_of_cluster
    assert config.spec.remote_cache.provider == "s3"
    assert config.spec.remote_cache.bucket_name == "cache"
    assert config.spec.extra_options.service_account_role_arn == "arn:role"
    assert config.status.server_ready is True
    assert [r.name for r in config.spec.secret_refs()] == ["bedrock-keys", "remote", "s3"]


def test_defaults_for_empty_spec():
    config = config_from_object(_object({}))

    assert config.spec.ai.backend == "openai"
    assert config.spec.ai.backoff is None
    assert config.spec.resources is None
    assert config.status.server_ready is False
    assert config.meta.deletion_timestamp == ""


def test_missing_namespace_is_rejected():
    with pytest.raises(ValidationError):
        config_from_object({"kind": "Analyzer", "metadata": {"name": "analyzer"}, "spec": {}})


@pytest.mark.parametrize(
    "spec",
    [
        {"ai": "openai"},
        {"ai": {"secret": {"key": "token"}}},
        {"ai": {"backOff": {"maxRetries": "many"}}},
        {"remoteCache": {"s3": {"bucketName": "b"}}},
        {"remoteCache": {"credentials": {"name": "c"}}},
    ],
)
def test_malformed_spec_is_rejected(spec):
    with pytest.raises(ValidationError):
        config_from_object(_object(spec))


def test_backoff_object_uses_stored_keys():
    assert backoff_to_object(BackOff()) == {"enabled": False, "maxRetries": 5}

