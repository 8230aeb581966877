"""
Custom resource serialization.

The object store holds the analyzer custom resource as a plain manifest dict
with camelCase keys. This module converts it to AnalyzerConfig and back.

Schema example
{
  "apiVersion": "core.analyzer.dev/v1alpha1",
  "kind": "Analyzer",
  "metadata": {"name": "analyzer", "namespace": "ops", "uid": "u1"},
  "spec": {
    "repository": "ghcr.io/analyzer-project/analyzer",
    "version": "v0.4.1",
    "ai": {
      "backend": "amazonbedrock",
      "model": "anthropic.claude-v2",
      "region": "eu-west-1",
      "secret": {"name": "bedrock-keys"},
      "backOff": {"enabled": false, "maxRetries": 5}
    },
    "resources": {"limits": {"cpu": "2"}},
    "kubeconfig": {"name": "remote-cluster", "key": "value"},
    "remoteCache": {"s3": {"bucketName": "cache", "region": "eu-west-1"}, "credentials": {"name": "s3-creds"}},
    "extraOptions": {"serviceAccountRoleArn": "arn:aws:iam::1:role/analyzer"}
  },
  "status": {"serverReady": false}
}

Malformed input raises ValidationError so the driver can report it without retrying.
"""

from __future__ import annotations

from typing import Any, Optional

from analyzer_operator.core.errors import ValidationError
from analyzer_operator.core.types import (
    AISpec,
    AnalyzerConfig,
    AnalyzerSpec,
    AnalyzerStatus,
    BackOff,
    ExtraOptions,
    ObjectMeta,
    RemoteCache,
    ResourceOverrides,
    SecretRef,
)


def _mapping(obj: Any, where: str) -> dict[str, Any]:
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValidationError(f"{where} must be an object")
    return obj


def _str_map(obj: Any, where: str) -> dict[str, str]:
    return {str(k): str(v) for k, v in _mapping(obj, where).items()}


def _secret_ref(obj: Any, where: str) -> Optional[SecretRef]:
    if obj is None:
        return None
    raw = _mapping(obj, where)
    name = str(raw.get("name", "") or "")
    if not name:
        raise ValidationError(f"{where}.name is required")
    return SecretRef(name=name, key=str(raw.get("key", "") or ""))


def _backoff(obj: Any) -> Optional[BackOff]:
    if obj is None:
        return None
    raw = _mapping(obj, "spec.ai.backOff")
    try:
        max_retries = int(raw.get("maxRetries", 5))
    except (TypeError, ValueError):
        raise ValidationError("spec.ai.backOff.maxRetries must be an integer") from None
    return BackOff(enabled=bool(raw.get("enabled", False)), max_retries=max_retries)


def backoff_to_object(backoff: BackOff) -> dict[str, Any]:
    return {"enabled": backoff.enabled, "maxRetries": backoff.max_retries}


def _ai_from_dict(obj: Any) -> AISpec:
    raw = _mapping(obj, "spec.ai")
    defaults = AISpec()
    return AISpec(
        backend=str(raw.get("backend", defaults.backend) or defaults.backend),
        model=str(raw.get("model", defaults.model) or ""),
        engine=str(raw.get("engine", "") or ""),
        region=str(raw.get("region", "") or ""),
        secret=_secret_ref(raw.get("secret"), "spec.ai.secret"),
        base_url=str(raw.get("baseUrl", "") or ""),
        proxy_endpoint=str(raw.get("proxyEndpoint", "") or ""),
        provider_id=str(raw.get("providerId", "") or ""),
        max_tokens=str(raw.get("maxTokens", defaults.max_tokens)),
        topk=str(raw.get("topk", defaults.topk)),
        backoff=_backoff(raw.get("backOff")),
    )


def _resources_from_dict(obj: Any) -> Optional[ResourceOverrides]:
    if obj is None:
        return None
    raw = _mapping(obj, "spec.resources")
    return ResourceOverrides(
        limits=_str_map(raw.get("limits"), "spec.resources.limits"),
        requests=_str_map(raw.get("requests"), "spec.resources.requests"),
    )


def _remote_cache_from_dict(obj: Any) -> Optional[RemoteCache]:
    if obj is None:
        return None
    raw = _mapping(obj, "spec.remoteCache")
    credentials = _secret_ref(raw.get("credentials"), "spec.remoteCache.credentials")
    if credentials is None:
        raise ValidationError("spec.remoteCache.credentials is required")

    for provider in ("azure", "s3"):
        if provider in raw:
            block = _mapping(raw.get(provider), f"spec.remoteCache.{provider}")
            return RemoteCache(
                provider=provider,
                credentials=credentials,
                bucket_name=str(block.get("bucketName", block.get("containerName", "")) or ""),
                region=str(block.get("region", "") or ""),
            )

    raise ValidationError("spec.remoteCache must set azure or s3")


def _extra_options_from_dict(obj: Any) -> Optional[ExtraOptions]:
    if obj is None:
        return None
    raw = _mapping(obj, "spec.extraOptions")
    return ExtraOptions(service_account_role_arn=str(raw.get("serviceAccountRoleArn", "") or ""))


def spec_from_dict(obj: Any) -> AnalyzerSpec:
    raw = _mapping(obj, "spec")
    defaults = AnalyzerSpec()
    return AnalyzerSpec(
        repository=str(raw.get("repository", defaults.repository) or defaults.repository),
        version=str(raw.get("version", defaults.version) or defaults.version),
        image_pull_policy=str(raw.get("imagePullPolicy", defaults.image_pull_policy) or defaults.image_pull_policy),
        ai=_ai_from_dict(raw.get("ai")),
        resources=_resources_from_dict(raw.get("resources")),
        node_selector=_str_map(raw.get("nodeSelector"), "spec.nodeSelector"),
        kubeconfig=_secret_ref(raw.get("kubeconfig"), "spec.kubeconfig"),
        remote_cache=_remote_cache_from_dict(raw.get("remoteCache")),
        extra_options=_extra_options_from_dict(raw.get("extraOptions")),
    )


def config_from_object(obj: dict[str, Any]) -> AnalyzerConfig:
    """Convert a stored custom resource into AnalyzerConfig."""
    meta_raw = _mapping(obj.get("metadata"), "metadata")
    name = str(meta_raw.get("name", "") or "")
    namespace = str(meta_raw.get("namespace", "") or "")
    if not name or not namespace:
        raise ValidationError("metadata.name and metadata.namespace are required")

    meta = ObjectMeta(
        name=name,
        namespace=namespace,
        uid=str(meta_raw.get("uid", "") or ""),
        resource_version=str(meta_raw.get("resourceVersion", "") or ""),
        deletion_timestamp=str(meta_raw.get("deletionTimestamp", "") or ""),
    )
    status_raw = _mapping(obj.get("status"), "status")

    return AnalyzerConfig(
        meta=meta,
        spec=spec_from_dict(obj.get("spec")),
        status=AnalyzerStatus(server_ready=bool(status_raw.get("serverReady", False))),
    )
