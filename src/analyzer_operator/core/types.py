"""
Core types.

This file defines the shared data structures used across the operator.

Important design choice
The spec types are frozen. A pass never mutates the declared configuration in
place. When a derived default must be written back, we build a new value with
dataclasses.replace and persist it.

Descriptors are plain manifest dictionaries keyed by ObjectKey.
They are transport neutral: an ObjectStore adapter decides how to talk to a
real cluster, callers do not care.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Dict, Optional


class Backend(StrEnum):
    """
    AI backends understood by the analyzer server.

    azureopenai
      The only backend that accepts an engine (deployment) name.

    amazonbedrock
      Uses its own credential path (AWS keys) and requires a region.

    ibmwatsonxai
      Reads its provider id from the credential secret.
    """

    openai = "openai"
    azureopenai = "azureopenai"
    amazonbedrock = "amazonbedrock"
    amazonsagemaker = "amazonsagemaker"
    cohere = "cohere"
    googlevertexai = "googlevertexai"
    google = "google"
    huggingface = "huggingface"
    ibmwatsonxai = "ibmwatsonxai"
    localai = "localai"
    ollama = "ollama"
    noopai = "noopai"


class ResourceKind(StrEnum):
    """Kinds of object the builder produces, plus the kinds we only read."""

    analyzer = "Analyzer"
    service_account = "ServiceAccount"
    service = "Service"
    deployment = "Deployment"
    cluster_role = "ClusterRole"
    cluster_role_binding = "ClusterRoleBinding"
    secret = "Secret"


@dataclass(frozen=True, order=True)
class ObjectKey:
    """
    Stable identity of a stored object.

    namespace is empty for cluster scoped kinds such as ClusterRole.
    """

    kind: str
    namespace: str
    name: str

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True, order=True)
class InstanceRef:
    """Namespace and name of one managed analyzer instance."""

    namespace: str
    name: str

    def key(self) -> ObjectKey:
        return ObjectKey(kind=ResourceKind.analyzer.value, namespace=self.namespace, name=self.name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class SecretRef:
    """
    Reference to a key inside a secret in the instance namespace.

    key may be empty when the consumer picks fixed key names,
    for example the remote cache credentials.
    """

    name: str
    key: str = ""


@dataclass(frozen=True)
class BackOff:
    """
    Retry policy the analyzer server applies when calling its AI backend.

    Missing on first encounter. The configure step persists the default.
    """

    enabled: bool = False
    max_retries: int = 5


@dataclass(frozen=True)
class AISpec:
    """
    AI settings.

    engine
    Only valid for azureopenai.

    region
    Required for amazonbedrock.

    secret
    Credential reference. How it is consumed depends on the backend.
    """

    backend: str = Backend.openai.value
    model: str = "gpt-4o-mini"
    engine: str = ""
    region: str = ""
    secret: Optional[SecretRef] = None
    base_url: str = ""
    proxy_endpoint: str = ""
    provider_id: str = ""
    max_tokens: str = "2048"
    topk: str = "50"
    backoff: Optional[BackOff] = None


@dataclass(frozen=True)
class ResourceOverrides:
    """
    Explicit resource overrides.

    Each mapping uses the keys cpu and memory.
    Any key that is absent falls back to its own default.
    """

    limits: Dict[str, str] = field(default_factory=dict)
    requests: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RemoteCache:
    """
    Remote cache credentials.

    provider is azure or s3. credentials names a secret that holds
    fixed keys, see the builder for the key names.
    """

    provider: str
    credentials: SecretRef
    bucket_name: str = ""
    region: str = ""


@dataclass(frozen=True)
class ExtraOptions:
    """
    service_account_role_arn
    Identity federation role bound through a service account annotation.
    """

    service_account_role_arn: str = ""


@dataclass(frozen=True)
class AnalyzerSpec:
    """
    Desired configuration for one analyzer instance.

    kubeconfig
    When set, the analyzer targets an external cluster. This is out of cluster mode.
    """

    repository: str = "ghcr.io/analyzer-project/analyzer"
    version: str = "latest"
    image_pull_policy: str = "IfNotPresent"
    ai: AISpec = field(default_factory=AISpec)
    resources: Optional[ResourceOverrides] = None
    node_selector: Dict[str, str] = field(default_factory=dict)
    kubeconfig: Optional[SecretRef] = None
    remote_cache: Optional[RemoteCache] = None
    extra_options: Optional[ExtraOptions] = None

    @property
    def out_of_cluster(self) -> bool:
        return self.kubeconfig is not None

    def secret_refs(self) -> list[SecretRef]:
        """Every secret the spec references, in a stable order."""
        refs: list[SecretRef] = []
        if self.ai.secret is not None:
            refs.append(self.ai.secret)
        if self.kubeconfig is not None:
            refs.append(self.kubeconfig)
        if self.remote_cache is not None:
            refs.append(self.remote_cache.credentials)
        return refs


@dataclass(frozen=True)
class ObjectMeta:
    """
    Metadata of the custom resource.

    resource_version is opaque and only used for optimistic concurrency.
    deletion_timestamp is set when the resource is being removed.
    """

    name: str
    namespace: str
    uid: str = ""
    resource_version: str = ""
    deletion_timestamp: str = ""


@dataclass(frozen=True)
class AnalyzerStatus:
    server_ready: bool = False


@dataclass(frozen=True)
class AnalyzerConfig:
    """The custom resource as the operator sees it."""

    meta: ObjectMeta
    spec: AnalyzerSpec = field(default_factory=AnalyzerSpec)
    status: AnalyzerStatus = field(default_factory=AnalyzerStatus)

    @property
    def ref(self) -> InstanceRef:
        return InstanceRef(namespace=self.meta.namespace, name=self.meta.name)


@dataclass(frozen=True)
class Descriptor:
    """
    One object the synchronizer must converge.

    body is a full manifest dictionary including apiVersion, kind and metadata.
    Treat it as read only. The synchronizer copies it before handing it to a store.
    """

    kind: str
    namespace: str
    name: str
    body: Dict[str, Any]

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(kind=self.kind, namespace=self.namespace, name=self.name)
