"""
Desired state builder.

Purpose
This builder converts an AnalyzerConfig into the ordered list of descriptors
the synchronizer converges:
1) ServiceAccount, the identity the analyzer runs as
2) Service, network exposure of the analyzer API
3) Deployment, the analyzer workload itself
4) ClusterRole and ClusterRoleBinding, read only access control

Why deterministic
A pass must be safe to re run at any time. The same config must always produce
the same descriptors, so the synchronizer can compare and skip no op patches.
No clock, no randomness, no I O. Secret existence is checked by the
synchronizer, not here.

Validation
validate runs before anything is built and raises ValidationError on a
contradictory spec. Nothing reaches the object store in that case.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from analyzer_operator.core.errors import ValidationError
from analyzer_operator.core.registry import KindRegistry, default_registry
from analyzer_operator.core.types import AnalyzerConfig, Backend, Descriptor, ResourceKind, SecretRef
from analyzer_operator.resources.defaults import resource_requirements
from analyzer_operator.resources.rbac import analyzer_rules

ROLE_ARN_ANNOTATION = "eks.amazonaws.com/role-arn"
CONTAINER_NAME = "analyzer"
DATA_VOLUME = "analyzer-vol"
KUBECONFIG_VOLUME = "kubeconfig"

_REMOTE_CACHE_KEYS = {
    "azure": (
        ("AZURE_CLIENT_ID", "azure_client_id"),
        ("AZURE_TENANT_ID", "azure_tenant_id"),
        ("AZURE_CLIENT_SECRET", "azure_client_secret"),
    ),
    "s3": (
        ("AWS_ACCESS_KEY_ID", "aws_access_key_id"),
        ("AWS_SECRET_ACCESS_KEY", "aws_secret_access_key"),
    ),
}


@dataclass(frozen=True)
class BuilderConfig:
    """
    Builder configuration.

    service_port
    Port the analyzer serves on, exposed by the Service.

    data_dir
    Mount path of the scratch volume used for config and cache.

    env_prefix
    Prefix of the environment variables the analyzer image reads.
    """

    service_port: int = 8080
    data_dir: str = "/analyzer-data"
    env_prefix: str = "ANALYZER"


@dataclass(frozen=True)
class IdentityNames:
    service_account: str
    cluster_role: str
    cluster_role_binding: str


def identity_names(namespace: str) -> IdentityNames:
    """Identity objects are shared per namespace, so names derive from it."""
    service_account = f"analyzer-{namespace}"
    cluster_role = f"{service_account}-clusterrole"
    return IdentityNames(
        service_account=service_account,
        cluster_role=cluster_role,
        cluster_role_binding=f"{cluster_role}-binding",
    )


def _secret_env(name: str, secret: str, key: str) -> dict[str, Any]:
    return {"name": name, "valueFrom": {"secretKeyRef": {"name": secret, "key": key}}}


def _value_env(name: str, value: str) -> dict[str, Any]:
    return {"name": name, "value": value}


class DesiredStateBuilder:
    """
    A pure builder that produces descriptors from AnalyzerConfig.

    registry
    Source of apiVersion strings for manifests and owner references.
    """

    def __init__(self, registry: KindRegistry | None = None, config: BuilderConfig | None = None) -> None:
        self._registry = registry or default_registry()
        self._config = config or BuilderConfig()

    def build(self, config: AnalyzerConfig, validate: bool = True) -> list[Descriptor]:
        """
        Validate the config and return descriptors in build order.

        Teardown passes validate=False. An invalid spec must not block deletion.
        """

        if validate:
            self.validate(config)
        names = identity_names(config.meta.namespace)

        return [
            self.service_account(config, names),
            self.service(config),
            self.deployment(config, names),
            self.cluster_role(config, names),
            self.cluster_role_binding(config, names),
        ]

    def validate(self, config: AnalyzerConfig) -> None:
        """
        Reject contradictory specs.

        Rules
        1) engine is only accepted by azureopenai
        2) amazonbedrock requires a region
        """

        ai = config.spec.ai

        if ai.engine and ai.backend != Backend.azureopenai:
            raise ValidationError(
                f"engine is supported only by {Backend.azureopenai.value} backend, got {ai.backend}"
            )

        if ai.backend == Backend.amazonbedrock and not ai.region:
            raise ValidationError(f"region is required for {Backend.amazonbedrock.value} backend")

    def _meta(self, config: AnalyzerConfig, kind: ResourceKind, name: str) -> dict[str, Any]:
        owner = {
            "apiVersion": self._registry.get(ResourceKind.analyzer.value).api_version,
            "kind": ResourceKind.analyzer.value,
            "name": config.meta.name,
            "uid": config.meta.uid,
            "blockOwnerDeletion": True,
            "controller": True,
        }
        meta: dict[str, Any] = {"name": name, "ownerReferences": [owner]}
        if self._registry.get(kind.value).namespaced:
            meta["namespace"] = config.meta.namespace
        return meta

    def _descriptor(self, kind: ResourceKind, body: dict[str, Any]) -> Descriptor:
        meta = body["metadata"]
        manifest = {"apiVersion": self._registry.get(kind.value).api_version, "kind": kind.value}
        manifest.update(body)
        return Descriptor(kind=kind.value, namespace=meta.get("namespace", ""), name=meta["name"], body=manifest)

    def service_account(self, config: AnalyzerConfig, names: IdentityNames) -> Descriptor:
        meta = self._meta(config, ResourceKind.service_account, names.service_account)
        annotations: dict[str, str] = {}
        extra = config.spec.extra_options
        if extra is not None and extra.service_account_role_arn:
            annotations[ROLE_ARN_ANNOTATION] = extra.service_account_role_arn
        meta["annotations"] = annotations

        return self._descriptor(ResourceKind.service_account, {"metadata": meta})

    def service(self, config: AnalyzerConfig) -> Descriptor:
        body = {
            "metadata": self._meta(config, ResourceKind.service, config.meta.name),
            "spec": {
                "selector": {"app": config.meta.name},
                "ports": [{"port": self._config.service_port}],
            },
        }
        return self._descriptor(ResourceKind.service, body)

    def deployment(self, config: AnalyzerConfig, names: IdentityNames) -> Descriptor:
        """
        Build the analyzer Deployment.

        Out of cluster mode
        The analyzer reads a kubeconfig for an external cluster, so it does not
        need its own service account token. The exception is amazonbedrock with
        a federation role: the role is bound through the service account, so we
        keep it next to the kubeconfig mount.
        """

        spec = config.spec
        ai = spec.ai

        container: dict[str, Any] = {
            "name": CONTAINER_NAME,
            "image": f"{spec.repository}:{spec.version}",
            "imagePullPolicy": spec.image_pull_policy,
            "args": ["serve"],
            "env": self._env(config),
            "ports": [{"containerPort": self._config.service_port}],
            "resources": resource_requirements(spec.resources),
            "volumeMounts": [{"name": DATA_VOLUME, "mountPath": self._config.data_dir}],
        }
        pod_spec: dict[str, Any] = {
            "serviceAccountName": names.service_account,
            "containers": [container],
            "volumes": [{"name": DATA_VOLUME, "emptyDir": {}}],
        }
        if spec.node_selector:
            pod_spec["nodeSelector"] = dict(sorted(spec.node_selector.items()))

        if spec.kubeconfig is not None:
            keep_identity = (
                ai.backend == Backend.amazonbedrock
                and spec.extra_options is not None
                and bool(spec.extra_options.service_account_role_arn)
            )
            if not keep_identity:
                pod_spec["serviceAccountName"] = ""
                pod_spec["automountServiceAccountToken"] = False

            mount_path = f"/tmp/{config.meta.name}"
            container["args"].append(f"--kubeconfig={mount_path}/kubeconfig")
            container["volumeMounts"].append({"name": KUBECONFIG_VOLUME, "readOnly": True, "mountPath": mount_path})
            pod_spec["volumes"].append(
                {
                    "name": KUBECONFIG_VOLUME,
                    "secret": {
                        "secretName": spec.kubeconfig.name,
                        "items": [{"key": spec.kubeconfig.key, "path": "kubeconfig"}],
                    },
                }
            )

        labels = {"app": config.meta.name}
        body = {
            "metadata": self._meta(config, ResourceKind.deployment, config.meta.name),
            "spec": {
                "replicas": 1,
                "selector": {"matchLabels": dict(labels)},
                "template": {"metadata": {"labels": dict(labels)}, "spec": pod_spec},
            },
        }
        return self._descriptor(ResourceKind.deployment, body)

    def _env(self, config: AnalyzerConfig) -> list[dict[str, Any]]:
        """
        Build the container environment.

        Secret injection
        The generic password variable is only set when a secret is present and
        the backend does not have a dedicated credential path. amazonbedrock
        reads AWS keys from the secret instead.
        """

        spec = config.spec
        ai = spec.ai
        prefix = self._config.env_prefix

        env = [
            _value_env(f"{prefix}_MODEL", ai.model),
            _value_env(f"{prefix}_BACKEND", ai.backend),
            _value_env(f"{prefix}_MAX_TOKENS", ai.max_tokens),
            _value_env(f"{prefix}_TOP_K", ai.topk),
            _value_env("XDG_CONFIG_HOME", f"{self._config.data_dir}/.config"),
            _value_env("XDG_CACHE_HOME", f"{self._config.data_dir}/.cache"),
        ]

        if ai.secret is not None and ai.backend != Backend.amazonbedrock:
            env.append(_secret_env(f"{prefix}_PASSWORD", ai.secret.name, ai.secret.key))

        if spec.remote_cache is not None:
            env.extend(self._remote_cache_env(spec.remote_cache.provider, spec.remote_cache.credentials))

        if ai.provider_id:
            env.append(_value_env(f"{prefix}_PROVIDER_ID", ai.provider_id))
        if ai.base_url:
            env.append(_value_env(f"{prefix}_BASEURL", ai.base_url))
        if ai.engine:
            env.append(_value_env(f"{prefix}_ENGINE", ai.engine))
        if ai.proxy_endpoint:
            env.append(_value_env(f"{prefix}_PROXY_ENDPOINT", ai.proxy_endpoint))

        if ai.backend == Backend.amazonbedrock:
            if ai.secret is not None:
                env.append(_secret_env("AWS_ACCESS_KEY_ID", ai.secret.name, "AWS_ACCESS_KEY_ID"))
                env.append(_secret_env("AWS_SECRET_ACCESS_KEY", ai.secret.name, "AWS_SECRET_ACCESS_KEY"))
            env.append(_value_env("AWS_DEFAULT_REGION", ai.region))

        if ai.backend == Backend.ibmwatsonxai and ai.secret is not None:
            env.append(_secret_env(f"{prefix}_PROVIDER_ID", ai.secret.name, f"{prefix}_PROVIDER_ID"))

        return env

    def _remote_cache_env(self, provider: str, credentials: SecretRef) -> list[dict[str, Any]]:
        return [_secret_env(name, credentials.name, key) for name, key in _REMOTE_CACHE_KEYS.get(provider, ())]

    def cluster_role(self, config: AnalyzerConfig, names: IdentityNames) -> Descriptor:
        body = {
            "metadata": self._meta(config, ResourceKind.cluster_role, names.cluster_role),
            "rules": analyzer_rules(),
        }
        return self._descriptor(ResourceKind.cluster_role, body)

    def cluster_role_binding(self, config: AnalyzerConfig, names: IdentityNames) -> Descriptor:
        body = {
            "metadata": self._meta(config, ResourceKind.cluster_role_binding, names.cluster_role_binding),
            "subjects": [
                {
                    "kind": ResourceKind.service_account.value,
                    "name": names.service_account,
                    "namespace": config.meta.namespace,
                }
            ],
            "roleRef": {"kind": ResourceKind.cluster_role.value, "name": names.cluster_role},
        }
        return self._descriptor(ResourceKind.cluster_role_binding, body)
