"""
Cluster role rules for the analyzer server.

The analyzer only reads cluster state. Every rule is read only.
"""

from __future__ import annotations

from typing import Any

_READ = ["get", "list", "watch"]


def analyzer_rules() -> list[dict[str, Any]]:
    """Return a fresh copy of the rule list so callers may embed it in a manifest."""
    return [
        {
            "apiGroups": [""],
            "resources": ["pods", "services", "secrets", "endpoints", "nodes", "configmaps", "namespaces"],
            "verbs": list(_READ),
        },
        {"apiGroups": [""], "resources": ["persistentvolumeclaims"], "verbs": ["list"]},
        {"apiGroups": [""], "resources": ["events"], "verbs": ["list"]},
        {
            "apiGroups": ["apps"],
            "resources": ["deployments", "replicasets", "statefulsets", "daemonsets", "replicationcontrollers"],
            "verbs": list(_READ),
        },
        {"apiGroups": ["batch"], "resources": ["cronjobs", "jobs"], "verbs": list(_READ)},
        {"apiGroups": ["autoscaling"], "resources": ["horizontalpodautoscalers"], "verbs": list(_READ)},
        {"apiGroups": ["networking.k8s.io"], "resources": ["ingresses", "networkpolicies"], "verbs": list(_READ)},
        {
            "apiGroups": ["admissionregistration.k8s.io"],
            "resources": ["validatingwebhookconfigurations", "mutatingwebhookconfigurations"],
            "verbs": list(_READ),
        },
        {"apiGroups": ["policy"], "resources": ["poddisruptionbudgets"], "verbs": list(_READ)},
        {"apiGroups": ["storage.k8s.io"], "resources": ["storageclasses"], "verbs": list(_READ)},
        {
            "apiGroups": ["gateway.networking.k8s.io"],
            "resources": ["gatewayclasses", "gateways", "httproutes"],
            "verbs": list(_READ),
        },
        {"apiGroups": [""], "resources": ["pods/log"], "verbs": list(_READ)},
    ]
