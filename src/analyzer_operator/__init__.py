"""
analyzer_operator

This package is a convergence reconciliation engine for an AI backed cluster
analyzer server.

We keep modules small and well separated:
core contains shared data structures, errors, settings and the kind registry
resources contains the desired state builder
store contains the object store interface and an in memory store
sync contains the synchronizer and conflict retry
pipeline contains the pass context and the reconcile steps
signals contains the inter controller signal channel
driver contains the reconciler and the runtime loop
trigger contains trigger event sources
"""
