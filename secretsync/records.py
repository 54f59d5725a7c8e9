"""
Record and partition types shared by the core and the store.

Annotation and label keys are part of the on-cluster contract with
existing kubed deployments and must not change.
"""

from dataclasses import dataclass, field
from typing import Dict

SYNC_ANNOTATION = "kubed.appscode.com/sync"
ORIGIN_ANNOTATION = "kubed.appscode.com/origin"

ORIGIN_CLUSTER_LABEL = "kubed.appscode.com/origin.cluster"
ORIGIN_NAME_LABEL = "kubed.appscode.com/origin.name"
ORIGIN_NAMESPACE_LABEL = "kubed.appscode.com/origin.namespace"

DEFAULT_CLUSTER = "unicorn"
DEFAULT_SECRET_TYPE = "Opaque"


@dataclass
class Partition:
    """A namespace and its labels."""

    name: str
    labels: Dict[str, str] = field(default_factory=dict)

    def matches(self, selector: Dict[str, str]) -> bool:
        """True when every selector pair is present in the labels."""
        return all(self.labels.get(k) == v for k, v in selector.items())


@dataclass
class Record:
    """A secret: identity, opaque byte payload and metadata."""

    namespace: str
    name: str
    data: Dict[str, bytes] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    type: str = DEFAULT_SECRET_TYPE
    uid: str = ""
    resource_version: str = ""

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_replica(self) -> bool:
        return ORIGIN_ANNOTATION in self.annotations
