"""Stub artifacts -- naming, framing, and reconciliation of the output directory."""

from stubsync.artifacts.models import (
    ArtifactFile,
    Classification,
    PackageRef,
    SyncMode,
    SyncPlan,
    SyncReport,
)
from stubsync.artifacts.reconciler import ArtifactReconciler, desired_set, plan

__all__ = [
    "ArtifactFile",
    "ArtifactReconciler",
    "Classification",
    "PackageRef",
    "SyncMode",
    "SyncPlan",
    "SyncReport",
    "desired_set",
    "plan",
]
