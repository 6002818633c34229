"""Dashboard client: REST calls, push-channel listener and local reconciliation."""

from devicedash.client.dashboard import DashboardClient
from devicedash.client.reconciler import DeviceReconciler

__all__ = ["DashboardClient", "DeviceReconciler"]
