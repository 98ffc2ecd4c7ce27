"""
Sync operations module.

Handles status resolution, dependency closure, action planning, and the
download/install and upload passes that apply a plan.
"""

from .status import StatusResolver, resolve_status, remote_entry_for
from .dependencies import DependencyClosure, resolve_closure
from .planner import ActionPlanner, UpdatePlan, UploadPlan, select
from .downloader import Downloader, DownloadJob, DownloadResult, DownloadReport
from .installer import Installer, InstallReport
from .uploader import Uploader, UploadReport

__all__ = [
    # Status
    "StatusResolver",
    "resolve_status",
    "remote_entry_for",
    # Dependencies
    "DependencyClosure",
    "resolve_closure",
    # Planning
    "ActionPlanner",
    "UpdatePlan",
    "UploadPlan",
    "select",
    # Downloader
    "Downloader",
    "DownloadJob",
    "DownloadResult",
    "DownloadReport",
    # Installer
    "Installer",
    "InstallReport",
    # Uploader
    "Uploader",
    "UploadReport",
]
