#!/usr/bin/env python3
"""
Site Updater - keep a local installation in sync with its update sites.

Lists file status, installs and removes files from the configured update
sites, and uploads local changes back to a site.
"""

import argparse
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional

from updater import __version__
from updater.config import UpdaterSettings
from updater.core.paths import get_index_path, get_root, get_settings_path
from updater.errors import IndexLoadError, UpdaterError, UploadCancelled
from updater.index import (
    FileCollection,
    FileRecord,
    IndexStore,
    RepositoryIndex,
    Status,
    UpdateSite,
    fetch_site_document,
    is_status,
    negate,
    one_of,
)
from updater.sync import (
    ActionPlanner,
    Downloader,
    Installer,
    InstallReport,
    StatusResolver,
    Uploader,
    UploadReport,
    resolve_closure,
    select,
)
from updater.sync.planner import UploadPlan
from updater.transport import HttpTransport, ProxyConfig
from updater.ui import ConsoleUI, TransferProgress

logger = logging.getLogger("updater")


# ============================================================================
# Main Application
# ============================================================================


class UpdaterApp:
    """Main application controller."""

    def __init__(
        self,
        root: Path,
        ui: Optional[ConsoleUI] = None,
        proxy: Optional[ProxyConfig] = None,
        transport=None,
        fetcher: Optional[Callable] = None,
        out=None,
    ):
        self.root = root
        self.ui = ui or ConsoleUI()
        self.out = out or sys.stdout
        self.settings = UpdaterSettings.load(get_settings_path(root))
        self.platform = self.settings.effective_platform()
        self.transport = transport or HttpTransport(
            proxy=proxy,
            timeout=self.settings.timeout,
            chunk_size=self.settings.chunk_size,
        )
        fetcher = fetcher or partial(fetch_site_document, timeout=self.settings.timeout[0], proxy=proxy)
        self.store = IndexStore(get_index_path(root), fetcher)
        self.index: Optional[RepositoryIndex] = None
        self.collection: Optional[FileCollection] = None

    def load(self):
        """
        Read every index, find local-only files, and compute statuses.

        Raises:
            IndexLoadError: if any index cannot be read
        """
        self.index, self.collection = self.store.load()
        self.collection.scan_local(self.root, self.settings.managed_dirs)
        StatusResolver(self.root, self.ui).resolve(self.collection, self.index)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _selected(self, names: List[str], predicate=None) -> List[FileRecord]:
        records = select(self.collection, names, self.platform)
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        return records

    def list(self, names: List[str], predicate=None):
        for record in self._selected(names, predicate):
            print(f"{record.filename}\t({record.status})\t{record.timestamp}", file=self.out)

    def list_current(self, names: List[str]):
        for record in self._selected(names):
            print(f"{record.filename}-{record.timestamp}", file=self.out)

    def list_uptodate(self, names: List[str]):
        self.list(names, is_status(Status.INSTALLED))

    def list_not_uptodate(self, names: List[str]):
        self.list(names, negate(one_of([Status.OBSOLETE, Status.INSTALLED, Status.LOCAL_ONLY])))

    def list_updateable(self, names: List[str]):
        self.list(names, is_status(Status.UPDATEABLE))

    def list_modified(self, names: List[str]):
        self.list(names, is_status(Status.MODIFIED))

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, names: List[str], force: bool = False, pristine: bool = False) -> InstallReport:
        """Install, update and uninstall the named files and their dependencies."""
        requested = [r.filename for r in self._selected(names)]
        closure = resolve_closure(requested, self.collection)
        for warning in closure.warnings:
            self.ui.warn(str(warning))

        records = [self.collection.get(name) for name in closure.files]
        plan = ActionPlanner(self.platform).plan_update(records, force=force, pristine=pristine)
        for note in plan.notes:
            self.ui.warn(note)

        downloader = Downloader(
            self.transport,
            self.ui,
            max_workers=self.settings.max_workers,
            max_retries=self.settings.max_retries,
        )
        installer = Installer(
            self.collection, self.index, self.root, downloader, self.store, self.ui, self.platform,
        )
        progress = TransferProgress(self.ui, total_jobs=len(plan.changes))
        try:
            report = installer.apply(plan.changes, progress)
        finally:
            progress.close()

        if report.cancelled:
            self.ui.warn(f"Cancelled. Installed {len(report.installed)}, removed {len(report.removed)}.")
        return report

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def choose_upload_site(self, filename: str) -> Optional[str]:
        sites = self.collection.uploadable_sites()
        if not sites:
            self.ui.warn("No uploadable sites found")
            return None
        message = f"Choose upload site for file '{filename}'"
        choice = self.ui.choose_one(message, [site.long_name for site in sites], 0)
        return None if choice is None or choice < 0 else sites[choice].name

    def _publish(self, plan: UploadPlan, verb: str, assume_yes: bool) -> UploadReport:
        for note in plan.notes:
            self.ui.warn(note)
        if not plan.files:
            self.ui.warn(f"Nothing to {verb}")
            return UploadReport()

        if not assume_yes:
            question = f"{verb.capitalize()} {len(plan.files)} file(s) on {plan.site}? [y/N]"
            if not self.ui.prompt_yes_no(verb.capitalize(), question):
                raise UploadCancelled("Canceled")

        uploader = Uploader(self.collection, self.index, self.transport, self.ui, self.root, self.store)
        progress = TransferProgress(self.ui, total_jobs=len(plan.files))
        try:
            return uploader.upload(plan.files, progress)
        finally:
            progress.close()

    def upload(self, names: List[str], assume_yes: bool = False) -> UploadReport:
        """
        Upload files to their update site.

        Raises:
            UpdaterError: on any batch-wide failure (unknown file, cancelled
                          site choice, mixed sites, refused login)
        """
        if not names:
            raise UpdaterError("Which files do you mean to upload?")
        plan = ActionPlanner(self.platform).plan_upload(names, self.collection, self.choose_upload_site)
        return self._publish(plan, "upload", assume_yes)

    def remove(self, names: List[str], assume_yes: bool = False) -> UploadReport:
        """Withdraw files from the update site that publishes them."""
        if not names:
            raise UpdaterError("Which files do you mean to remove?")
        plan = ActionPlanner(self.platform).plan_remove(names, self.collection)
        return self._publish(plan, "remove", assume_yes)

    # ------------------------------------------------------------------
    # Update sites
    # ------------------------------------------------------------------

    def add_update_site(self, name: str, url: str, upload_url: str = None, username: str = None):
        """
        Add or replace an update site. Only local state is touched.

        The first site added also writes default settings, so a new
        installation has a settings file to edit.
        """
        collection = self.store.load_local()
        collection.add_site(UpdateSite(name=name, url=url, upload_url=upload_url, username=username))
        self.store.save(collection)
        if self.settings.is_new:
            self.settings.save()
        self.ui.info(f"Added update site {name} ({url})")

    def list_update_sites(self):
        for site in self.store.load_local().sites:
            print(f"{site.name}\t{site.url}\t{site.upload_url or ''}", file=self.out)


# ============================================================================
# Command line
# ============================================================================

LIST_COMMANDS = {
    "list": UpdaterApp.list,
    "list-current": UpdaterApp.list_current,
    "list-uptodate": UpdaterApp.list_uptodate,
    "list-not-uptodate": UpdaterApp.list_not_uptodate,
    "list-updateable": UpdaterApp.list_updateable,
    "list-modified": UpdaterApp.list_modified,
}

UPDATE_COMMANDS = {
    "update": dict(force=False, pristine=False),
    "update-force": dict(force=True, pristine=False),
    "update-force-pristine": dict(force=True, pristine=True),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="site-update",
        description="Site Updater - keep an installation in sync with its update sites",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--root",
        help="Installation root (default: $UPDATER_ROOT or the current directory)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug output",
    )

    commands = parser.add_subparsers(dest="command", metavar="<command>")
    for name in LIST_COMMANDS:
        sub = commands.add_parser(name, help=f"{name.replace('-', ' ')} files")
        sub.add_argument("files", nargs="*")
    for name in UPDATE_COMMANDS:
        sub = commands.add_parser(name, help=f"{name.replace('-', ' ')} files and their dependencies")
        sub.add_argument("files", nargs="*")
    for name in ("upload", "remove"):
        sub = commands.add_parser(name, help=f"{name} files on their update site")
        sub.add_argument("files", nargs="*")
        sub.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    sub = commands.add_parser("add-update-site", help="add or replace an update site")
    sub.add_argument("name")
    sub.add_argument("url")
    sub.add_argument("--upload-url", help="Where uploads go (default: not uploadable)")
    sub.add_argument("--username", help="Default login for uploads")

    commands.add_parser("list-update-sites", help="list configured update sites")
    return parser


def run(args, app: UpdaterApp) -> int:
    """Dispatch a parsed command. Returns the process exit code."""
    command = args.command

    if command == "add-update-site":
        app.add_update_site(args.name, args.url, args.upload_url, args.username)
        return 0
    if command == "list-update-sites":
        app.list_update_sites()
        return 0

    app.load()

    if command in LIST_COMMANDS:
        LIST_COMMANDS[command](app, args.files)
    elif command in UPDATE_COMMANDS:
        app.update(args.files, **UPDATE_COMMANDS[command])
    elif command in ("upload", "remove"):
        publish = app.upload if command == "upload" else app.remove
        report = publish(args.files, assume_yes=args.yes)
        if report.publish_error:
            return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_usage(sys.stderr)
        return 0

    try:
        proxy = ProxyConfig.from_env()
    except ValueError as e:
        print(f"Invalid http_proxy: {e}", file=sys.stderr)
        return 1

    app = UpdaterApp(get_root(args.root), proxy=proxy)
    try:
        return run(args, app)
    except IndexLoadError as e:
        print(f"Could not load index: {e}", file=sys.stderr)
        return 1
    except UpdaterError as e:
        print(str(e), file=sys.stderr)
        return 1
    except OSError as e:
        logger.debug("Index write failed", exc_info=True)
        print(f"Could not write index: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nCancelled by user.", file=sys.stderr)
        sys.exit(0)
