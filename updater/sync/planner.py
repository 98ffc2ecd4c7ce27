"""
Action planning for Site Updater.

Decides what an update, upload or remove pass does with each file. Nothing
here touches the disk or the network; plans are applied by the Installer and
the Uploader.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from ..core.formatting import to_posix
from ..errors import MultiSiteUploadError, UnknownFileError, UploadCancelled
from ..index.collection import FileCollection
from ..index.records import Action, FileRecord, Status

SiteChooser = Callable[[str], Optional[str]]

# Statuses each install action is valid for, tried in order
INSTALL_ACTIONS = (
    (Action.UPDATE, frozenset({Status.UPDATEABLE, Status.MODIFIED})),
    (Action.INSTALL, frozenset({Status.NEW, Status.NOT_INSTALLED})),
)

# Files that are not on disk cannot be uploaded
ABSENT = frozenset({Status.NEW, Status.NOT_INSTALLED, Status.OBSOLETE_UNINSTALLED})


@dataclass(frozen=True)
class PlanMode:
    force: bool = False
    pristine: bool = False


@dataclass(frozen=True)
class PlanStep:
    """
    One link of the update chain.

    A record enters the chain at the first step listing its status and then
    moves down: a step whose guard fails stops with its note, a step with an
    action ends the walk, any other step passes the record on.
    """
    name: str
    entered_by: FrozenSet[Status]
    guard: Callable[[PlanMode], bool] = lambda mode: True
    note: str = ""
    action: Optional[Action] = None


UPDATE_CHAIN = (
    PlanStep(
        name="modified",
        entered_by=frozenset({Status.MODIFIED}),
        guard=lambda mode: mode.force,
        note="Skipping locally-modified {}",
    ),
    PlanStep(
        name="install",
        entered_by=frozenset({Status.UPDATEABLE, Status.NEW, Status.NOT_INSTALLED}),
        action=Action.INSTALL,
    ),
    PlanStep(
        name="local-only",
        entered_by=frozenset({Status.LOCAL_ONLY}),
        guard=lambda mode: mode.pristine,
        note="Keeping local-only {}",
    ),
    PlanStep(
        name="obsolete-modified",
        entered_by=frozenset({Status.OBSOLETE_MODIFIED}),
        guard=lambda mode: mode.force,
        note="Keeping modified but obsolete {}",
    ),
    PlanStep(
        name="obsolete",
        entered_by=frozenset({Status.OBSOLETE}),
        action=Action.UNINSTALL,
    ),
)


@dataclass
class UpdatePlan:
    """Records given an install/update/uninstall action, and notes for the rest."""
    changes: List[FileRecord] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    @property
    def actions(self) -> Dict[str, Action]:
        return {record.filename: record.action for record in self.changes}


@dataclass
class UploadPlan:
    """Records given an upload/remove action, all bound for one site."""
    site: Optional[str] = None
    files: List[FileRecord] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)


def normalize_name(name: str) -> str:
    """Filenames on the command line may use backslashes or a leading ./"""
    name = to_posix(name)
    while name.startswith("./"):
        name = name[2:]
    return name


def select(collection: FileCollection, names: Iterable[str], platform: str) -> List[FileRecord]:
    """
    Records a command applies to.

    Only files valid for the platform, named (if any names are given), and not
    already gone both locally and remotely.
    """
    wanted = {normalize_name(n) for n in names} if names else None
    selected = []
    for record in collection:
        if not record.is_updateable_platform(platform):
            continue
        if wanted is not None and record.filename not in wanted:
            continue
        if record.status == Status.OBSOLETE_UNINSTALLED:
            continue
        selected.append(record)
    return selected


class ActionPlanner:
    """
    Assigns actions to records.

    Args:
        platform: Platform tag files are installed for
    """

    def __init__(self, platform: str):
        self.platform = platform

    def _entry_index(self, status: Status) -> Optional[int]:
        for i, step in enumerate(UPDATE_CHAIN):
            if status in step.entered_by:
                return i
        return None

    def _install_action(self, record: FileRecord) -> Action:
        """First valid of UPDATE, INSTALL for the record's status and platform."""
        if not record.is_updateable_platform(self.platform):
            return Action.NONE
        for action, statuses in INSTALL_ACTIONS:
            if record.status in statuses:
                return action
        return Action.NONE

    def plan_record(self, record: FileRecord, mode: PlanMode) -> Optional[str]:
        """
        Walk one record down the update chain.

        Returns:
            A note to show the user, or None
        """
        record.action = Action.NONE
        start = self._entry_index(record.status)
        if start is None:
            return f"Not updating {record.filename} ({record.status})"

        for step in UPDATE_CHAIN[start:]:
            if not step.guard(mode):
                return step.note.format(record.filename)
            if step.action is None:
                continue
            if step.action == Action.INSTALL:
                record.action = self._install_action(record)
                if record.action == Action.NONE:
                    return f"Not installing {record.filename} (not available for {self.platform})"
            else:
                record.action = step.action
            return None
        return None

    def plan_update(
        self,
        records: Iterable[FileRecord],
        force: bool = False,
        pristine: bool = False,
    ) -> UpdatePlan:
        """
        Assign INSTALL, UPDATE, UNINSTALL or NONE to each record.

        Args:
            records: Records to plan (usually a dependency closure)
            force: Overwrite locally-modified files, remove modified obsolete ones
            pristine: Also remove files no update site knows about
        """
        mode = PlanMode(force=force, pristine=pristine)
        plan = UpdatePlan()
        for record in records:
            note = self.plan_record(record, mode)
            if note:
                plan.notes.append(note)
            if record.action != Action.NONE:
                plan.changes.append(record)
        return plan

    def plan_upload(
        self,
        names: Iterable[str],
        collection: FileCollection,
        choose_site: SiteChooser,
    ) -> UploadPlan:
        """
        Mark files for upload to a single update site.

        The batch site is the first file's site; the user is asked when that
        file has none. Files without a site join the batch site.

        Raises:
            UnknownFileError: if a name is not in the collection
            UploadCancelled: if no site was chosen
            MultiSiteUploadError: if files belong to different sites
        """
        plan = UploadPlan()
        first_name = None
        assignments = []

        for name in (normalize_name(n) for n in names):
            record = collection.get(name)
            if record is None:
                raise UnknownFileError(name)
            if record.status == Status.INSTALLED:
                plan.notes.append(f"Skipping up-to-date {name}")
                continue
            if record.status in ABSENT:
                plan.notes.append(f"Skipping {name} ({record.status})")
                continue

            if plan.site is None:
                site = record.update_site or choose_site(name)
                if site is None:
                    raise UploadCancelled("Canceled")
                plan.site = site
                first_name = name
            elif record.update_site is None:
                plan.notes.append(f"Uploading new file '{name}' to site '{plan.site}'")
            elif record.update_site != plan.site:
                raise MultiSiteUploadError((first_name, plan.site), (name, record.update_site))
            assignments.append(record)

        # Nothing is changed until the whole batch is known to be valid
        for record in assignments:
            record.update_site = plan.site
            record.action = Action.UPLOAD
            plan.files.append(record)
        return plan

    def plan_remove(self, names: Iterable[str], collection: FileCollection) -> UploadPlan:
        """
        Mark files for withdrawal from the site that publishes them.

        Raises:
            UnknownFileError: if a name is not in the collection
            MultiSiteUploadError: if files belong to different sites
        """
        plan = UploadPlan()
        first_name = None
        assignments = []

        for name in (normalize_name(n) for n in names):
            record = collection.get(name)
            if record is None:
                raise UnknownFileError(name)
            if record.update_site is None or record.status in (
                Status.LOCAL_ONLY, Status.OBSOLETE, Status.OBSOLETE_MODIFIED, Status.OBSOLETE_UNINSTALLED,
            ):
                plan.notes.append(f"Not removing {name} ({record.status}): not published")
                continue
            if plan.site is None:
                plan.site = record.update_site
                first_name = name
            elif record.update_site != plan.site:
                raise MultiSiteUploadError((first_name, plan.site), (name, record.update_site))
            assignments.append(record)

        for record in assignments:
            record.action = Action.REMOVE
            plan.files.append(record)
        return plan
