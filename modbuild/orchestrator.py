"""Pipeline orchestration for build/open/create/pull-request/users flows."""

from __future__ import annotations

import shutil
import webbrowser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from .auth import Auth
from .build import BuildOrchestrator
from .config import DEFAULT_TEMPLATES_DIR, DEFAULT_TRIGGERS_FILE, ModBuildConfig, detect_root_project
from .dependencies import DependencyExtractor
from .errors import ModBuildError
from .filters import ModuleFilter
from .git.changes import ChangeSet, load_trigger_rules
from .git.vc import GitVersionControl, VersionControl
from .logging import get_logger
from .models import Module, ModuleGraph, SelectionResult, derive_module_name
from .scaffold import Scaffolder
from .scanner import ModuleScanner
from .selector import ImpactSelector
from .settings import DEFAULT_SETTINGS_FILENAME, SettingsWriter
from .stash import PullRequest, Server, StashClient

GIT_REVIEWERS_FILE = ".git_reviewers"


def default_reviewers_file() -> Path:
    return Path.home() / GIT_REVIEWERS_FILE


@dataclass
class BuildRequest:
    """Options of one `modbuild build` run."""

    tasks: List[str] = field(default_factory=list)
    all_modules: bool = False
    after_commit: Optional[str] = None
    name_pattern: Optional[str] = None
    triggers_file: Optional[Path] = None
    propagate_impact: Optional[bool] = None
    batch_size: Optional[int] = None
    verbosity: int = 1
    dry_run: bool = False


class Orchestrator:
    """Coordinates module selection and the commands built on it."""

    def __init__(
        self,
        config: ModBuildConfig,
        vc: VersionControl | None = None,
        *,
        scanner: ModuleScanner | None = None,
        selector: ImpactSelector | None = None,
        build_runner: Callable[..., int] | None = None,
        browser: Callable[[str], object] | None = None,
    ) -> None:
        self.config = config
        self.vc = vc or GitVersionControl(config.root)
        self.scanner = scanner or ModuleScanner()
        self.selector = selector or ImpactSelector(DependencyExtractor(config.workers))
        self._build_runner = build_runner
        self._browser = browser or webbrowser.open
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Paths

    @property
    def repo_root(self) -> Path:
        return self.vc.root()

    @property
    def root_project(self) -> Path:
        return detect_root_project(self.repo_root, self.config.root_project_dir)

    def default_settings_file(self) -> Path:
        return self.root_project / DEFAULT_SETTINGS_FILENAME

    def triggers_file(self, override: Optional[Path] = None) -> Optional[Path]:
        if override is not None:
            return override
        if self.config.triggers_file is not None:
            return self.config.triggers_file
        candidate = self.root_project / DEFAULT_TRIGGERS_FILE
        return candidate if candidate.exists() else None

    # ------------------------------------------------------------------
    # Selection

    def scan_modules(self) -> List[Module]:
        roots: List[Path] = [self.repo_root, *self.config.extra_roots]
        return self.scanner.scan(roots)

    def base_filter(self) -> ModuleFilter:
        return ModuleFilter().exclude_modules(self.config.excluded_modules)

    def change_set(self, commit: str, triggers_file: Optional[Path] = None) -> Optional[ChangeSet]:
        """Return the changes since ``commit`` or None when they can't be computed."""
        rules = load_trigger_rules(self.triggers_file(triggers_file))
        try:
            return ChangeSet.from_version_control(self.vc, commit, rules)
        except ModBuildError as exc:
            self.logger.warning("Can't get diff files with commit %s: %s", commit, exc)
            return None

    def comparison_commit(self, all_modules: bool, after_commit: Optional[str]) -> Optional[str]:
        if all_modules:
            return None
        if after_commit:
            return after_commit
        try:
            return self.vc.remote_branch()
        except ModBuildError as exc:
            self.logger.warning("Can't get remote branch: %s", exc)
            return None

    def select(
        self,
        module_filter: ModuleFilter,
        *,
        propagate_impact: bool,
        modules: Optional[Sequence[Module]] = None,
    ) -> SelectionResult:
        graph = ModuleGraph.from_modules(modules if modules is not None else self.scan_modules())
        return self.selector.select(
            graph,
            module_filter,
            propagate_impact=propagate_impact,
            exclude_rule=module_filter.exclusions(),
        )

    def selection_for(self, request: BuildRequest) -> SelectionResult:
        module_filter = self.base_filter().with_name_regex(request.name_pattern)
        commit = self.comparison_commit(request.all_modules, request.after_commit)
        if commit is not None:
            changes = self.change_set(commit, request.triggers_file)
            if changes is not None:
                module_filter = module_filter.since(changes)
        propagate = (
            self.config.propagate_impact
            if request.propagate_impact is None
            else request.propagate_impact
        )
        return self.select(module_filter, propagate_impact=propagate)

    # ------------------------------------------------------------------
    # Commands

    def run_build(self, request: BuildRequest) -> SelectionResult:
        """Select the affected modules and run the build tool on them."""
        selection = self.selection_for(request)
        for module in selection:
            self.logger.info("Add module %s", module.name)
        if request.dry_run:
            return selection
        tasks = request.tasks or list(self.config.default_tasks)
        self.build_orchestrator().build(
            selection,
            tasks,
            settings_file=self.config.settings_file,
            verbosity=request.verbosity,
            batch_size=request.batch_size,
        )
        return selection

    def build_orchestrator(self) -> BuildOrchestrator:
        root_project = self.root_project
        return BuildOrchestrator(
            root_project,
            self.config.resolve_build_cmd(),
            build_args=self.config.build_args,
            settings_writer=SettingsWriter(root_project),
            runner=self._build_runner,
        )

    def run_open(self, name_pattern: Optional[str] = None, *, clean: bool = False) -> Path:
        """Write the default settings file for the matching modules and their dependencies."""
        module_filter = self.base_filter().with_name_regex(name_pattern)
        selection = self.select(module_filter, propagate_impact=False)
        settings_file = SettingsWriter(self.root_project).write(selection, self.default_settings_file())
        if clean:
            self._clean_caches()
        self.logger.info("Done. Please open %s using your IDE", self.root_project)
        return settings_file

    def run_create(
        self,
        path: str,
        *,
        template_dir: Optional[str] = None,
        types: Sequence[str] = (),
        excludes: Sequence[str] = (),
    ) -> List[Module]:
        """Create modules from templates and register them in the default settings file."""
        repo_root = self.repo_root
        target_dir = self._relative_to_root(path)
        if not target_dir.is_relative_to(repo_root):
            raise ModBuildError(f"{target_dir} is outside the repository {repo_root}")
        templates = self._relative_to_root(template_dir) if template_dir else (
            self.config.templates_dir or self.root_project / DEFAULT_TEMPLATES_DIR
        )
        scaffolder = Scaffolder(repo_root)
        module_types = scaffolder.module_types(templates, types)
        if not module_types:
            raise ModBuildError(f"There is no module template in {templates}")

        targets = scaffolder.targets(target_dir, module_types)
        wanted = {derive_module_name(target.relative_to(repo_root)) for target in targets}
        existing = [module for module in self.scan_modules() if module.name in wanted]
        if existing:
            names = ", ".join(module.name for module in existing)
            raise ModBuildError(f"Modules with same name already exist: {names}")

        for module_type, target in zip(module_types, targets):
            scaffolder.copy_template(templates / module_type, target, excludes)
            self.vc.add_path(target)

        created = [module for module in self.scan_modules() if module.name in wanted]
        settings_file = SettingsWriter(self.root_project).append(created, self.default_settings_file())
        self.vc.add_path(settings_file)
        return created

    def run_pull_request(
        self,
        request: PullRequest,
        auth: Auth,
        *,
        verbosity: int = 1,
        open_browser: bool = False,
        triggers_file: Optional[Path] = None,
    ) -> str:
        """Check, build, push and submit a pull request; returns its URL."""
        self._check_request(request)
        self._check_conflicts(request.to_branch)

        self.logger.info("Build modules")
        module_filter = self.base_filter()
        changes = self.change_set(f"origin/{request.to_branch}", triggers_file)
        if changes is not None:
            module_filter = module_filter.since(changes)
        selection = self.select(module_filter, propagate_impact=True)
        self.build_orchestrator().build(
            selection, ["build"], settings_file=self.config.settings_file, verbosity=verbosity
        )
        self.logger.info("Build complete")

        self.logger.info("Push changes to remote %s", request.branch_name)
        self.vc.push(request.branch_name)

        server = Server.from_push_url(self.vc.get_push_url())
        client = StashClient(server, auth.ask_password_if_none())
        try:
            url = client.submit_pull_request(request)
        except ModBuildError as exc:
            raise ModBuildError("Can't create a pull request", exc) from exc
        if open_browser:
            self._browser(url)
        return url

    def run_users(
        self,
        queries: Iterable[str],
        auth: Auth,
        *,
        file: Optional[Path] = None,
        append: bool = False,
    ) -> List[str]:
        """Look up users and record their names in the reviewers file."""
        server = Server.from_push_url(self.vc.get_push_url())
        names: List[str] = []
        client = StashClient(server, auth.ask_password_if_none())
        for query in (item.strip() for item in queries):
            if not query:
                continue
            users = client.find_users(query)
            if len(users) > 1:
                self.logger.warning(
                    "More than one user identified with given filter: %s %s", query, users
                )
            names.extend(user.name for user in users)

        target = file or default_reviewers_file()
        joined = ";".join(names)
        self.logger.info("%s", joined)
        try:
            with target.open("a" if append else "w", encoding="utf-8") as handle:
                handle.write(f"{joined};\n")
        except OSError as exc:
            raise ModBuildError("Can't write result to the file", exc) from exc
        return names

    # ------------------------------------------------------------------
    # Helpers

    def _check_request(self, request: PullRequest) -> None:
        if not request.branch_name:
            request.branch_name = self.vc.remote_branch().removeprefix("origin/")
        if request.branch_name in self.config.protected_branches:
            self.logger.warning(
                "We can not use %s as the remote branch name, please give another name",
                request.branch_name,
            )
            raise ModBuildError(f"Bad remote branch name: {request.branch_name}")
        self.logger.debug("We will use %s as the remote branch", request.branch_name)

        if not request.title:
            request.title = "\n".join(self.vc.log("HEAD~..HEAD"))
            self.logger.debug("Use default title %s", request.title)
        if not request.description:
            request.description = "\n".join(
                self.vc.log(f"origin/{request.to_branch}..HEAD", include_body=True)
            )
            self.logger.debug("Use default description %s", request.description)

    def _check_conflicts(self, branch: str) -> None:
        self.logger.info("Fetching latest code from remote")
        self.vc.fetch(branch)
        self.logger.info("Checking conflicts")
        self.vc.merge(branch, dry_run=True)

    def _clean_caches(self) -> None:
        self.logger.info("Cleaning IDE cache")
        root = self.root_project
        failed: List[str] = []
        for directory in (root / ".idea", root / "build"):
            if directory.exists():
                try:
                    shutil.rmtree(directory)
                except OSError as exc:
                    self.logger.warning("Can't remove %s: %s", directory, exc)
                    failed.append(str(directory))
        for module_file in root.glob("*.iml"):
            try:
                module_file.unlink()
            except OSError as exc:
                self.logger.warning("Can't remove %s: %s", module_file, exc)
                failed.append(str(module_file))
        if failed:
            raise ModBuildError(f"Can't clean the cache: {', '.join(failed)}")

    def _relative_to_root(self, path: str) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.repo_root / candidate
        return candidate.resolve()


def load_reviewer_groups(paths: Iterable[Path]) -> List[str]:
    """Return the content of each readable reviewer group file."""
    groups: List[str] = []
    for path in paths:
        try:
            groups.append(path.read_text(encoding="utf-8"))
        except OSError as exc:
            get_logger("orchestrator").warning("Can't read reviewers file %s: %s", path, exc)
    return groups


__all__ = [
    "BuildRequest",
    "Orchestrator",
    "default_reviewers_file",
    "load_reviewer_groups",
]
