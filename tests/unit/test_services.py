"""Tests for InstallationPipeline."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from packstash.core.models import InstallCategory, InstallRequest, RelationKind


if TYPE_CHECKING:
    from collections.abc import Callable

    from conftest import FakeCatalog, FakeScheduler, FileFactory, RecordingListener

    from packstash.core.models import DownloadTask
    from packstash.core.services import InstallationPipeline


REQUIRED = RelationKind.REQUIRED_DEPENDENCY


@pytest.fixture
def build_pipeline(
    fake_catalog: FakeCatalog, fake_scheduler: FakeScheduler, tmp_path: Path
) -> Callable[..., InstallationPipeline]:
    """Pipeline over the fake catalog and scheduler with a real file store."""

    def build(**kwargs: object) -> InstallationPipeline:
        from packstash.adapters.store import FileContentStore
        from packstash.core.services import InstallationPipeline

        scheduler = kwargs.pop("scheduler", fake_scheduler)
        return InstallationPipeline(
            fake_catalog,
            FileContentStore(tmp_path / "store"),
            scheduler,  # type: ignore[arg-type]
            temp_dir=tmp_path / "tmp",
            **kwargs,  # type: ignore[arg-type]
        )

    return build


class RecordingProgress:
    def __init__(self) -> None:
        self.started: list[tuple[str, int]] = []
        self.finished: list[str] = []

    def start_task(self, name: str, total: int):
        self.started.append((name, total))
        return lambda _downloaded, _total: None

    def finish_task(self, name: str) -> None:
        self.finished.append(name)


@pytest.mark.core
@pytest.mark.tra("Pipeline.IdentityUris")
@pytest.mark.tier(0)
class TestIdentityUris:
    """Tests for identity_uris() and loader_tags()."""

    def test_identity_includes_origin_and_urls(self, make_file: FileFactory) -> None:
        from packstash.core.services import identity_uris

        file = make_file(100, 7, url="https://cdn.example.com/a.jar")

        assert identity_uris(file) == frozenset(
            {"curseforge:7:100", "https://cdn.example.com/a.jar"}
        )

    def test_identity_uses_guessed_urls_without_direct_url(
        self, make_file: FileFactory
    ) -> None:
        from packstash.core.downloads import guess_mirror_urls
        from packstash.core.services import identity_uris

        file = make_file(20, 7, url=None, name="x.jar")

        assert identity_uris(file) == frozenset(
            {"curseforge:7:20", *guess_mirror_urls(20, "x.jar")}
        )

    def test_file_without_project_raises_root_fetch_error(
        self, make_file: FileFactory
    ) -> None:
        from packstash.core.exceptions import RootFetchError
        from packstash.core.services import identity_uris

        with pytest.raises(RootFetchError):
            identity_uris(make_file(100, 0))

    def test_loader_tags(self, make_file: FileFactory) -> None:
        from packstash.core.services import loader_tags

        file = make_file(1, 1, tags=["1.20.1", "Forge", "NeoForge", "Forge"])

        assert loader_tags(file) == ("forge", "neoforge")


@pytest.mark.core
@pytest.mark.tra("Pipeline.InstallFile")
@pytest.mark.tier(1)
class TestInstallFile:
    """Tests for InstallationPipeline.install_file() on a single file."""

    def test_install_imports_into_store(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
    ) -> None:
        """A fresh install downloads once and records origin metadata."""
        file = make_file(100, 1, tags=["1.20.1", "Forge"])
        fake_catalog.add(file)

        result = build_pipeline().install_file(
            InstallRequest(file=file, category=InstallCategory.MOD)
        )

        resource = result.resource
        assert resource.path.read_bytes() == f"content of {file.download_url}".encode()
        assert resource.file_name == "file-100.jar"
        assert resource.domain.value == "mods"
        assert resource.metadata == {"curseforge": {"projectId": 1, "fileId": 100}}
        assert resource.tags == ("forge",)
        assert resource.icons == ("https://media.example.com/1.png",)
        assert result.project is not None
        assert result.project.id == 1
        assert result.dependencies == ()

    def test_second_sequential_install_is_cache_hit(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
        fake_scheduler: FakeScheduler,
    ) -> None:
        """Identical identity URIs never download twice."""
        file = make_file(100, 1)
        fake_catalog.add(file)
        pipeline = build_pipeline()
        request = InstallRequest(file=file, category=InstallCategory.MOD)

        first = pipeline.install_file(request)
        second = pipeline.install_file(request)

        assert len(fake_scheduler.tasks) == 1
        assert second.resource.path == first.resource.path
        assert second.resource.sha1 == first.resource.sha1

    def test_concurrent_identical_installs_download_once(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
        slow_scheduler: FakeScheduler,
    ) -> None:
        """Concurrent installs of one file share a single download."""
        scheduler = slow_scheduler
        file = make_file(100, 1)
        fake_catalog.add(file)
        pipeline = build_pipeline(scheduler=scheduler)
        request = InstallRequest(file=file, category=InstallCategory.MOD)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: pipeline.install_file(request), range(4)))

        assert len(scheduler.tasks) == 1
        assert {r.resource.path for r in results} == {results[0].resource.path}

    def test_file_without_url_downloads_from_guessed_mirrors(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
        fake_scheduler: FakeScheduler,
    ) -> None:
        """File 20 without a download URL uses the CDN naming convention."""
        from packstash.core.downloads import guess_mirror_urls

        file = make_file(20, 1, url=None, name="x.jar")
        fake_catalog.add(file)

        build_pipeline().install_file(InstallRequest(file=file, category=InstallCategory.MOD))

        assert fake_scheduler.downloaded_urls == [tuple(guess_mirror_urls(20, "x.jar"))]

    def test_project_fetch_failure_is_not_fatal(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Without project metadata the install proceeds without an icon."""
        file = make_file(100, 1)

        with caplog.at_level(logging.WARNING, logger="packstash.core.services"):
            result = build_pipeline().install_file(
                InstallRequest(file=file, category=InstallCategory.MOD)
            )

        assert result.project is None
        assert result.resource.icons == ()
        assert "continue without icon" in caplog.text

    def test_progress_reported_per_download(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
    ) -> None:
        progress = RecordingProgress()
        file = make_file(100, 1)

        build_pipeline(progress=progress).install_file(
            InstallRequest(file=file, category=InstallCategory.MOD)
        )

        assert progress.started == [("file-100.jar", 0)]
        assert progress.finished == ["file-100.jar"]

    def test_temp_files_are_removed(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        tmp_path: Path,
    ) -> None:
        file = make_file(100, 1)

        build_pipeline().install_file(InstallRequest(file=file, category=InstallCategory.MOD))

        assert list((tmp_path / "tmp").iterdir()) == []

    def test_string_category_is_accepted(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
    ) -> None:
        """A category given by its slug is coerced to the enum."""
        file = make_file(100, 1)

        result = build_pipeline().install_file(
            InstallRequest(file=file, category="texture-packs")  # type: ignore[arg-type]
        )

        assert result.resource.domain.value == "resourcepacks"

    def test_unknown_category_is_contract_violation(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_scheduler: FakeScheduler,
    ) -> None:
        from packstash.core.exceptions import ContractViolation

        with pytest.raises(ContractViolation):
            build_pipeline().install_file(
                InstallRequest(file=make_file(100, 1), category="shaders")  # type: ignore[arg-type]
            )
        assert fake_scheduler.tasks == []

    def test_missing_file_is_contract_violation(
        self, build_pipeline: Callable[..., InstallationPipeline]
    ) -> None:
        from packstash.core.exceptions import ContractViolation

        with pytest.raises(ContractViolation):
            build_pipeline().install_file(
                InstallRequest(file=None, category=InstallCategory.MOD)  # type: ignore[arg-type]
            )

    def test_root_failure_is_wrapped_in_install_error(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_scheduler: FakeScheduler,
    ) -> None:
        from packstash.core.exceptions import DownloadVerificationError, InstallError

        file = make_file(100, 1)
        fake_scheduler.broken.add(file.download_url or "")

        with pytest.raises(InstallError) as exc_info:
            build_pipeline().install_file(
                InstallRequest(file=file, category=InstallCategory.MOD)
            )

        assert exc_info.value.file_id == 100
        assert isinstance(exc_info.value.cause, DownloadVerificationError)
        assert exc_info.value.recovery_hint is not None

    def test_file_without_project_fails_with_root_fetch_error(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
    ) -> None:
        from packstash.core.exceptions import InstallError, RootFetchError

        with pytest.raises(InstallError) as exc_info:
            build_pipeline().install_file(
                InstallRequest(file=make_file(100, 0), category=InstallCategory.MOD)
            )

        assert isinstance(exc_info.value.cause, RootFetchError)

    def test_cancelled_install_raises_and_downloads_nothing(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_scheduler: FakeScheduler,
        listener: RecordingListener,
    ) -> None:
        from packstash.core.cancellation import CancelToken
        from packstash.core.exceptions import InstallCancelledError
        from packstash.core.tracking import InstallTracker

        token = CancelToken()
        token.cancel()

        with pytest.raises(InstallCancelledError):
            build_pipeline(tracker=InstallTracker([listener])).install_file(
                InstallRequest(file=make_file(100, 1), category=InstallCategory.MOD),
                cancel_token=token,
            )

        assert fake_scheduler.tasks == []
        assert listener.events == [("start", 100), ("end", 100)]


@pytest.mark.core
@pytest.mark.tra("Pipeline.Events")
@pytest.mark.tier(1)
class TestInstallEvents:
    """Tests for paired start/end events."""

    def test_success_emits_one_pair(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        listener: RecordingListener,
    ) -> None:
        from packstash.core.tracking import InstallTracker

        tracker = InstallTracker([listener])
        build_pipeline(tracker=tracker).install_file(
            InstallRequest(file=make_file(100, 1), category=InstallCategory.MOD)
        )

        assert listener.events == [("start", 100), ("end", 100)]
        assert tracker.downloading == frozenset()

    def test_failure_still_emits_end(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_scheduler: FakeScheduler,
        listener: RecordingListener,
    ) -> None:
        from packstash.core.exceptions import InstallError
        from packstash.core.tracking import InstallTracker

        file = make_file(100, 1)
        fake_scheduler.broken.add(file.download_url or "")

        with pytest.raises(InstallError):
            build_pipeline(tracker=InstallTracker([listener])).install_file(
                InstallRequest(file=file, category=InstallCategory.MOD)
            )

        assert listener.events == [("start", 100), ("end", 100)]

    def test_every_dependency_gets_its_own_pair(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
        fake_scheduler: FakeScheduler,
        listener: RecordingListener,
    ) -> None:
        """Recursive installs emit events for their own file ids, failed ones too."""
        from packstash.core.tracking import InstallTracker

        root = make_file(100, 1, deps=[(2, REQUIRED), (3, REQUIRED)])
        dep_ok, dep_broken = make_file(200, 2), make_file(300, 3)
        fake_catalog.add(root, dep_ok, dep_broken)
        fake_scheduler.broken.add(dep_broken.download_url or "")

        build_pipeline(tracker=InstallTracker([listener])).install_file(
            InstallRequest(file=root, category=InstallCategory.BUNDLE)
        )

        for file_id in (100, 200, 300):
            assert listener.count("start", file_id) == 1
            assert listener.count("end", file_id) == 1


@pytest.mark.core
@pytest.mark.tra("Pipeline.Dependencies")
@pytest.mark.tier(1)
class TestInstallDependencies:
    """Tests for dependency handling of bundle installs."""

    def test_bundle_installs_dependency_closure(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
    ) -> None:
        root = make_file(100, 1, deps=[(2, REQUIRED)])
        fake_catalog.add(
            root, make_file(200, 2, deps=[(3, RelationKind.TOOL)]), make_file(300, 3)
        )

        result = build_pipeline().install_file(
            InstallRequest(file=root, category=InstallCategory.BUNDLE)
        )

        assert [r.file.id for r in result.walk()] == [100, 200, 300]
        # The resolved closure is flat: each dependency is a direct child
        assert [r.file.id for r in result.dependencies] == [200, 300]
        assert all(r.resource.domain.value == "modpacks" for r in result.walk())

    def test_failing_dependency_is_omitted(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
        fake_scheduler: FakeScheduler,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """One broken dependency never aborts the install."""
        root = make_file(100, 1, deps=[(2, REQUIRED), (3, REQUIRED)])
        broken = make_file(200, 2)
        fake_catalog.add(root, broken, make_file(300, 3))
        fake_scheduler.broken.add(broken.download_url or "")

        with caplog.at_level(logging.WARNING, logger="packstash.core.services"):
            result = build_pipeline().install_file(
                InstallRequest(file=root, category=InstallCategory.BUNDLE)
            )

        assert [r.file.id for r in result.dependencies] == [300]
        assert "Skip dependency file-200.jar (200)" in caplog.text

    def test_ignore_dependencies_never_resolves(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
    ) -> None:
        root = make_file(100, 1, deps=[(2, REQUIRED)])
        fake_catalog.add(root, make_file(200, 2))

        result = build_pipeline().install_file(
            InstallRequest(
                file=root, category=InstallCategory.BUNDLE, ignore_dependencies=True
            )
        )

        assert fake_catalog.queries == []
        assert result.dependencies == ()

    def test_non_bundle_categories_do_not_cascade(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
    ) -> None:
        root = make_file(100, 1, deps=[(2, REQUIRED)])
        fake_catalog.add(root, make_file(200, 2))

        build_pipeline().install_file(InstallRequest(file=root, category=InstallCategory.MOD))

        assert fake_catalog.queries == []

    def test_nested_fan_out_on_single_worker_pool_completes(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
    ) -> None:
        """Nested branches on a one-thread pool run inline instead of deadlocking."""
        from packstash.adapters.executor import ThreadPoolExecutorAdapter

        root = make_file(100, 1, deps=[(2, REQUIRED), (3, REQUIRED)])
        fake_catalog.add(
            root,
            make_file(200, 2, deps=[(4, REQUIRED)]),
            make_file(300, 3, deps=[(4, REQUIRED)]),
            make_file(400, 4),
        )

        with ThreadPoolExecutorAdapter(max_workers=1) as executor:
            result = build_pipeline(executor=executor).install_file(
                InstallRequest(file=root, category=InstallCategory.BUNDLE)
            )

        assert sorted(r.file.id for r in result.dependencies) == [200, 300, 400]


@pytest.mark.core
@pytest.mark.tra("Pipeline.Link")
@pytest.mark.tier(1)
class TestWorkspaceLinking:
    """Tests for linking installed files into a workspace."""

    def test_mod_is_linked_into_workspace(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        tmp_path: Path,
    ) -> None:
        workspace = tmp_path / "instance"
        file = make_file(100, 1)

        result = build_pipeline().install_file(
            InstallRequest(file=file, category=InstallCategory.MOD, workspace_path=workspace)
        )

        linked = workspace / "mods" / "file-100.jar"
        assert linked.read_bytes() == result.resource.path.read_bytes()

    def test_bundle_is_not_linked(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        tmp_path: Path,
    ) -> None:
        workspace = tmp_path / "instance"

        build_pipeline().install_file(
            InstallRequest(
                file=make_file(100, 1),
                category=InstallCategory.BUNDLE,
                workspace_path=workspace,
            )
        )

        assert not workspace.exists()

    def test_link_failure_is_not_fatal(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        tmp_path: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A workspace that cannot be written only logs a warning."""
        workspace = tmp_path / "not-a-dir"
        workspace.write_text("occupied")

        with caplog.at_level(logging.WARNING, logger="packstash.core.services"):
            result = build_pipeline().install_file(
                InstallRequest(
                    file=make_file(100, 1),
                    category=InstallCategory.MOD,
                    workspace_path=workspace,
                )
            )

        assert result.resource.path.exists()
        assert "Fail to link" in caplog.text


@pytest.mark.core
@pytest.mark.tra("Pipeline.Queries")
@pytest.mark.tier(1)
class TestCatalogQueries:
    """Tests for the logged catalog pass-throughs."""

    def test_fetch_project_logs_and_delegates(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        fake_catalog.add(make_file(100, 123))

        with caplog.at_level(logging.INFO, logger="packstash.core.services"):
            project = build_pipeline().fetch_project(123)

        assert project.id == 123
        assert "Fetch project: 123" in caplog.text

    def test_resolve_file_dependencies(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
    ) -> None:
        root = make_file(100, 1, deps=[(2, REQUIRED)])
        fake_catalog.add(make_file(200, 2))

        closure = build_pipeline().resolve_file_dependencies(root)

        assert [f.id for f in closure] == [200]

    def test_other_queries_delegate(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
    ) -> None:
        from packstash.core.models import SearchOptions

        fake_catalog.add(make_file(100, 1), make_file(101, 1), make_file(200, 2))
        pipeline = build_pipeline()

        assert [c.slug for c in pipeline.fetch_categories()] == ["mc-mods", "library-api"]
        assert pipeline.fetch_project_description(1) == "<p>Project 1</p>"
        assert [f.id for f in pipeline.fetch_project_files(1).data] == [100, 101]
        assert pipeline.fetch_project_file(1, 101).id == 101
        assert [p.id for p in pipeline.fetch_projects([1, 2])] == [1, 2]
        assert [f.id for f in pipeline.fetch_files([200, 100])] == [100, 200]
        assert [p.id for p in pipeline.search_projects(SearchOptions("project 2"))] == [2]


@pytest.mark.core
@pytest.mark.tra("Pipeline.FromSettings")
@pytest.mark.tier(1)
class TestFromSettings:
    """Tests for InstallationPipeline.from_settings()."""

    def test_builds_and_closes_default_adapters(self, tmp_path: Path) -> None:
        from packstash.config import Settings
        from packstash.core.services import InstallationPipeline

        settings = Settings(store_dir=tmp_path / "store", temp_dir=tmp_path / "tmp")

        with InstallationPipeline.from_settings(settings) as pipeline:
            assert pipeline.tracker.downloading == frozenset()

        # Closing twice is harmless
        pipeline.close()


class _BlockingHandle:
    """Download handle whose result() waits until cancel() is called."""

    def __init__(self) -> None:
        self.cancelled = threading.Event()

    @property
    def progress(self) -> tuple[int, int]:
        return (0, 0)

    def result(self, timeout: float | None = None) -> Path:
        from packstash.core.exceptions import InstallCancelledError

        if not self.cancelled.wait(timeout=5):
            raise AssertionError("handle was never cancelled")
        raise InstallCancelledError("cancelled")

    def cancel(self) -> None:
        self.cancelled.set()

    def done(self) -> bool:
        return self.cancelled.is_set()


class GatedScheduler:
    """Blocks the first task for one URL; later tasks go to the fallback."""

    def __init__(self, fallback: FakeScheduler, url: str) -> None:
        self.fallback = fallback
        self.url = url
        self.handle = _BlockingHandle()
        self.submitted = threading.Event()
        self._lock = threading.Lock()

    def submit(self, task: DownloadTask):
        with self._lock:
            gate = self.url in task.urls and not self.submitted.is_set()
            if gate:
                self.submitted.set()
        if gate:
            return self.handle
        return self.fallback.submit(task)


@pytest.mark.core
@pytest.mark.tra("Pipeline.Cancel")
@pytest.mark.tier(1)
class TestInstallCancellation:
    """Tests for cancelling installs while downloads are in flight."""

    def test_cancel_during_dependency_download_reaches_root(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_catalog: FakeCatalog,
        fake_scheduler: FakeScheduler,
        tmp_path: Path,
    ) -> None:
        from packstash.core.cancellation import CancelToken
        from packstash.core.exceptions import InstallCancelledError

        root = make_file(100, 1, deps=[(2, REQUIRED)])
        dependency = make_file(200, 2)
        fake_catalog.add(root, dependency)
        scheduler = GatedScheduler(fake_scheduler, dependency.download_url or "")
        pipeline = build_pipeline(scheduler=scheduler)
        token = CancelToken()

        with ThreadPoolExecutor(max_workers=1) as pool:
            install = pool.submit(
                pipeline.install_file,
                InstallRequest(file=root, category=InstallCategory.BUNDLE),
                cancel_token=token,
            )
            assert scheduler.submitted.wait(timeout=5)
            token.cancel()

            with pytest.raises(InstallCancelledError):
                install.result(timeout=5)

        assert scheduler.handle.cancelled.is_set()
        # The root's own download never started
        assert fake_scheduler.tasks == []
        assert not any((tmp_path / "tmp").rglob("*"))

    def test_cancelled_leader_does_not_fail_follower(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_scheduler: FakeScheduler,
        tmp_path: Path,
    ) -> None:
        """An install sharing another's download survives that install's cancel."""
        from packstash.core.cancellation import CancelToken
        from packstash.core.exceptions import InstallCancelledError

        file = make_file(100, 1)
        scheduler = GatedScheduler(fake_scheduler, file.download_url or "")
        pipeline = build_pipeline(scheduler=scheduler)
        request = InstallRequest(file=file, category=InstallCategory.MOD)
        leader_token, follower_token = CancelToken(), CancelToken()

        with ThreadPoolExecutor(max_workers=2) as pool:
            leader = pool.submit(pipeline.install_file, request, cancel_token=leader_token)
            assert scheduler.submitted.wait(timeout=5)
            follower = pool.submit(
                pipeline.install_file, request, cancel_token=follower_token
            )
            time.sleep(0.2)
            leader_token.cancel()

            with pytest.raises(InstallCancelledError):
                leader.result(timeout=5)
            result = follower.result(timeout=5)

        assert result.file.id == 100
        assert len(fake_scheduler.tasks) == 1
        assert not any((tmp_path / "tmp").rglob("*"))

    def test_cancelled_follower_stops_waiting_for_leader(
        self,
        build_pipeline: Callable[..., InstallationPipeline],
        make_file: FileFactory,
        fake_scheduler: FakeScheduler,
    ) -> None:
        from packstash.core.cancellation import CancelToken
        from packstash.core.exceptions import InstallCancelledError

        file = make_file(100, 1)
        scheduler = GatedScheduler(fake_scheduler, file.download_url or "")
        pipeline = build_pipeline(scheduler=scheduler)
        request = InstallRequest(file=file, category=InstallCategory.MOD)
        leader_token, follower_token = CancelToken(), CancelToken()

        with ThreadPoolExecutor(max_workers=2) as pool:
            leader = pool.submit(pipeline.install_file, request, cancel_token=leader_token)
            assert scheduler.submitted.wait(timeout=5)
            follower = pool.submit(
                pipeline.install_file, request, cancel_token=follower_token
            )
            time.sleep(0.2)
            follower_token.cancel()

            with pytest.raises(InstallCancelledError):
                follower.result(timeout=2)
            # The leader's download is still running
            assert not leader.done()
            assert not scheduler.handle.cancelled.is_set()

            leader_token.cancel()
            with pytest.raises(InstallCancelledError):
                leader.result(timeout=5)
