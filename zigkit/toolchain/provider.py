"""
Toolchain provider.

Owns the acquisition pipeline and publishes its state::

    Uninitialized ──trigger──> Installing ──success──> Ready
                                   │                     │
                                   └──failure──> Failed  │
                                                  │      │
                      Installing <──trigger───────┴──────┘

At most one pipeline runs at a time. A trigger that arrives during a run is
recorded and the pipeline runs once more afterwards, so the latest
configuration always wins. ``refresh()`` debounces bursts of triggers into a
single run after a quiet period.

Observers subscribe to a bounded queue and receive every new state in order.
A slow observer loses its oldest undelivered states, never the newest.

Example:
    >>> provider = ToolchainProvider.from_settings(settings, store, project_root)
    >>> subscription = provider.subscribe()
    >>> provider.refresh()
    >>> provider.wait_idle(timeout=600)
    >>> provider.get_exe_path()
    PosixPath('/home/me/.zigkit/toolchains/versions/0.13.0/zig')
"""

import logging
import os
import queue
import shutil
import threading
from pathlib import Path
from typing import List, Optional, Union

from zigkit.core.exceptions import PathInvalid, VersionMismatch, ZigkitError
from zigkit.core.interfaces import ConfigurationStore
from zigkit.core.platform import PlatformInfo
from zigkit.toolchain.index import MemoizedIndexFetcher, ReleaseIndexFetcher
from zigkit.toolchain.installer import Installer
from zigkit.toolchain.query import VersionQueryError, query_version
from zigkit.toolchain.resolver import IndexSource, VersionResolver, VersionSource, select_release
from zigkit.toolchain.state import (
    Failed,
    Installing,
    ProviderState,
    Ready,
    ResolvedToolchain,
    Uninitialized,
)
from zigkit.toolchain.versions import RequirementKind, VersionRequirement

logger = logging.getLogger(__name__)


class Subscription:
    """Bounded queue of provider states for one observer."""

    def __init__(self, maxsize: int = 16):
        if maxsize < 1:
            raise ValueError("Subscription queue size must be at least 1")
        self._queue: "queue.Queue[ProviderState]" = queue.Queue(maxsize=maxsize)
        self.closed = False

    def get(self, timeout: Optional[float] = None) -> ProviderState:
        """
        Wait for the next state.

        Raises:
            queue.Empty: If no state arrives within ``timeout``
        """
        return self._queue.get(timeout=timeout)

    def get_nowait(self) -> ProviderState:
        return self._queue.get_nowait()

    def drain(self) -> List[ProviderState]:
        """Return all states received so far."""
        states = []
        while True:
            try:
                states.append(self._queue.get_nowait())
            except queue.Empty:
                return states

    def _publish(self, state: ProviderState) -> None:
        while True:
            try:
                self._queue.put_nowait(state)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass


class ToolchainProvider:
    """
    Resolves, installs and exposes the toolchain for one project.

    Create one per project at startup and ``close()`` it at shutdown.
    """

    def __init__(
        self,
        resolver: VersionResolver,
        fetcher: Union[ReleaseIndexFetcher, IndexSource],
        installer: Installer,
        config_store: Optional[ConfigurationStore] = None,
        debounce_seconds: float = 0.2,
        version_arg: str = "version",
        query_timeout: float = 10,
    ):
        """
        Initialize provider.

        Args:
            resolver: Determines the wanted version
            fetcher: Release index source (memoised per pipeline run)
            installer: Installs and activates versions
            config_store: Store naming an explicit executable path
                (default: the resolver's store)
            debounce_seconds: Quiet period for ``refresh()``
            version_arg: Argument making an executable print its version
            query_timeout: Timeout for version queries of explicit paths
        """
        self.resolver = resolver
        self.fetcher = fetcher
        self.installer = installer
        self.config_store = config_store or resolver.config_store
        self.debounce_seconds = debounce_seconds
        self.version_arg = version_arg
        self.query_timeout = query_timeout

        self._lock = threading.Lock()
        self._state: ProviderState = Uninitialized()
        self._subscribers: List[Subscription] = []
        self._timer: Optional[threading.Timer] = None
        self._timer_generation = 0
        self._worker: Optional[threading.Thread] = None
        self._running = False
        self._rerun = False
        self._closed = False
        self._idle = threading.Event()
        self._idle.set()

    @classmethod
    def from_settings(
        cls,
        settings,
        config_store: ConfigurationStore,
        project_root: Optional[Path] = None,
        platform: Optional[PlatformInfo] = None,
    ) -> "ToolchainProvider":
        """Wire a provider from EngineSettings."""
        resolver = VersionResolver(
            config_store,
            project_root=project_root,
            pin_file_name=settings.pin_file,
            manifest_file_name=settings.manifest_file,
        )
        fetcher = ReleaseIndexFetcher(
            settings.index_urls, settings.mirrors, timeout=settings.index_timeout
        )
        installer = Installer.from_settings(settings, platform=platform)
        return cls(
            resolver,
            fetcher,
            installer,
            config_store,
            debounce_seconds=settings.debounce_seconds,
            version_arg=settings.version_arg,
            query_timeout=settings.version_query_timeout,
        )

    def __enter__(self) -> "ToolchainProvider":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ProviderState:
        with self._lock:
            return self._state

    def get_toolchain(self) -> Optional[ResolvedToolchain]:
        state = self.state
        return state.toolchain if isinstance(state, Ready) else None

    def get_version(self) -> Optional[str]:
        toolchain = self.get_toolchain()
        return toolchain.version if toolchain else None

    def get_exe_path(self) -> Optional[Path]:
        toolchain = self.get_toolchain()
        return toolchain.exe_path if toolchain else None

    def subscribe(self, maxsize: int = 16) -> Subscription:
        subscription = Subscription(maxsize)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)
        subscription.closed = True

    def _set_state(self, state: ProviderState) -> None:
        with self._lock:
            self._state = state
            for subscription in self._subscribers:
                subscription._publish(state)
        logger.debug(f"Provider state: {state.name}")

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Request a pipeline run after the debounce period, restarting the period."""
        with self._lock:
            if self._closed:
                return
            self._cancel_timer_locked()
            self._timer_generation += 1
            timer = threading.Timer(
                self.debounce_seconds, self._on_timer, args=(self._timer_generation,)
            )
            timer.daemon = True
            self._timer = timer
            self._idle.clear()
            timer.start()

    def trigger(self) -> None:
        """Request a pipeline run now."""
        with self._lock:
            if self._closed:
                return
            self._cancel_timer_locked()
            self._start_locked()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no run is pending or in flight.

        Returns:
            False if ``timeout`` expired first
        """
        return self._idle.wait(timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        """Cancel pending triggers, wait for the running pipeline and drop observers."""
        with self._lock:
            self._closed = True
            self._cancel_timer_locked()
            worker = self._worker

        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout)

        with self._lock:
            subscribers = list(self._subscribers)
            self._subscribers.clear()
            if not self._running:
                self._idle.set()

        for subscription in subscribers:
            subscription.closed = True

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            self._timer_generation += 1

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            # A newer refresh() or trigger() superseded this timer
            if generation != self._timer_generation or self._closed:
                return
            self._timer = None
            self._start_locked()

    def _start_locked(self) -> None:
        if self._running:
            self._rerun = True
            return

        self._running = True
        self._idle.clear()
        self._worker = threading.Thread(
            target=self._run_loop, name="zigkit-provider", daemon=True
        )
        self._worker.start()

    def _run_loop(self) -> None:
        while True:
            self._run_pipeline()
            with self._lock:
                if self._rerun and not self._closed:
                    self._rerun = False
                    logger.debug("Re-running pipeline for a trigger received mid-run")
                    continue
                self._rerun = False
                self._running = False
                if self._timer is None:
                    self._idle.set()
                return

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run_pipeline(self) -> None:
        # Errors reading configuration or resolving the wanted version fail the
        # run before Installing is published
        try:
            path = self.config_store.get_path()
            if path:
                self.resolve_explicit_path(path)
                return

            requirement, source = self.resolver.resolve()
            logger.info(f"Wanted version {requirement} (from {source.value})")
            self._set_state(Installing(requirement, source))

            toolchain = self._acquire(requirement, source)
            warning = self.resolver.check_minimum(toolchain.version)
            if warning:
                logger.warning(warning)
                toolchain = toolchain.with_warning(warning)
        except ZigkitError as e:
            logger.error(f"Toolchain acquisition failed: {e}")
            self._set_state(Failed(e))
            return
        except Exception as e:
            logger.exception("Unexpected error during toolchain acquisition")
            self._set_state(Failed(e))
            return

        logger.info(f"Toolchain {toolchain.version} ready at {toolchain.exe_path}")
        self._set_state(Ready(toolchain))

    def _acquire(
        self, requirement: VersionRequirement, source: VersionSource
    ) -> ResolvedToolchain:
        installed = None
        if requirement.kind == RequirementKind.EXACT:
            installed = self.installer.find_installed(requirement.version)
        if installed:
            try:
                return self.installer.activate(installed, source)
            except (VersionMismatch, VersionQueryError) as e:
                logger.warning(f"Installed {installed} is unusable: {e}")

        indexes = MemoizedIndexFetcher(self.fetcher)
        entry = select_release(requirement, indexes, self.installer.host_triple)
        return self.installer.install(entry, entry.version, source)

    # ------------------------------------------------------------------
    # Explicit path
    # ------------------------------------------------------------------

    def resolve_explicit_path(self, path: Union[str, Path]) -> ProviderState:
        """
        Use a pre-installed executable instead of a managed installation.

        Runs the version query synchronously and moves straight to ``Ready``
        or ``Failed(PathInvalid)``.

        Returns:
            The new state
        """
        try:
            exe_path = self._locate_executable(str(path))
            version = query_version(
                exe_path, self.version_arg, timeout=self.query_timeout
            )
        except PathInvalid as e:
            state = Failed(e)
        except VersionQueryError as e:
            state = Failed(PathInvalid(path, str(e)))
        else:
            state = Ready(
                ResolvedToolchain(
                    version=version,
                    exe_path=exe_path.absolute(),
                    source=VersionSource.EXPLICIT_PATH,
                )
            )

        if isinstance(state, Failed):
            logger.error(f"Explicit toolchain path rejected: {state.error}")
        else:
            logger.info(f"Using {state.toolchain.exe_path} ({state.toolchain.version})")
        self._set_state(state)
        return state

    def _locate_executable(self, path: str) -> Path:
        """
        Turn a configured path into an executable file.

        Accepts a file, a directory containing the executable, or a bare
        command name looked up on PATH.
        """
        candidate = Path(path).expanduser()
        if candidate.is_dir():
            candidate = candidate / self.installer.exe_filename
        elif not candidate.exists() and not _has_separator(path):
            found = shutil.which(path)
            if found:
                candidate = Path(found)

        if not candidate.is_file():
            raise PathInvalid(path, "no such file")
        if not os.access(candidate, os.X_OK):
            raise PathInvalid(path, "file is not executable")
        return candidate


def _has_separator(path: str) -> bool:
    return os.sep in path or bool(os.altsep and os.altsep in path)


__all__ = ["Subscription", "ToolchainProvider"]
