"""
Prepares the synchronized file set for launch and constructs the hosted application.
"""

import importlib
import logging
import shlex
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from launchsync.core.interfaces import Application, ApplicationEnvironment
from launchsync.exceptions import ApplicationLaunchError, EnvironmentPrepareError
from launchsync.models.manifest import Manifest, OSTag

log = logging.getLogger(__name__)

# Entries with these suffixes are importable archives and go on sys.path
IMPORTABLE_ARCHIVES = (".zip", ".whl", ".egg", ".pyz")


def prepare_environment(
    cache_dir: Path,
    manifest: Manifest,
    target_os: OSTag,
    parameters: Sequence[str] = (),
    files_updated: bool = False,
) -> ApplicationEnvironment:
    """
    Checks that every file of the launch manifest is on disk and describes the
    environment handed to the application.

    Manifest parameters come first, followed by `parameters` from the caller.

    Raises:
        EnvironmentPrepareError: If a file is missing or the manifest
            parameters cannot be parsed.
    """
    missing = [
        entry.path
        for entry in manifest.entries_for(target_os)
        if not (cache_dir / entry.path).is_file()
    ]
    if missing:
        shown = ", ".join(missing[:5])
        more = f" and {len(missing) - 5} more" if len(missing) > 5 else ""
        raise EnvironmentPrepareError(
            f"{len(missing)} application file(s) missing from '{cache_dir}': "
            f"{shown}{more}"
        )

    try:
        manifest_parameters = shlex.split(manifest.parameters or "")
    except ValueError as e:
        raise EnvironmentPrepareError(f"Invalid manifest parameters: {e}") from e

    return ApplicationEnvironment(
        cache_dir=cache_dir,
        manifest=manifest,
        parameters=(*manifest_parameters, *parameters),
        files_updated=files_updated,
    )


def _check_application(app: object, launch_class: str) -> Application:
    if not isinstance(app, Application):
        raise ApplicationLaunchError(
            f"'{launch_class}' did not produce an application with "
            "init(), start() and stop()."
        )
    return app


class ApplicationRegistry:
    """
    An explicit map from launch class names to application constructors.

    Usage:
        registry = ApplicationRegistry()

        @registry.register("demo.main:App")
        def make_app(environment):
            return App(environment)
    """

    def __init__(self):
        self._factories: dict[str, Callable[[ApplicationEnvironment], Application]] = {}

    def register(self, launch_class: str, factory: Callable | None = None):
        """Registers `factory`; without one, returns a decorator."""
        if factory is None:

            def decorator(func: Callable) -> Callable:
                self._factories[launch_class] = func
                return func

            return decorator
        self._factories[launch_class] = factory
        return factory

    def __contains__(self, launch_class: str) -> bool:
        return launch_class in self._factories

    def create(
        self, launch_class: str, environment: ApplicationEnvironment
    ) -> Application:
        factory = self._factories.get(launch_class)
        if factory is None:
            raise ApplicationLaunchError(
                f"No application registered for launch class '{launch_class}'."
            )
        try:
            app = factory(environment)
        except Exception as e:
            raise ApplicationLaunchError(
                f"Failed to construct '{launch_class}': {e}"
            ) from e
        return _check_application(app, launch_class)


class ImportApplicationFactory:
    """
    Imports the launch class from the synchronized files.

    The cache directory, and every importable archive the manifest ships, is
    put on `sys.path`. The launch class is either `package.module:attr` or a
    dotted `package.module.attr`, and is called with the environment.
    """

    def __init__(self, fallback: ApplicationRegistry | None = None):
        self.fallback = fallback

    @staticmethod
    def _split(launch_class: str) -> tuple[str, str]:
        if ":" in launch_class:
            module_name, _, attr = launch_class.partition(":")
        else:
            module_name, _, attr = launch_class.rpartition(".")
        if not module_name or not attr:
            raise ApplicationLaunchError(
                f"Launch class '{launch_class}' must look like 'module:attr'."
            )
        return module_name, attr

    @staticmethod
    def _extend_sys_path(environment: ApplicationEnvironment) -> None:
        import_roots = [str(environment.cache_dir)]
        import_roots.extend(
            str(environment.cache_dir / entry.path)
            for entry in environment.manifest.entries
            if entry.path.lower().endswith(IMPORTABLE_ARCHIVES)
        )
        for root in reversed(import_roots):
            if root not in sys.path:
                sys.path.insert(0, root)
        importlib.invalidate_caches()

    def create(
        self, launch_class: str, environment: ApplicationEnvironment
    ) -> Application:
        if self.fallback is not None and launch_class in self.fallback:
            return self.fallback.create(launch_class, environment)

        module_name, attr = self._split(launch_class)
        self._extend_sys_path(environment)
        try:
            module = importlib.import_module(module_name)
            target = getattr(module, attr)
        except (ImportError, AttributeError) as e:
            raise ApplicationLaunchError(
                f"Cannot load launch class '{launch_class}': {e}"
            ) from e

        log.debug(f"Constructing '{launch_class}' from '{module.__file__}'.")
        try:
            app = target(environment)
        except Exception as e:
            raise ApplicationLaunchError(
                f"Failed to construct '{launch_class}': {e}"
            ) from e
        return _check_application(app, launch_class)
