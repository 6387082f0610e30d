#!/usr/bin/env python3
"""
IMAGEDROP CLI
-------------
Operator interface:

1. watch   - run the agent until SIGINT/SIGTERM
2. deploy  - run the redeploy pipeline once for a given archive
3. plan    - preview the manifest patch for an archive (read-only)

Settings come from the environment (see AgentConfig); flags override them.

Author: ImageDrop Team
Date: 2026-10-19
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from imagedrop.cli.formatter import DeployFormatter, console
from imagedrop.core.config import AgentConfig
from imagedrop.core.errors import ImageDropError, ManifestError, StartupError
from imagedrop.core.logs import configure_logging, flush_logging
from imagedrop.core.supervisor import EXIT_FAILURE, EXIT_OK, Supervisor
from imagedrop.deploy.dispatch import InlineDispatcher, PooledDispatcher
from imagedrop.deploy.pipeline import DeploymentPipeline
from imagedrop.deploy.runtime import ComposeRuntime
from imagedrop.manifest.store import ManifestStore
from imagedrop.watching.backend import WatchdogBackend
from imagedrop.watching.matcher import PathMatcher

VERSION = "0.1.0"

logger = logging.getLogger("imagedrop.cli")


def build_pipeline(config: AgentConfig) -> DeploymentPipeline:
    store = ManifestStore(config.manifest_path)
    return DeploymentPipeline(config, store, ComposeRuntime(config))


def build_dispatcher(config: AgentConfig, pipeline: DeploymentPipeline):
    if config.workers > 0:
        return PooledDispatcher(pipeline, workers=config.workers)
    return InlineDispatcher(pipeline)


class ImageDropCLI:
    """Translates command lines into agent actions."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="imagedrop",
            description="ImageDrop - watch a drop folder for image archives and redeploy compose services",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.formatter = DeployFormatter()
        self._setup_args()

    def _setup_args(self):
        self.parser.add_argument("-v", "--version", action="version", version=f"imagedrop v{VERSION}")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        watch_parser = subparsers.add_parser("watch", help="👀 Watch the drop folder and redeploy on arrival")
        self._add_common(watch_parser)
        watch_parser.add_argument("--watch-dir", help="Directory tree to watch (env WATCH_DIR)")
        watch_parser.add_argument("--log-dir", help="Directory for history.log (env LOG_DIR)")
        watch_parser.add_argument("--workers", type=int,
                                  help="Run pipelines on N pool workers instead of inline (env IMAGEDROP_WORKERS)")

        deploy_parser = subparsers.add_parser("deploy", help="🚀 Run the redeploy pipeline for one archive")
        deploy_parser.add_argument("archive", help="Path to '<name>-<version>.tar'")
        self._add_common(deploy_parser)
        deploy_parser.add_argument("--log-dir", help="Directory for history.log (env LOG_DIR)")

        plan_parser = subparsers.add_parser("plan", help="🔍 Preview the manifest patch for an archive")
        plan_parser.add_argument("archive", help="Archive file name or path")
        plan_parser.add_argument("--manifest", help="Compose manifest (env DOCKER_COMPOSE_FILE)")

    def _add_common(self, parser: argparse.ArgumentParser):
        parser.add_argument("--manifest", help="Compose manifest (env DOCKER_COMPOSE_FILE)")
        parser.add_argument("--dry-run", action="store_true", default=None,
                            help="Log docker commands instead of executing them")

    def _config(self, args: argparse.Namespace) -> AgentConfig:
        return AgentConfig.from_env().with_overrides(
            watch_dir=getattr(args, "watch_dir", None),
            log_dir=getattr(args, "log_dir", None),
            manifest_path=getattr(args, "manifest", None),
            dry_run=getattr(args, "dry_run", None),
            workers=getattr(args, "workers", None),
        )

    # --- Commands ---

    def cmd_watch(self, config: AgentConfig) -> int:
        configure_logging(config, console=console)
        pipeline = build_pipeline(config)
        supervisor = Supervisor(config, WatchdogBackend(), build_dispatcher(config, pipeline))
        supervisor.install_signal_handlers()

        try:
            supervisor.start()
        except StartupError as e:
            logger.critical(f"Startup failed: {e}")
            supervisor.backend.stop()
            raise

        try:
            return supervisor.run()
        finally:
            supervisor.shutdown()

    def cmd_deploy(self, config: AgentConfig, archive: str) -> int:
        configure_logging(config, console=console)
        run = build_pipeline(config).run(archive)
        self.formatter.print_run(run)
        return EXIT_OK if run.succeeded else EXIT_FAILURE

    def cmd_plan(self, config: AgentConfig, archive: str) -> int:
        identity = PathMatcher().identify(archive)
        if identity is None:
            console.print(f"[bold red]Error:[/bold red] '{archive}' does not match '<name>-<version>.tar'.")
            return EXIT_FAILURE

        store = ManifestStore(config.manifest_path)
        try:
            document = store.load()
        except ManifestError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            return EXIT_FAILURE

        original = store.render(document)
        matched = store.matching_services(document, identity.name)
        self.formatter.show_matches(matched, identity.reference)
        document, changed = store.patch_image_reference(document, identity.name, identity.version)
        if changed:
            self.formatter.display_diff(original, store.render(document), str(config.manifest_path))
        elif matched:
            console.print(f"[dim]All matching services already use {identity.reference}.[/dim]")
        return EXIT_OK

    def run(self, argv: Optional[Sequence[str]] = None) -> int:
        args = self.parser.parse_args(argv)
        if not args.command:
            self.formatter.print_header("Image Archive Redeployer", VERSION)
            self.parser.print_help()
            return EXIT_OK

        try:
            config = self._config(args)
            if args.command == "watch":
                self.formatter.print_header("Drop Folder Watcher", VERSION)
                return self.cmd_watch(config)
            if args.command == "deploy":
                return self.cmd_deploy(config, args.archive)
            if args.command == "plan":
                return self.cmd_plan(config, args.archive)
        except ImageDropError as e:
            console.print(f"[bold red]FATAL:[/bold red] {e}")
            return EXIT_FAILURE
        finally:
            flush_logging()

        self.parser.print_help()
        return EXIT_OK


def main():
    """Application entry point with interrupt handling."""
    try:
        sys.exit(ImageDropCLI().run())
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
