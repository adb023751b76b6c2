#!/usr/bin/env python3
# solpack/modules/cli.py
"""
solpack CLI - build Solaris packages and publish them

Commands:
- build solaris|ips --project FILE   run a packager pipeline
- publish packagecloud PATTERN       upload built packages
- describe --project FILE            show the normalized package identity
- config                             print, locate or validate the configuration

Every failure prints the failing stage and the captured tool output, then exits 2.
"""

from __future__ import annotations

import os
import sys
import json
import argparse
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from solpack import __version__
from solpack.modules import config as config_mod
from solpack.modules import logging as logging_mod
from solpack.modules.errors import ExternalToolFailure, SolpackError
from solpack.modules.hostinfo import detect
from solpack.modules.ips import IPSPackager, default_repo_dir
from solpack.modules.normalize import FMRI_TIMESTAMP, describe
from solpack.modules.pipeline import PipelineResult
from solpack.modules.project import load_project
from solpack.modules.publisher import PackagecloudPublisher
from solpack.modules.solaris import SolarisPackager

logger = logging_mod.get_logger("cli")

console = Console()
err_console = Console(stderr=True)


# -----------------------
# Small pretty helpers
# -----------------------
def print_ok(msg: str):
    console.print(f"[bold green]✔[/] {msg}")


def print_warn(msg: str):
    err_console.print(f"[bold yellow]![/] {msg}")


def print_err(msg: str):
    err_console.print(f"[bold red]✖[/] {msg}")


def print_info(msg: str):
    console.print(f"[cyan]{msg}[/cyan]")


def _stage_table(result: PipelineResult) -> Table:
    table = Table(title=f"{result.name} stages")
    table.add_column("stage")
    table.add_column("status")
    table.add_column("time", justify="right")
    for r in result.stages:
        status = "[green]ok[/]" if r.ok else "[red]failed[/]"
        table.add_row(r.stage, status, f"{r.duration:.2f}s")
    return table


def _print_failure(error: SolpackError):
    if error.stage:
        print_err(f"failed at stage [bold]{error.stage}[/]: {escape(error.message)}")
    else:
        print_err(escape(error.message))
    if isinstance(error, ExternalToolFailure):
        err_console.print(Panel(escape(error.describe()), title=escape(error.command_line), border_style="red"))


# -----------------------
# CLI Implementation
# -----------------------
class SolpackCLI:
    def __init__(self, cfg: config_mod.Config):
        self.config = cfg

    def _ips_defaults(self) -> Dict[str, Any]:
        ips = self.config.section("ips")
        repo_dir = ips.get("repo_dir") or str(default_repo_dir(os.environ.get("HOME")))
        publisher = ips.get("publisher") or os.environ.get("LOGNAME") or os.environ.get("USER")
        if not publisher:
            raise SolpackError("no IPS publisher configured and $LOGNAME is not set")
        return {"repo_dir": repo_dir, "publisher": publisher}

    def build(self, flavor: str, project_file: str, output: Optional[str] = None,
              keep_staging: bool = False) -> PipelineResult:
        project = load_project(project_file)
        kwargs: Dict[str, Any] = {"config": self.config, "output_dir": output}
        if keep_staging:
            kwargs["keep_staging"] = True
        if flavor == "ips":
            packager = IPSPackager(project, **self._ips_defaults(), **kwargs)
        else:
            packager = SolarisPackager(project, **kwargs)
        print_info(f"Building {flavor} package for {project.name} {project.build_version}-{project.build_iteration}...")
        result = packager.build()
        console.print(_stage_table(result))
        result.raise_for_status()
        if flavor == "ips":
            print_ok(f"published {result.artifact['name']} into {result.artifact['path']}")
        else:
            print_ok(f"built {result.artifact.path}")
        return result

    def publish(self, backend: str, pattern: str, repo: Optional[str] = None,
                distros: Optional[str] = None) -> List[Any]:
        publisher = PackagecloudPublisher(pattern, repo=repo, distros=distros, config=self.config)
        published = publisher.publish(lambda package: print_ok(f"uploaded {package.name}"))
        if not published:
            print_warn(f"no packages matched {pattern}")
        return published

    def describe(self, project_file: str, flavor: str = "solaris") -> Dict[str, Any]:
        project = load_project(project_file)
        ts = self.config.get("ips.fmri_timestamp") or FMRI_TIMESTAMP
        descriptor = describe(project, detect(), flavor, ts)
        data = descriptor.to_dict()
        table = Table(title=f"{project.name} ({flavor})")
        table.add_column("field")
        table.add_column("value")
        for k, v in data.items():
            if v is not None:
                table.add_row(k, str(v))
        console.print(table)
        return data

    def config_cmd(self, show: bool = False, validate: bool = False, path: bool = False) -> bool:
        if path:
            print_info(str(self.config.path) if self.config.path else "<defaults>")
        if show or not (validate or path):
            console.print(yaml.safe_dump(self.config.as_dict(), sort_keys=False, default_flow_style=False), markup=False)
        if validate:
            ok, issues = config_mod.validate_config(self.config)
            if not ok:
                for issue in issues:
                    print_err(issue)
                return False
            print_ok("configuration is valid")
        return True


# -----------------------
# Argparse wiring
# -----------------------
def make_parser():
    ap = argparse.ArgumentParser(prog="solpack", description="Build and publish Solaris SVR4 and IPS packages")
    ap.add_argument("--config", help="configuration file (default: search SOLPACK_CONFIG, ./solpack.yaml, ...)")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging on the console")
    ap.add_argument("--json", action="store_true", help="also print results as JSON")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = ap.add_subparsers(dest="cmd")

    # build
    p_build = sub.add_parser("build", help="build a package")
    p_build.add_argument("flavor", choices=["solaris", "ips"])
    p_build.add_argument("--project", required=True, help="project file (YAML or JSON)")
    p_build.add_argument("--output", help="output directory for .solaris packages")
    p_build.add_argument("--keep-staging", action="store_true", help="keep the staging area after success")

    # publish
    p_pub = sub.add_parser("publish", help="upload built packages")
    p_pub.add_argument("backend", choices=["packagecloud"])
    p_pub.add_argument("pattern", help="glob of package files, e.g. 'pkg/*.solaris'")
    p_pub.add_argument("--repo", help="target repository (user/repo or repo)")
    p_pub.add_argument("--distros", help="comma separated distributions, e.g. el/7,ubuntu/trusty")

    # describe
    p_desc = sub.add_parser("describe", help="show the normalized package identity")
    p_desc.add_argument("--project", required=True)
    p_desc.add_argument("--flavor", choices=["solaris", "ips"], default="solaris")

    # config
    p_cfg = sub.add_parser("config", help="inspect the configuration")
    p_cfg.add_argument("--print", dest="show", action="store_true", help="print the merged configuration")
    p_cfg.add_argument("--validate", action="store_true")
    p_cfg.add_argument("--path", action="store_true", help="print the configuration file in use")

    return ap


def main(argv: Optional[List[str]] = None):
    argv = argv if argv is not None else sys.argv[1:]
    parser = make_parser()
    args = parser.parse_args(argv)
    if not args.cmd:
        parser.print_help()
        return

    try:
        cfg = config_mod.load(args.config)
        logging_mod.configure(cfg.section("logging"), level="DEBUG" if args.verbose else None)
        cli = SolpackCLI(cfg)

        if args.cmd == "build":
            result = cli.build(args.flavor, args.project, output=args.output, keep_staging=args.keep_staging)
            if args.json:
                console.print_json(json.dumps(result.to_dict()))
        elif args.cmd == "publish":
            cli.publish(args.backend, args.pattern, repo=args.repo, distros=args.distros)
        elif args.cmd == "describe":
            data = cli.describe(args.project, flavor=args.flavor)
            if args.json:
                console.print_json(json.dumps(data))
        elif args.cmd == "config":
            if not cli.config_cmd(show=args.show, validate=args.validate, path=args.path):
                sys.exit(2)
    except SolpackError as e:
        logger.debug("command failed", exc_info=True)
        _print_failure(e)
        sys.exit(2)
    except OSError as e:
        logger.debug("command failed", exc_info=True)
        print_err(f"Command failed: {escape(str(e))}")
        sys.exit(2)


if __name__ == "__main__":
    main()
