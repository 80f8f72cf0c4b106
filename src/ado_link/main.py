"""CLI entrypoint for ado-link."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from ado_link import __version__
from ado_link.azure_devops.client import AzureDevOpsClient
from ado_link.config import (
    KNOWN_KEYS,
    ORG_URL_KEY,
    PAT_KEY,
    SECRET_KEYS,
    AdoLinkSettings,
    Configuration,
    ConfigStore,
    FileConfigStore,
    mask_secret,
)
from ado_link.errors import AdoLinkError
from ado_link.git.remote import GitRepository
from ado_link.link_service import LinkRequest, LinkService
from ado_link.logging import configure_logging
from ado_link.prompt import read_input

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid work item id: {value!r}") from e
    if number <= 0:
        raise argparse.ArgumentTypeError("work item id must be a positive integer")
    return number


def _branch_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise argparse.ArgumentTypeError("branch name must not be blank")
    return name


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ado-link",
        description="Link local git branches to Azure DevOps work items",
    )
    parser.add_argument("--version", action="version", version=f"ado-link {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "init",
        help="Configure the organization URL and PAT for your Azure DevOps account",
        description=(
            "Configure the organization URL and PAT (Personal Access Token). "
            "The PAT needs Work Items (Read & Write) and Code (Read & Write)."
        ),
    )

    link = subparsers.add_parser(
        "link",
        help="Link the current branch (or a new branch) to a work item",
    )
    link.add_argument(
        "-w",
        "--work-item",
        dest="work_item",
        type=_positive_int,
        required=True,
        help="Work item ID to link the branch to",
    )
    link.add_argument(
        "-n",
        "--name",
        default=None,
        type=_branch_name,
        help="Create (or reuse) this branch and link it instead of the current branch",
    )
    link.add_argument(
        "-c",
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Start a new branch from the remote default branch (default: yes)",
    )

    config = subparsers.add_parser("config", help="Read or change stored configuration")
    config_sub = config.add_subparsers(dest="config_command", required=True)

    config_get = config_sub.add_parser("get", help="Print stored values")
    config_get.add_argument("key", nargs="?", choices=KNOWN_KEYS, default=None)
    config_get.add_argument(
        "--show-secrets",
        action="store_true",
        help="Print the PAT unmasked when listing all values",
    )

    config_set = config_sub.add_parser("set", help="Store a value")
    config_set.add_argument("key", choices=KNOWN_KEYS)
    config_set.add_argument("value")

    return parser


def _build_client(config: Configuration, settings: AdoLinkSettings) -> AzureDevOpsClient:
    return AzureDevOpsClient(
        org_url=config.org_url,
        pat=config.pat,
        api_version=settings.api_version,
        timeout_seconds=settings.timeout_seconds,
    )


def _run_init(store: ConfigStore, settings: AdoLinkSettings) -> int:
    # Read from stdin rather than flags to keep the PAT out of shell history.
    url = read_input(
        "Please input your organization URL (i.e. https://dev.azure.com/<myorg>)",
        store.get(ORG_URL_KEY),
    )
    store.set(ORG_URL_KEY, url)
    pat = read_input("Please input your PAT", store.get(PAT_KEY), secret=True)
    store.set(PAT_KEY, pat)

    print("Validating connection to Azure DevOps...")
    try:
        config = Configuration.load(store).require()
        client = _build_client(config, settings)
        try:
            projects = client.list_projects()
        finally:
            client.close()
    except (AdoLinkError, ValueError) as e:
        logger.warning("Connection validation failed", extra={"error": str(e)})
        print(f"Error validating connection: {e}", file=sys.stderr)
        print("Connection failed. Please check your configuration and try again.", file=sys.stderr)
        return 1

    logger.info("Connection validated", extra={"projects": len(projects)})
    print("Configuration successfully initialized.")
    return 0


def _run_link(args: argparse.Namespace, store: ConfigStore, settings: AdoLinkSettings) -> int:
    request = LinkRequest(work_item_id=args.work_item, branch_name=args.name, clean=args.clean)
    config = Configuration.load(store).require()

    # Resolve the working copy before any client exists: no network outside a repository.
    git = GitRepository.open(Path.cwd())

    client = _build_client(config, settings)
    try:
        service = LinkService(client=client, git=git, organization=config.organization_name)
        result = service.link(request)
    finally:
        client.close()

    print(f"Found work item: {result.work_item_title}")
    if result.branch_created:
        print(f"Created branch: {result.repo.branch_name}")
    if result.already_linked:
        print(f"Branch {result.repo.branch_name} is already linked to work item {request.work_item_id}.")
    else:
        print(f"Successfully linked branch {result.repo.branch_name} to work item {request.work_item_id}.")
    return 0


def _run_config(args: argparse.Namespace, store: ConfigStore) -> int:
    if args.config_command == "set":
        store.set(args.key, args.value)
        print(f"Set {args.key}")
        return 0

    if args.key is not None:
        print(store.get(args.key))
        return 0

    for key in KNOWN_KEYS:
        value = store.get(key)
        if key in SECRET_KEYS and not args.show_secrets:
            value = mask_secret(value)
        print(f"{key}={value}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = AdoLinkSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment / .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        store = FileConfigStore(settings.config_file)

        if args.command == "init":
            return _run_init(store, settings)

        if args.command == "link":
            return _run_link(args, store, settings)

        if args.command == "config":
            return _run_config(args, store)

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except AdoLinkError as e:
        logger.info("Command failed", extra={"command": args.command, "error": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
