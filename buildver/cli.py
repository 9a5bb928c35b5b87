"""Command-line interface for buildver."""

import argparse
import json
import logging
import os
import sys

from buildver import __version__, __app_name__
from buildver.context import BuildContext
from buildver.core import calculate_version, classify
from buildver.errors import UnsupportedEvent, VersionError
from buildver.hosts.github import DEFAULT_API_URL, GitHubAPI

logger = logging.getLogger(__name__)

OUTPUT_NAME = "version"


class WorkflowCommandFormatter(logging.Formatter):
    """Render log records as GitHub Actions workflow commands.

    Warnings and errors become run annotations; debug lines only show up
    when step debugging is enabled on the runner.
    """

    PREFIXES = {
        logging.DEBUG: "::debug::",
        logging.WARNING: "::warning::",
        logging.ERROR: "::error::",
        logging.CRITICAL: "::error::",
    }

    def format(self, record):
        message = super().format(record)
        prefix = self.PREFIXES.get(record.levelno)
        if prefix is None:
            return message
        return prefix + escape_command_data(message)


def escape_command_data(text):
    """Escape a workflow command payload so multi-line text stays one command."""
    return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _env(name, default=None):
    value = os.environ.get(name)
    return value if value else default


def build_parser():
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="Compute a unique semantic version for the current CI build.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Every option defaults to the matching GitHub Actions environment variable,
so inside a workflow step no arguments are needed.

examples:
  %(prog)s                                   Version the current Actions run
  %(prog)s --set-env PROVIDER_VERSION        Also export the version to $GITHUB_ENV
  %(prog)s --event-name push --ref refs/tags/v1.2.3
                                             Version a tag push (no API calls)
  %(prog)s --event-name schedule --major-version 3 --repository owner/repo --sha <sha>
                                             Nightly build pinned to major 3
  %(prog)s --json -v                         JSON output with debug logging

version formats:
  tag push               1.2.3
  default branch         1.3.0-alpha.1577836800
  anything else          1.3.0-alpha.1577836800+699a10d

increment rules:
  version branch vN (push or PR base)      N.0.0
  branch named upgrade-*-major              major bump
  PR label needs-release/major|minor|patch  matching bump
  otherwise                                 minor bump of the latest release""",
    )
    parser.add_argument(
        '--version', action='version',
        version=f'{__app_name__} {__version__}'
    )
    parser.add_argument(
        '--event-name', default=_env('GITHUB_EVENT_NAME'),
        help='Triggering event: push, pull_request, workflow_dispatch, '
             'schedule or repository_dispatch (default: $GITHUB_EVENT_NAME)'
    )
    parser.add_argument(
        '--ref', default=_env('GITHUB_REF', ''),
        help='Git ref being built, e.g. refs/heads/main (default: $GITHUB_REF)'
    )
    parser.add_argument(
        '--sha', default=_env('GITHUB_SHA'),
        help='Full commit SHA being built (default: $GITHUB_SHA)'
    )
    parser.add_argument(
        '--repository', default=_env('GITHUB_REPOSITORY'), metavar='OWNER/NAME',
        help='Repository to query (default: $GITHUB_REPOSITORY)'
    )
    parser.add_argument(
        '--event-path', default=_env('GITHUB_EVENT_PATH'), metavar='PATH',
        help='Webhook payload JSON file (default: $GITHUB_EVENT_PATH)'
    )
    parser.add_argument(
        '--default-branch', default=None, metavar='NAME',
        help="Repository default branch (default: from the event payload, else 'main')"
    )
    parser.add_argument(
        '--run-id', default=_env('GITHUB_RUN_ID'),
        help='Run identifier used when the commit date is unavailable '
             '(default: $GITHUB_RUN_ID)'
    )
    parser.add_argument(
        '--major-version', default=_env('INPUT_MAJOR-VERSION'), metavar='N',
        help='Force this major version for scheduled/dispatch builds'
    )
    parser.add_argument(
        '--set-env', default=_env('INPUT_SET-ENV'), metavar='NAME',
        help='Also export the version as environment variable NAME via $GITHUB_ENV'
    )
    parser.add_argument(
        '--api-url', default=_env('GITHUB_API_URL', DEFAULT_API_URL), metavar='URL',
        help='GitHub API root (default: $GITHUB_API_URL or api.github.com)'
    )
    parser.add_argument(
        '--token', default=_env('GITHUB_TOKEN'),
        help='API token (default: $GITHUB_TOKEN; prefer the environment variable)'
    )
    parser.add_argument(
        '--json', dest='json_output', action='store_true',
        help='Output the result as JSON'
    )
    parser.add_argument(
        '--verbose', '-v', action='store_true',
        default=_env('RUNNER_DEBUG') == '1',
        help='Verbose logging output (default: on when $RUNNER_DEBUG is 1)'
    )
    return parser


def configure_logging(verbose=False, annotations=False):
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler()
    if annotations:
        handler.setFormatter(WorkflowCommandFormatter('%(message)s'))
    else:
        handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def main(argv=None, api=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    annotations = os.environ.get('GITHUB_ACTIONS') == 'true'
    configure_logging(args.verbose, annotations)

    payload = _load_payload(args.event_path)

    owns_api = api is None
    if owns_api:
        api = GitHubAPI(token=args.token, base_url=args.api_url)
    try:
        if not args.event_name:
            raise UnsupportedEvent(
                "No event name given (use --event-name or set GITHUB_EVENT_NAME)")
        context = BuildContext.from_event(
            event_name=args.event_name,
            ref=args.ref,
            sha=args.sha,
            repository=args.repository,
            payload=payload,
            default_branch=args.default_branch,
            run_id=args.run_id,
            major_version=args.major_version,
        )
        version = calculate_version(context, api)
    except VersionError as e:
        _fail(e, annotations)
    finally:
        if owns_api:
            api.close()

    if args.json_output:
        _print_json(context, version)
    else:
        print(version)

    try:
        _write_outputs(version, args.set_env)
    except OSError as e:
        _fail(f"Could not write step outputs: {e}", annotations)


def _fail(error, annotations):
    """Report a fatal error the way the runner expects and exit 1."""
    if annotations:
        print(f"::error::{escape_command_data(str(error))}")
    print(f"Error: {error}", file=sys.stderr)
    sys.exit(1)


def _write_outputs(version, set_env):
    output_file = os.environ.get('GITHUB_OUTPUT')
    if output_file:
        _append_assignment(output_file, OUTPUT_NAME, version)
    if set_env:
        env_file = os.environ.get('GITHUB_ENV')
        if env_file:
            _append_assignment(env_file, set_env, version)
            logger.debug(f"Exported {set_env}={version}")
        else:
            logger.warning(f"GITHUB_ENV is not set, cannot export {set_env}")


def _load_payload(path):
    """Load the webhook payload; a missing or broken file means no payload."""
    if not path:
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except FileNotFoundError:
        logger.warning(f"Event payload not found: {path}")
        return {}
    except json.JSONDecodeError as e:
        logger.warning(f"Could not parse event payload {path}: {e}")
        return {}
    return payload if isinstance(payload, dict) else {}


def _append_assignment(path, name, value):
    with open(path, 'a', encoding='utf-8') as f:
        f.write(f"{name}={value}\n")


def _print_json(context, version):
    data = {
        'version': version,
        'scenario': classify(context).value,
        'event': context.event_name,
        'ref': context.ref,
        'sha': context.sha,
    }
    print(json.dumps(data, indent=2))
