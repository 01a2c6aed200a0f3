"""
CLI Module

Architectural Intent:
- Command-line interface for Meridian
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control

Commands:
- validate: parse declarations and build the dependency graph
- graph: print the creation order and each resource's dependencies
- apply: provision the stack against the simulated AWS provider, print the
  outputs and write the rendered gateway configuration
"""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from pathlib import Path

from meridian.domain.errors import CycleError, SpecError
from meridian.domain.services.dependency_graph import build_graph
from meridian.infrastructure.config import load_config
from meridian.infrastructure.logging import configure_logging
from meridian.infrastructure.stack_loader import load_stack


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Meridian: declarative provisioning with gateway synthesis"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--config", "-c", default=None, help="Path to meridian.json"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    validate_parser = subparsers.add_parser(
        "validate", help="Validate a stack file and its dependency graph"
    )
    validate_parser.add_argument("stack", help="Path to the stack JSON file")

    graph_parser = subparsers.add_parser(
        "graph", help="Print the creation order of a stack"
    )
    graph_parser.add_argument("stack", help="Path to the stack JSON file")

    apply_parser = subparsers.add_parser(
        "apply", help="Provision a stack and synthesize the gateway config"
    )
    apply_parser.add_argument("stack", help="Path to the stack JSON file")
    apply_parser.add_argument(
        "--gateway-out", "-o", default=None, help="Write the Kong config to this file"
    )
    apply_parser.add_argument(
        "--fail", action="append", default=[],
        help="Simulate a provider failure for this instance id (repeatable)",
    )
    return parser


def _load_graph(path: str):
    stack = load_stack(path)
    return stack, build_graph(stack.model)


async def async_main():
    parser = _build_parser()
    args = parser.parse_args()
    config = load_config(args.config)

    if args.debug:
        configure_logging(level=logging.DEBUG)
    elif args.verbose:
        configure_logging(level=logging.INFO)
    else:
        configure_logging(level=config.log_level)

    verbose = args.verbose or args.debug

    if args.command in ("validate", "graph", "apply"):
        try:
            stack, graph = _load_graph(args.stack)
        except FileNotFoundError as e:
            print(f"[-] Stack file not found: {e}")
            sys.exit(1)
        except CycleError as e:
            print(f"[-] {e}")
            sys.exit(1)
        except SpecError as e:
            print(f"[-] Invalid stack: {e}")
            sys.exit(1)

    if args.command == "validate":
        print(
            f"[+] Stack valid: {len(stack.model)} resource(s), "
            f"{len(graph)} instance(s)."
        )
        return

    if args.command == "graph":
        for node_id in graph.topological_order():
            deps = graph.dependencies(node_id)
            suffix = f" <- {', '.join(deps)}" if deps else ""
            print(f"{node_id} ({graph.spec_for(node_id).kind.value}){suffix}")
        return

    if args.command == "apply":
        from meridian.composition_root import create_container
        from meridian.infrastructure.adapters.aws_adapter import AWSAdapter

        provider = AWSAdapter(
            region=config.provider.region,
            default_ami=config.provider.default_ami,
            default_instance_type=config.provider.instance_type,
            vpc_cidr=config.provider.vpc_cidr,
            default_ingress_cidrs=config.network.ingress_cidrs,
            fail_names=set(args.fail),
        )
        container = create_container(config, stack=stack, provider=provider)

        print(f"[*] Applying {len(graph)} resource(s) from {args.stack}...")
        try:
            report = await container.apply.execute(stack.model)
        except Exception as e:
            print(f"[-] Apply Failed: {e}")
            if verbose:
                traceback.print_exc()
            sys.exit(1)
        finally:
            container.telemetry.shutdown()

        for failure in report.result.failures:
            if failure.cascaded:
                print(f"[-] {failure.node_id}: skipped, {failure.root_id} failed")
            else:
                print(f"[-] {failure.node_id}: {failure.cause}")

        print(json.dumps(report.outputs.available(), indent=2, sort_keys=True))

        if report.topology is not None:
            rendered = report.topology.render()
            if args.gateway_out:
                Path(args.gateway_out).write_text(rendered)
                print(f"[+] Gateway config written to {args.gateway_out}")
            else:
                print(rendered, end="")

        if report.succeeded:
            print("[+] Apply Successful.")
        else:
            print(f"[-] Apply finished with {report.outcome.name}.")
            sys.exit(1)
        return

    parser.print_help()


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
