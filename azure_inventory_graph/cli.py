#!/usr/bin/env python3
"""
Command Line Interface for Azure Inventory Graph.

This module provides a command-line interface that collects Azure inventory,
builds the entity graph and exports it.
"""

import argparse
import json
import os
import sys
import logging

from .azure_client import AzureClient
from .collector import CollectorOptions, SnapshotCollector
from .export import export_to_csv, export_to_excel, export_to_json, load_previous_graph
from .graph_builder import GraphBuilder
from .tag_mapper import TagMapper

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def display_report(report):
    """Display entity counts and skipped records in a formatted way.

    Args:
        report: BuildReport of the run

    Returns:
        Boolean indicating if every record was built
    """
    print("\n=== Inventory Graph ===")
    for name, count in report.counts.items():
        print(f"  {name}: {count}")

    print(f"\nReferences: {report.resolved_references} resolved, {report.absent_references} absent")

    if report.skipped:
        print(f"\n\033[93mSkipped records ({len(report.skipped)}):\033[0m")
        for record in report.skipped:
            print(f"  [{record.category}] {record.identity}: {record.reason}")

    if report.diagnostics:
        print(f"\n\033[93mDiagnostics ({len(report.diagnostics)}):\033[0m")
        for diagnostic in report.diagnostics:
            print(f"  [{diagnostic.category}] {diagnostic.identity}: {diagnostic.message}")

    return not report.skipped


def build_parser():
    parser = argparse.ArgumentParser(description='Build an Azure inventory graph and export it')
    parser.add_argument('--output-dir', default='output', help='Directory to store the output')
    parser.add_argument('--snapshot', help='Build from a JSON snapshot of raw records instead of the az CLI')
    parser.add_argument('--subscription', help='Azure subscription id (default: active az account)')
    parser.add_argument('--region', help='Region used for VM sizes and marketplace images')
    parser.add_argument('--previous', help='JSON export of an earlier run, reused for unchanged stacks')
    parser.add_argument('--tag-mappings', help='JSON file mapping label names to tag categories')
    parser.add_argument('--private-images', action='store_true',
                        help='Collect private VHD images from storage accounts')
    parser.add_argument('--market-images', action='store_true',
                        help='Collect marketplace images for the region')
    parser.add_argument('--unmanaged-disk-size', action='store_true',
                        help='Look up the blob size of unmanaged disks with unknown size')
    parser.add_argument('--sequential', action='store_true',
                        help='Fetch independent listings one after another')
    parser.add_argument('--format', choices=['csv', 'json', 'excel', 'all'], default='json',
                        help='Output format (default: json)')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    options = CollectorOptions(
        get_private_images=args.private_images,
        get_market_images=args.market_images,
        get_unmanaged_disk_space=args.unmanaged_disk_size
    )

    previous_graph = None
    if args.previous:
        logger.info(f"Loading previous inventory from {args.previous}")
        previous_graph = load_previous_graph(args.previous)

    tag_mapper = None
    if args.tag_mappings:
        with open(args.tag_mappings, 'r') as mappings_file:
            tag_mapper = TagMapper(json.load(mappings_file))

    if args.snapshot:
        collector = SnapshotCollector.from_file(args.snapshot, options=options, previous_graph=previous_graph)
        if args.subscription:
            collector.subscription_id = args.subscription
        if args.region:
            collector.provider_region = args.region
    else:
        collector = AzureClient(
            subscription_id=args.subscription,
            provider_region=args.region,
            options=options,
            previous_graph=previous_graph
        )

    builder = GraphBuilder(collector, tag_mapper=tag_mapper, prefetch_workers=0 if args.sequential else 3)
    result = builder.build()

    all_built = display_report(result.report)
    if not all_built:
        logger.warning("Some records were skipped; see the report above.")

    output_dir = os.path.abspath(args.output_dir)
    if args.format in ['json', 'all']:
        export_to_json(result, output_dir, 'azure_inventory')
    if args.format in ['csv', 'all']:
        export_to_csv(result, output_dir, 'azure_inventory')
    if args.format in ['excel', 'all']:
        export_to_excel(result, output_dir, 'azure_inventory')

    logger.info("Inventory graph completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
