"""
Export Module for Azure Inventory Graph.

This module writes a built inventory graph and its report to CSV, JSON or
Excel files.
"""

import io
import json
import os
import logging
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from .models import InventoryResult

logger = logging.getLogger(__name__)


def graph_to_dataframes(result: InventoryResult, include_empty: bool = False) -> Dict[str, pd.DataFrame]:
    """Convert each graph category to a DataFrame.

    Args:
        result: Result of a graph build
        include_empty: Whether to include categories with no entities

    Returns:
        Dictionary of category name to DataFrame
    """
    frames = {}
    for collection in result.graph:
        rows = [entity.to_dict() for entity in collection]
        if not rows and not include_empty:
            continue
        frames[collection.name] = pd.DataFrame(rows)
    return frames


def report_to_dataframes(result: InventoryResult) -> Dict[str, pd.DataFrame]:
    """Convert the run report to summary, skipped and diagnostics DataFrames."""
    report = result.report
    return {
        'summary': pd.DataFrame(
            [{'category': name, 'count': count} for name, count in report.counts.items()],
            columns=['category', 'count']
        ),
        'skipped': pd.DataFrame(
            [record.to_dict() for record in report.skipped],
            columns=['category', 'identity', 'reason']
        ),
        'diagnostics': pd.DataFrame(
            [diagnostic.to_dict() for diagnostic in report.diagnostics],
            columns=['category', 'identity', 'message']
        )
    }


def _timestamped(output_dir: str, filename_prefix: str, extension: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return os.path.join(output_dir, f"{filename_prefix}_{timestamp}.{extension}")


def export_to_csv(result: InventoryResult, output_dir: str,
                  filename_prefix: str = 'azure_inventory') -> List[str]:
    """Export every non-empty category, and the report summary, to CSV files.

    Returns:
        Paths of the created CSV files
    """
    filenames = []
    frames = dict(graph_to_dataframes(result))
    frames['summary'] = report_to_dataframes(result)['summary']
    for name, frame in frames.items():
        filename = _timestamped(output_dir, f"{filename_prefix}_{name}", 'csv')
        try:
            frame.to_csv(filename, index=False)
            filenames.append(filename)
        except Exception as e:
            logger.error(f"Error exporting {name} to CSV: {str(e)}")
    logger.info(f"Exported {len(filenames)} CSV files to {output_dir}")
    return filenames


def export_to_json(result: InventoryResult, output_dir: str,
                   filename_prefix: str = 'azure_inventory') -> Optional[str]:
    """Export the graph and report to one JSON file.

    The ``graph`` key of this file can be fed back as the previous graph of a
    later run to reuse resources of unchanged stacks.
    """
    filename = _timestamped(output_dir, filename_prefix, 'json')
    try:
        with open(filename, 'w') as jsonfile:
            json.dump(result.to_dict(), jsonfile, indent=2, default=str)
        logger.info(f"Data exported to {filename}")
        return filename
    except Exception as e:
        logger.error(f"Error exporting data to JSON: {str(e)}")
        return None


def to_excel_bytes(result: InventoryResult) -> bytes:
    """Render the report and every non-empty category as Excel sheets."""
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        for name, frame in report_to_dataframes(result).items():
            frame.to_excel(writer, index=False, sheet_name=name)
        for name, frame in graph_to_dataframes(result).items():
            # Excel limits sheet names to 31 characters
            frame.to_excel(writer, index=False, sheet_name=name[:31])
    return output.getvalue()


def export_to_excel(result: InventoryResult, output_dir: str,
                    filename_prefix: str = 'azure_inventory') -> Optional[str]:
    filename = _timestamped(output_dir, filename_prefix, 'xlsx')
    try:
        with open(filename, 'wb') as excel_file:
            excel_file.write(to_excel_bytes(result))
        logger.info(f"Data exported to {filename}")
        return filename
    except Exception as e:
        logger.error(f"Error exporting data to Excel: {str(e)}")
        return None


def load_previous_graph(path: str) -> Optional[Dict[str, list]]:
    """Read the graph section of a JSON export written by export_to_json."""
    with open(path, 'r') as jsonfile:
        data = json.load(jsonfile)
    return data.get('graph', data)
