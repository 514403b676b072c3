"""
Writers for final crawl results: JSON file or console listing.
"""

import json
import logging
import sys
from pathlib import Path
from typing import TextIO, Union

from .results import ResultSets


logger = logging.getLogger(__name__)


class OutputError(Exception):
    """Raised when results cannot be written to the requested destination."""
    pass


def write_results_json(results: ResultSets, output_path: Union[str, Path],
                       include_external: bool = False):
    """Write results as pretty-printed JSON to ``output_path``."""
    output_path = Path(output_path)
    data = results.to_dict(include_external=include_external)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.write('\n')
    except OSError as e:
        raise OutputError(f"Failed to write results to {output_path}: {e}") from e

    logger.info(f"Results written to {output_path}")


def print_summary(results: ResultSets, stream: TextIO = None):
    stream = stream or sys.stdout
    print("\nCrawl Summary:", file=stream)
    print(f"Total URLs discovered: {len(results.urls)}", file=stream)
    print(f"Directories found: {len(results.directories)}", file=stream)
    print(f"Subdomains discovered: {len(results.subdomains)}", file=stream)


def print_results(results: ResultSets, stream: TextIO = None, include_external: bool = False):
    """Print every discovered item, section by section."""
    stream = stream or sys.stdout
    sections = [
        ("Discovered URLs", results.urls),
        ("Discovered Directories", results.directories),
        ("Discovered Subdomains", results.subdomains),
    ]
    if include_external:
        sections.append(("External Links", results.external))

    for title, items in sections:
        print(f"\n{title}:", file=stream)
        for item in items:
            print(f"  {item}", file=stream)
