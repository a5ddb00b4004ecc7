import argparse
import asyncio
import json
import logging
import pathlib
import sys
from typing import Optional

from rich.console import Console

from config import configure_logging, load_settings
from page_utils import host_of
from seo_analyzer import InvalidURLError, analyze
from view_results import render_result

logger = logging.getLogger("run_analyzer")


def _normalize_url(url: str) -> str:
    """Prepend https:// when the scheme is missing"""
    if not url.startswith(('http://', 'https://')):
        return f'https://{url}'
    return url


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Score a web page's SEO quality and print recommendations")
    parser.add_argument("url", help="page to analyze; https:// is assumed when no scheme is given")
    parser.add_argument("--session-id", help="identifier stored with the result (random by default)")
    parser.add_argument("--output", help="where to save the JSON result (default: <results dir>/<domain>_analysis.json)")
    parser.add_argument("--quiet", action="store_true", help="only save the result, do not print the report")
    return parser


def output_path(url: str, results_dir: str, output: Optional[str] = None) -> pathlib.Path:
    if output:
        return pathlib.Path(output)
    return pathlib.Path(results_dir) / f"{host_of(url) or 'site'}_analysis.json"


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(settings)

    url = _normalize_url(args.url.strip())
    console = Console()
    if not args.quiet:
        console.print(f"Starting SEO analysis of {url}...")

    try:
        result = asyncio.run(analyze(url, args.session_id, settings=settings))
    except InvalidURLError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 2

    data = result.to_dict()
    path = output_path(result.url, settings.results_dir, args.output)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)

    if not args.quiet:
        render_result(data, console)
        console.print(f"\nComplete analysis saved to {path}")
    logger.info(f"Saved analysis for {result.url} to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
