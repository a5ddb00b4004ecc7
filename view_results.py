import json
import sys
import os
from typing import Any, Dict, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape

SEVERITY_COLORS = {
    "critical": "red",
    "important": "yellow",
    "informational": "green",
}

CATEGORY_CHECKS = {
    "on_page": ("On-Page SEO", ("title", "meta_description", "headings.h1", "headings.h2", "headings.h3",
                                "images", "internal_links", "external_links", "keyword_density",
                                "content_length", "readability")),
    "technical": ("Technical SEO", ("robots_txt", "sitemap", "ssl", "mobile", "structured_data",
                                    "social_meta", "page_speed", "indexability", "canonical")),
    "off_page": ("Off-Page SEO", ("domain_authority", "page_authority", "backlinks", "social_signals",
                                  "mentions")),
    "aio": ("AI Optimization", ("question_answer", "content_structure", "source_credibility",
                                "semantic_keywords", "schema_markup", "local_optimization", "ai_readiness")),
}


def _score_color(value: float) -> str:
    if value >= 80:
        return "green"
    if value >= 50:
        return "yellow"
    return "red"


def _lookup(data: Dict[str, Any], path: str) -> Dict[str, Any]:
    for part in path.split("."):
        data = data.get(part, {})
    return data


def render_result(data: Dict[str, Any], console: Optional[Console] = None) -> None:
    """Render an analysis result dict (AnalysisResult.to_dict()) to the console."""
    console = console or Console()
    score = data.get("score", {})

    console.print(f"\n[bold blue]SEO Analysis Results for {escape(data.get('url', 'unknown URL'))}[/bold blue]")
    console.print(f"[dim]Session {data.get('session_id', '-')} at {data.get('timestamp', '-')}[/dim]\n")

    scores_table = Table(title="SEO Scores")
    scores_table.add_column("Category", style="cyan")
    scores_table.add_column("Score", justify="right")
    for label, key in (("On-Page", "on_page"), ("Technical", "technical"), ("Performance", "performance"),
                       ("Off-Page", "off_page"), ("AI Optimization", "aio"), ("Content", "content")):
        value = score.get(key, 0)
        scores_table.add_row(label, f"[{_score_color(value)}]{value}/100[/{_score_color(value)}]")
    total = score.get("total", 0)
    scores_table.add_row("[bold]Overall[/bold]", f"[bold {_score_color(total)}]{total}/100[/bold {_score_color(total)}]")
    console.print(scores_table)
    console.print()

    for key, (title, checks) in CATEGORY_CHECKS.items():
        findings = data.get(key, {})
        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Check")
        table.add_column("Score", justify="right")
        table.add_column("Issues")
        for check in checks:
            sub_score = _lookup(findings, check)
            value = sub_score.get("value", 0)
            table.add_row(check, f"[{_score_color(value)}]{value}[/{_score_color(value)}]",
                          escape("\n".join(sub_score.get("issues", []))) or "-")
        if findings.get("failed"):
            console.print(f"[red]{title} analysis failed; scores below are defaults[/red]")
        console.print(table)
        console.print()

    console.print("[bold cyan]Recommendations[/bold cyan]")
    for rec in data.get("recommendations", []):
        severity = rec.get("severity", "informational")
        color = SEVERITY_COLORS.get(severity, "white")
        body = escape(rec.get("reason", ""))
        steps = rec.get("steps", [])
        if steps:
            body += "\n" + "\n".join(f"{i}. {escape(step)}" for i, step in enumerate(steps, 1))
        if rec.get("example"):
            body += f"\n[dim]Example: {escape(rec['example'])}[/dim]"
        console.print(Panel(
            body,
            title=f"[{color}]{severity.upper()}[/{color}] {escape(rec.get('title', ''))}",
            title_align="left",
        ))

    console.print("\n[bold blue]Analysis Complete[/bold blue]")


def display_analysis(json_file, console: Optional[Console] = None) -> bool:
    """Display saved SEO analysis results in a readable format."""
    console = console or Console()
    # Check if file exists
    if not os.path.exists(json_file):
        console.print(f"[red]Error: File {json_file} not found.[/red]")
        return False

    try:
        with open(json_file, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError:
        console.print(f"[red]Error: {json_file} is not a valid JSON file.[/red]")
        return False

    render_result(data, console)
    return True


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python view_results.py <json_file>")
        sys.exit(1)

    sys.exit(0 if display_analysis(sys.argv[1]) else 1)
