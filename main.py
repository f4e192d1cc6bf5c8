#!/usr/bin/env python3
"""Main entry point for the software fit recommender"""
from pathlib import Path
from rich.console import Console
from rich.table import Table

from fitmatch.batch_processor import load_profile
from fitmatch.recommendation import RecommendationService
from fitmatch.utils import logger, config

console = Console()

def display_recommendation(result):
    """Display recommended items in a table"""
    table = Table(title=f"Recommendation ({result.fit_decision})")
    table.add_column("Rank", style="cyan", width=6)
    table.add_column("Software", style="magenta")
    table.add_column("Score", style="yellow", width=8)
    table.add_column("Solvable", style="green", width=10)
    table.add_column("Why", style="blue")

    for i, item in enumerate(result.items, 1):
        table.add_row(
            str(i),
            item.name,
            str(item.score),
            "yes" if item.solvable else "no",
            item.why_recommended
        )

    console.print(table)
    console.print(f"[bold]{result.fit_reason}[/bold]")
    if result.fit_analysis:
        console.print(result.fit_analysis.recommendation)
        display_framework(result.fit_analysis.custom_build_framework)

def display_framework(framework):
    """Display the gap matrix and structural checks"""
    if framework is None:
        return

    gaps = Table(title=f"Capability Gap (avg {framework.gap_average}%)")
    gaps.add_column("Requirement", style="magenta")
    gaps.add_column("Need", width=8)
    gaps.add_column("Coverage", style="green", width=10)
    gaps.add_column("Gap", style="red", width=6)
    for row in framework.capability_gap_matrix:
        gaps.add_row(row.item, row.need_level, f"{row.software_coverage}%", f"{row.gap}%")
    console.print(gaps)

    for check in framework.structural_constraint_test.checks:
        console.print(f"{'YES' if check.yes else 'NO '} {check.question}")
    types = ", ".join(f"{t.code}.{t.title}" for t in framework.problem_typing)
    console.print(f"[bold]{types}[/bold] | payback {framework.roi_estimate.payback_months} months")

def main():
    """Main workflow"""
    console.print("[bold blue]Software Fit Recommender[/bold blue]\n")

    logger.info("Initializing system components")
    service = RecommendationService()
    service.store.create_tables()

    sample_profile_path = "data/sample_profile.json"

    if Path(sample_profile_path).exists():
        console.print(f"\n[cyan]Loading profile: {sample_profile_path}[/cyan]")
        profile = load_profile(sample_profile_path)

        console.print("\n[cyan]Generating recommendation...[/cyan]")
        result = service.run("demo_user", profile, skip_ai=not config.narrative_enabled)
        display_recommendation(result)

if __name__ == "__main__":
    main()
