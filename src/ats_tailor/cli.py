"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ats_tailor.config import load_config
from ats_tailor.parsers.jd_parser import load_jd_file
from ats_tailor.parsers.jd_url import JobImportError, fetch_job_posting, fill_from_postings
from ats_tailor.parsers.resume_parser import ResumeParseError, parse_resume
from ats_tailor.service.app import Services, build_services
from ats_tailor.service.handler import HandlerResponse
from ats_tailor.templates.loader import list_templates, load_template

app = typer.Typer(
    name="ats-tailor",
    help="ATS-optimized resume tailoring with a seven-stage AI pipeline",
    no_args_is_help=True,
)
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to config.yaml")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _services(config_path: Path | None) -> Services:
    return build_services(load_config(config_path))


def _print_failure(response: HandlerResponse) -> None:
    error = response.body.get("error", {})
    console.print(f"[red]{response.status_code} {error.get('code', '')}: {error.get('message', '')}[/red]")


@app.command("add-resume")
def add_resume(
    file: Path = typer.Argument(help="Resume file (PDF/DOCX/TXT/MD)"),
    user: str = typer.Option("local", "--user", "-u", help="Owner user id"),
    config: Path = ConfigOption,
) -> None:
    """Store a resume and print its id."""
    if not file.exists():
        console.print(f"[red]Resume file not found: {file}[/red]")
        raise typer.Exit(1)
    try:
        text = parse_resume(file)
    except ResumeParseError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    services = _services(config)
    record = asyncio.run(services.jobs.add_resume(user, text or None, file.name))
    console.print(f"[green]Resume stored:[/green] {record.id} ({len(text)} chars)")


@app.command("add-job")
def add_job(
    resume_id: str = typer.Argument(help="Resume id from add-resume"),
    title: str = typer.Option(None, "--title", help="Job title (taken from the posting when omitted)"),
    jd: Path = typer.Option(None, "--jd", help="Job description text file"),
    url: str = typer.Option(None, "--url", help="Job posting URL; fetched when --jd or --title is omitted"),
    config: Path = ConfigOption,
) -> None:
    """Attach a job posting to a resume and print the job id."""
    if jd is None and not url:
        console.print("[red]Give a job description file (--jd) or a posting URL (--url)[/red]")
        raise typer.Exit(1)
    if jd is not None and not jd.exists():
        console.print(f"[red]Job description file not found: {jd}[/red]")
        raise typer.Exit(1)

    description = load_jd_file(jd) if jd is not None else ""
    if url and (not description or not title):
        try:
            with console.status(f"Fetching {url}..."):
                posting = asyncio.run(fetch_job_posting(url))
        except JobImportError as e:
            console.print(f"[red]{e}[/red]")
            title = title or e.title
            if not description:
                console.print("[yellow]Save the description to a file and pass it with --jd.[/yellow]")
                raise typer.Exit(1)
        else:
            description = description or posting.description
            title = title or posting.title
            company = f" at {posting.company}" if posting.company else ""
            console.print(f"[dim]Imported posting: {posting.title or '(untitled)'}{company}[/dim]")

    if not title:
        console.print("[red]No job title: pass --title[/red]")
        raise typer.Exit(1)

    services = _services(config)

    async def _run():
        resume = await services.jobs.get_resume(resume_id)
        if resume is None:
            return None
        return await services.jobs.add_job(resume.user_id, resume_id, title, description, url)

    job = asyncio.run(_run())
    if job is None:
        console.print(f"[red]Resume not found: {resume_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Job stored:[/green] {job.id}")


@app.command()
def generate(
    job_id: str = typer.Argument(help="Job id from add-job"),
    template: str = typer.Option("A", "--template", "-t", help="Template A, B or C"),
    config: Path = ConfigOption,
) -> None:
    """Generate (or fetch from cache) the tailored PDF for a job."""
    services = _services(config)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task(f"Generating resume for job {job_id}...", total=None)
        response = asyncio.run(services.handler.handle({"jobId": job_id, "templateName": template}))

    if not response.ok:
        _print_failure(response)
        raise typer.Exit(1)

    body = response.body
    insights, cache = body["aiInsights"], body["cacheInfo"]
    breakdown = insights["fitScoreBreakdown"]
    console.print(
        Panel(
            f"[bold]Fit score: {insights['fitScore']}[/bold] "
            f"(keywords {breakdown['keywords']}/40, experience {breakdown['experience']}/40, "
            f"qualifications {breakdown['qualifications']}/20)\n"
            f"Missing skills: {insights['missingSkillsCount']} | "
            f"Recommendations: {insights['recommendationsCount']}\n"
            f"Content cache: {'hit' if cache['contentCacheHit'] else 'miss'} | "
            f"Render cache: {'hit' if cache['renderCacheHit'] else 'miss'} | "
            f"AI calls saved: {cache['aiCallsSaved']}",
            title=f"Template {body['templateName']}",
        )
    )
    console.print(f"[green]PDF: {body['pdfUrl']}[/green]")

    if body["warnings"]:
        console.print("\n[yellow]Integrity warnings:[/yellow]")
        for w in body["warnings"]:
            color = "red" if w["severity"] == "critical" else "yellow"
            console.print(f"  [{color}]{w['stage']}/{w['code']}[/{color}] {w['message']}")


@app.command()
def bulk(
    resume_id: str = typer.Argument(help="Resume id from add-resume"),
    jobs_file: Path = typer.Option(
        ...,
        "--jobs",
        help='JSON file: [{"title": ..., "description": ..., "url": ...}]. '
        "Postings are fetched for entries without a description.",
    ),
    template: str = typer.Option("A", "--template", "-t", help="Template A, B or C"),
    config: Path = ConfigOption,
) -> None:
    """Create and generate several jobs for one resume."""
    if not jobs_file.exists():
        console.print(f"[red]Jobs file not found: {jobs_file}[/red]")
        raise typer.Exit(1)
    try:
        jobs = json.loads(jobs_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid jobs file: {e}[/red]")
        raise typer.Exit(1)

    if isinstance(jobs, list):
        with console.status("Importing job postings..."):
            failures = asyncio.run(fill_from_postings(jobs))
        for index, message in sorted(failures.items()):
            console.print(f"[yellow]Job {index}: {message}[/yellow]")

    services = _services(config)
    console.print(f"[dim]Estimated time: ~{len(jobs) * 15 if isinstance(jobs, list) else 0}s[/dim]")
    response = asyncio.run(services.bulk.generate(resume_id, jobs, template))
    if not response.ok:
        _print_failure(response)
        raise typer.Exit(1)

    table = Table(title=response.body["message"])
    table.add_column("Job id")
    table.add_column("Status")
    table.add_column("Fit")
    table.add_column("PDF / error")
    for result in response.body["results"]:
        if result["statusCode"] == 200:
            table.add_row(
                result["jobId"], "[green]completed[/green]",
                str(result["aiInsights"]["fitScore"]), result["pdfUrl"],
            )
        else:
            table.add_row(result["jobId"], "[red]failed[/red]", "-", result["error"]["message"])
    console.print(table)


@app.command("delete-job")
def delete_job(
    job_id: str = typer.Argument(help="Job id to delete"),
    config: Path = ConfigOption,
) -> None:
    """Delete a job with its cached content and renders."""
    services = _services(config)
    response = asyncio.run(services.handler.delete_job(job_id))
    if not response.ok:
        _print_failure(response)
        raise typer.Exit(1)
    deleted = response.body["deleted"]
    console.print(
        f"[green]Deleted job {job_id}[/green] "
        f"({deleted['contentCache']} content, {deleted['renderCache']} render cache entries)"
    )


@app.command("cache-stats")
def cache_stats(config: Path = ConfigOption) -> None:
    """Show content and render cache statistics."""
    services = _services(config)

    async def _run():
        return await services.content_cache.stats(), await services.render_cache.stats()

    content, render = asyncio.run(_run())
    console.print(
        Panel(
            f"Content entries: {content['total']} "
            f"({content['resumes']} resume(s), {content['jobs']} job(s))\n"
            f"Render entries: {render['total']} "
            + ", ".join(f"{name}={count}" for name, count in sorted(render["by_template"].items())),
            title="Cache",
        )
    )


@app.command("cache-clear")
def cache_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config: Path = ConfigOption,
) -> None:
    """Delete every cache entry (both layers)."""
    if not yes and not typer.confirm("Clear both cache layers?"):
        raise typer.Exit()
    services = _services(config)

    async def _run():
        return await services.render_cache.clear(), await services.content_cache.clear()

    renders, contents = asyncio.run(_run())
    console.print(f"[green]Cleared {contents} content and {renders} render cache entries[/green]")


@app.command()
def usage(config: Path = ConfigOption) -> None:
    """Show this month's usage and estimated cost."""
    stats = _services(config).usage.get_monthly_stats()
    avg = stats["avg_fit_score"]
    console.print(
        Panel(
            f"Runs: {stats['total_runs']} (success {stats['success_rate']:.0f}%)\n"
            f"Content cache hits: {stats['content_cache_hits']}\n"
            f"Tokens: {stats['total_input_tokens']} in / {stats['total_output_tokens']} out\n"
            f"Estimated cost: ${stats['total_cost_usd']:.4f}\n"
            f"Average fit score: {avg if avg is not None else '-'}",
            title=f"Usage {stats['month']}",
        )
    )


@app.command()
def templates() -> None:
    """List available templates."""
    for name in list_templates():
        tmpl = load_template(name)
        sections = ", ".join(f"{s} ({limit.max_lines} lines)" for s, limit in tmpl.sections.items())
        console.print(f"  [bold]{name}[/bold]: {tmpl.type}, {tmpl.columns} column(s) [{sections}]")


if __name__ == "__main__":
    app()
