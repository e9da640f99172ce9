"""ValidKit CLI - verify emails and manage batch jobs from the shell."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer

from validkit.errors import ValidKitError

app = typer.Typer(
    name="validkit",
    help="Email verification with the ValidKit API.",
    no_args_is_help=True,
)

job_app = typer.Typer(help="Async batch jobs (status, results, cancel, wait)")
app.add_typer(job_app, name="job")

_state = {"api_key": None, "base_url": None}


@app.callback()
def main(
    api_key: Optional[str] = typer.Option(None, envvar="VALIDKIT_API_KEY", help="ValidKit API key"),
    base_url: Optional[str] = typer.Option(None, help="API base URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Email verification with the ValidKit API."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    _state["api_key"] = api_key
    _state["base_url"] = base_url


def _client():
    from validkit.client import ValidKitClient
    from validkit.config import require_secret

    api_key = _state["api_key"] or require_secret("VALIDKIT_API_KEY")
    return ValidKitClient(api_key=api_key, base_url=_state["base_url"])


def _run(operation):
    """Run `operation(client)` and print its result as JSON."""

    async def run():
        async with _client() as client:
            return await operation(client)

    try:
        result = asyncio.run(run())
    except ValidKitError as e:
        print(json.dumps({"error": e.to_dict()}, indent=2, ensure_ascii=False), file=sys.stderr)
        raise typer.Exit(1)
    print(json.dumps(result, indent=2, ensure_ascii=False))


def _collect_emails(emails: Optional[List[str]], file: Optional[Path]) -> List[str]:
    collected = list(emails or [])
    if file:
        with open(file, "r") as f:
            collected.extend(line.strip() for line in f if line.strip())
    if not collected:
        print("No emails given (pass them as arguments or with --file)", file=sys.stderr)
        raise typer.Exit(2)
    return collected


@app.command("verify")
def verify(
    email: str = typer.Argument(..., help="Email to verify"),
    format: str = typer.Option("full", "--format", "-f", help="full or compact"),
    trace_id: Optional[str] = typer.Option(None, help="X-Trace-ID correlation id"),
    parent_id: Optional[str] = typer.Option(None, help="X-Parent-ID correlation id"),
    debug: bool = typer.Option(False, "--debug", help="Ask the API for detailed validation steps"),
):
    """Verify a single email."""
    _run(lambda client: client.verify_email(
        email, format=format, trace_id=trace_id, parent_id=parent_id, debug=debug
    ))


@app.command("batch")
def batch(
    emails: Optional[List[str]] = typer.Argument(None, help="Emails to verify"),
    file: Optional[Path] = typer.Option(None, "--file", help="File with one email per line"),
    format: str = typer.Option("compact", "--format", "-f", help="full or compact"),
    chunk_size: Optional[int] = typer.Option(None, help="Emails per request"),
    trace_id: Optional[str] = typer.Option(None, help="X-Trace-ID correlation id"),
):
    """Verify up to 10,000 emails, chunked."""
    collected = _collect_emails(emails, file)

    def progress(processed: int, total: int):
        print(f"Progress: {processed}/{total}", file=sys.stderr)

    _run(lambda client: client.verify_batch(
        collected, format=format, chunk_size=chunk_size, progress_callback=progress, trace_id=trace_id
    ))


@app.command("agent")
def agent(
    emails: Optional[List[str]] = typer.Argument(None, help="Emails to verify"),
    file: Optional[Path] = typer.Option(None, "--file", help="File with one email per line"),
    format: str = typer.Option("compact", "--format", "-f", help="full or compact"),
    trace_id: Optional[str] = typer.Option(None, help="X-Trace-ID correlation id"),
):
    """Verify emails in one call to the agent endpoint."""
    collected = _collect_emails(emails, file)
    _run(lambda client: client.verify_batch_agent(collected, format=format, trace_id=trace_id))


@app.command("async-batch")
def async_batch(
    emails: Optional[List[str]] = typer.Argument(None, help="Emails to verify"),
    file: Optional[Path] = typer.Option(None, "--file", help="File with one email per line"),
    format: str = typer.Option("compact", "--format", "-f", help="full or compact"),
    webhook_url: Optional[str] = typer.Option(None, help="URL notified on completion"),
    trace_id: Optional[str] = typer.Option(None, help="X-Trace-ID correlation id"),
):
    """Start an async batch job."""
    collected = _collect_emails(emails, file)
    _run(lambda client: client.verify_batch_async(
        collected, format=format, webhook_url=webhook_url, trace_id=trace_id
    ))


@job_app.command("status")
def job_status(job_id: str = typer.Argument(..., help="Batch job ID")):
    """Get batch job status."""
    _run(lambda client: client.get_batch_job(job_id))


@job_app.command("results")
def job_results(job_id: str = typer.Argument(..., help="Batch job ID")):
    """Get results of a completed batch job."""
    _run(lambda client: client.get_batch_results(job_id))


@job_app.command("cancel")
def job_cancel(job_id: str = typer.Argument(..., help="Batch job ID")):
    """Cancel a batch job."""
    _run(lambda client: client.cancel_batch_job(job_id))


@job_app.command("wait")
def job_wait(
    job_id: str = typer.Argument(..., help="Batch job ID"),
    interval: float = typer.Option(5.0, help="Seconds between polls"),
    timeout: Optional[float] = typer.Option(None, help="Give up after this many seconds"),
):
    """Poll a batch job until it completes, fails or is cancelled."""

    def show(job):
        print(
            f"{job.get('status')}: {job.get('processed', 0)}/{job.get('total_emails', '?')}",
            file=sys.stderr,
        )

    _run(lambda client: client.wait_for_batch_job(
        job_id, poll_interval=interval, timeout=timeout, on_update=show
    ))


@app.command("config")
def show_config():
    """Show the secrets file and whether an API key is configured."""
    from validkit.config import find_env_file, get_secret

    env_file = find_env_file()
    print(f"Env file: {env_file or 'Not found'}")
    print()
    print("Secrets status:")
    found = _state["api_key"] or get_secret("VALIDKIT_API_KEY")
    print(f"  VALIDKIT_API_KEY: {'✓ Found' if found else '✗ Not found'}")


if __name__ == "__main__":
    app()
