import json
import sys
import typer
from typing import Optional
from memweave.agents import DEFAULT_AGENT_NAME
from memweave.config import settings
from memweave.errors import CompressionBusyError, StoreUnavailableError
from memweave.logging import configure_logging, logger, new_sweep_id

app = typer.Typer(no_args_is_help=True)

@app.callback()
def main():
    """
    memweave knowledge-graph consolidation CLI.
    """
    configure_logging(settings.LOG_LEVEL)


def _open_store():
    from memweave.store import SQLStore
    return SQLStore.from_url(settings.DB_URL)


def _fatal(e: Exception):
    logger.error(f"Store unavailable: {e}")
    print(f"❌ Store unavailable: {e}")
    raise typer.Exit(code=1)


def _print_result(result):
    print(
        f"  agents={result.agents_touched} edges={result.edges_created} "
        f"(+{result.edges_refreshed} refreshed) patterns={result.patterns_created} "
        f"(+{result.patterns_refreshed} refreshed)"
    )
    if result.stats_synced:
        print("  stats_synced=true")
    for diag in result.diagnostics:
        print(f"  ⚠️  [{diag.step}] {diag.kind.value}: {diag.message}")


@app.command(name="doctor")
def doctor():
    """
    Check configuration and store health.
    """
    logger.info("Running doctor check...")

    print("\n🩺 memweave Doctor\n")

    print(f"Python: {sys.version.split()[0]}")
    print(f"Sweep ID: {new_sweep_id()}")

    print("\n[Configuration]")
    print(f"DB_URL:                      {settings.DB_URL}")
    print(f"EMBEDDING_DIM:               {settings.EMBEDDING_DIM}")
    print(f"EMBEDDING_PROVIDER:          {settings.EMBEDDING_PROVIDER}")
    print(f"SWEEP thresholds (same/cross): {settings.SWEEP_SAME_TYPE_THRESHOLD} / {settings.SWEEP_CROSS_TYPE_THRESHOLD}")
    print(f"EVENT thresholds (same/cross): {settings.EVENT_SAME_TYPE_THRESHOLD} / {settings.EVENT_CROSS_TYPE_THRESHOLD}")
    print(f"PATTERN_MEMORY_THRESHOLD:    {settings.PATTERN_MEMORY_THRESHOLD}")

    if settings.EMBEDDING_PROVIDER == "openai":
        api_key_status = "✅ Set" if settings.OPENAI_API_KEY and settings.OPENAI_API_KEY.get_secret_value() else "❌ Missing"
        print(f"OPENAI_API_KEY:              {api_key_status}")

    store = _open_store()
    try:
        store.ping()
        print("\n[Store]                       ✅ Reachable")
    except StoreUnavailableError as e:
        print(f"\n[Store]                       ❌ {e} (run `memweave db init`)")

    print("\nDoctor check complete.")


db_app = typer.Typer(help="Database management commands.")
app.add_typer(db_app, name="db")

@db_app.command("init")
def init():
    """Create any missing canonical tables."""
    from memweave.db import ensure_data_dir, init_db, make_engine
    try:
        ensure_data_dir(settings.DB_URL)
        init_db(make_engine(settings.DB_URL))
        logger.info("Database initialized successfully.")
        print("✅ Database initialized.")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)

@db_app.command("validate")
def validate():
    """Check that the expected tables and columns exist."""
    from memweave.validation import validate_schema
    store = _open_store()
    try:
        store.ping()
    except StoreUnavailableError as e:
        _fatal(e)
    report = validate_schema(store)
    print("=== Schema Validation ===")
    print(f"Passed:   {len(report.passed)}")
    print(f"Failed:   {len(report.failed)}")
    print(f"Warnings: {len(report.warnings)}")
    for line in report.warnings:
        print(f"  ⚠️  {line}")
    if not report.ok:
        for line in report.failed:
            print(f"  ❌ {line}")
        raise typer.Exit(code=1)


@app.command("consolidate")
def consolidate_cmd():
    """Run one consolidation sweep."""
    from memweave.consolidation import consolidate
    try:
        result = consolidate(_open_store())
    except StoreUnavailableError as e:
        _fatal(e)
    print("✅ Consolidation complete")
    _print_result(result)


@app.command("compress")
def compress(direct: bool = typer.Option(False, "--direct", help="Skip the compressor and store raw vectors.")):
    """Mirror neural patterns into compressed_patterns (dream cycle)."""
    from memweave.compression import QuantizingCompressor, compress_patterns
    try:
        result = compress_patterns(_open_store(), None if direct else QuantizingCompressor)
    except StoreUnavailableError as e:
        _fatal(e)
    except CompressionBusyError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)
    print(f"✅ Dream cycle complete: {result.compressed} compressed, {result.direct} direct, {result.skipped} already mirrored")
    for diag in result.diagnostics:
        print(f"  ⚠️  [{diag.step}] {diag.kind.value}: {diag.message}")


@app.command("stats")
def stats():
    """Print the stats table."""
    store = _open_store()
    try:
        store.ping()
        rows = store.select_recent("stats")
    except StoreUnavailableError as e:
        _fatal(e)
    if not rows:
        print("No stats recorded yet.")
        return
    for row in sorted(rows, key=lambda r: r["key"]):
        print(f"{row['key']:<28} {row['value']}")


event_app = typer.Typer(help="Interaction events.")
app.add_typer(event_app, name="event")

@event_app.command("edit")
def event_edit(file: str = typer.Option(..., "--file", help="Path of the edited file.")):
    """Process a post-edit event."""
    from memweave.triggers import on_edit
    try:
        result = on_edit(_open_store(), file)
    except StoreUnavailableError as e:
        _fatal(e)
    print("post-edit processed")
    _print_result(result)

@event_app.command("command")
def event_command(command: str = typer.Option(..., "--command", help="The command that ran.")):
    """Process a post-command event."""
    from memweave.triggers import on_command
    try:
        result = on_command(_open_store(), command)
    except StoreUnavailableError as e:
        _fatal(e)
    print("post-command processed")
    _print_result(result)

@event_app.command("pre-command")
def event_pre_command(command: str = typer.Option(..., "--command")):
    """Accept a pre-command event (no derivation happens before a command)."""
    from memweave.triggers import on_pre_command
    on_pre_command(_open_store(), command)
    print("pre-command received")

@event_app.command("session-start")
def event_session_start(
    agent: str = typer.Option(DEFAULT_AGENT_NAME, "--agent", help="Agent name."),
    session: Optional[str] = typer.Option(None, "--session", help="Session id."),
):
    """Register the agent and record session stats."""
    from memweave.triggers import on_session_start
    try:
        result = on_session_start(_open_store(), agent, session)
    except StoreUnavailableError as e:
        _fatal(e)
    print("session-start processed")
    _print_result(result)

@event_app.command("session-end")
def event_session_end():
    """Consolidate and record session-end stats."""
    from memweave.triggers import on_session_end
    try:
        result = on_session_end(_open_store())
    except StoreUnavailableError as e:
        _fatal(e)
    print("session-end processed")
    _print_result(result)


embeddings_app = typer.Typer(help="Embedding maintenance.")
app.add_typer(embeddings_app, name="embeddings")

@embeddings_app.command("migrate")
def migrate(dry_run: bool = typer.Option(False, "--dry-run", help="Only list what would change.")):
    """Backfill missing or invalid neural pattern embeddings."""
    from memweave.embeddings.migrate import migrate_pattern_embeddings
    store = _open_store()
    try:
        store.ping()
        result = migrate_pattern_embeddings(store, dry_run=dry_run)
    except StoreUnavailableError as e:
        _fatal(e)
    if dry_run:
        print(f"Dry run - would migrate {result.total} pattern(s):")
        for pid in result.pattern_ids:
            print(f"  - {pid}")
        return
    print(f"Migration complete: {result.migrated}/{result.total} patterns")
    if result.failed:
        print(json.dumps({"failed": result.failed}))

if __name__ == "__main__":
    app()
