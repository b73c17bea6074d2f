# cli.py
import click
import logging
from database import get_nosql_adapter, init_db
from files_manager.adapters.queue import QueueFactory
from files_manager.settings import get_settings
from thumbnail_workers.cli import requeue_stale, worker

# Configure logging
logger = logging.getLogger(__name__)


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level):
    """CLI commands for the Files Manager API and thumbnail workers"""
    settings = get_settings()
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


cli.add_command(worker)
cli.add_command(requeue_stale)


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address")
@click.option("--port", type=int, default=8000, help="Bind port")
@click.option("--reload/--no-reload", default=False, help="Reload on code changes")
def api(host, port, reload):
    """Start the Files Manager API"""
    import uvicorn

    settings = get_settings()
    print(f"Starting API in {settings.deployment_mode} mode on {host}:{port}...")
    uvicorn.run("files_manager.main:create_app", host=host, port=port, reload=reload, factory=True)


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  Deployment Mode: {settings.deployment_mode}")
    print(f"  Database Backend: {settings.database_backend}")
    print(f"  SQLite Path: {settings.db_path}")
    print(f"  MongoDB URI: {'set' if settings.mongodb_uri else 'not set'}")
    print(f"  Storage Dir: {settings.storage_dir}")
    print(f"  AWS Region: {settings.aws_region}")
    print(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    print(f"  S3 Bucket: {settings.s3_bucket_name}")
    print(f"  SQS Queue URL: {settings.sqs_queue_url}")
    print(f"  SQS Dead-letter Queue URL: {settings.sqs_dead_letter_queue_url}")
    print(f"  Queue Max Depth: {settings.queue_max_depth}")
    print(f"  Session TTL: {settings.session_ttl_seconds}s")
    print(f"  Thumbnail Widths: {', '.join(str(w) for w in settings.thumbnail_widths)}")
    print(f"  Thumbnail Job Timeout: {settings.thumbnail_job_timeout_seconds}s")
    print(f"  Thumbnail Max Attempts: {settings.thumbnail_max_attempts}")


@cli.command()
def queue_stats():
    """Show thumbnail queue depth"""
    settings = get_settings()
    queue = QueueFactory.get_queue_handler(settings)
    depth = queue.depth()

    print(f"Queue ({type(queue).__name__}):")
    print(f"  Pending: {depth['pending']}/{depth['capacity']}")
    print(f"  Processing: {depth['processing']}")
    print(f"  Dead letter: {depth['dead_letter']}")


@cli.command(name="init-db")
def init_db_command():
    """Create collections and indexes"""
    settings = get_settings()
    adapter = get_nosql_adapter(settings.database_backend, settings.db_path, settings.mongodb_uri)
    init_db(adapter)
    print(f"Database initialized ({settings.database_backend})")


if __name__ == "__main__":
    cli()
