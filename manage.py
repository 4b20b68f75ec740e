import asyncio
import json
import os
from pathlib import Path
import subprocess
from typing import Annotated

from rich import print
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
import typer

from taskgate.core.config import settings

app = typer.Typer()


async def clear_alembic_task():
    """
    Deletes every row of the ``alembic_version`` table so migration history
    can be restamped. A missing table is reported and skipped.

    Raises:
        typer.Exit: If the `DATABASE_URL` environment variable is not set.
    """
    print("[yellow]Clearing Alembic version history[/yellow]")
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        print("[red]Error: DATABASE_URL environment variable is not set[/red]")
        raise typer.Exit(1)

    engine = create_async_engine(database_url, echo=False)
    try:
        async with engine.connect() as connection:
            result = await connection.execute(text("DELETE FROM alembic_version"))
            await connection.commit()
            if result.rowcount > 0:
                print(
                    f"[green]Alembic version history cleared ({result.rowcount} rows)[/green]"
                )
            else:
                print("[cyan]Alembic version history is already empty[/cyan]")
    except SQLAlchemyError as e:
        print(f"[red]Error clearing Alembic version history:[/red] {str(e)}")
        if "alembic_version" in str(e):
            print("[cyan]alembic_version table does not exist; skipping clear[/cyan]")
        else:
            print(
                "[yellow]Skipping Alembic clear; leaving migration history unchanged[/yellow]"
            )
    finally:
        await engine.dispose()


async def create_tables_task() -> None:
    """Create every table straight from the model metadata (development only)."""
    from taskgate.core.db import Database

    database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    try:
        await database.init(create_tables=True)
        print("[green]Tables created[/green]")
    finally:
        await database.dispose()


async def purge_otp_task(retention_seconds: int) -> None:
    from taskgate.core.db import Database
    from taskgate.infrastructure.scheduler.jobs import cleanup_otp_challenges

    database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    try:
        expired, purged = await cleanup_otp_challenges(database, retention_seconds)
        print(f"[green]Expired {expired} and purged {purged} OTP challenge(s)[/green]")
    finally:
        await database.dispose()


@app.command()
def clearalembic():
    """
    Clears Alembic migration history.
    """
    asyncio.run(clear_alembic_task())


@app.command()
def createtables():
    """
    Creates all tables from the SQLAlchemy models without Alembic.
    """
    asyncio.run(create_tables_task())


@app.command()
def purgeotp(
    retention_seconds: Annotated[
        int, typer.Option(help="Keep challenges that expired within this window.")
    ] = settings.OTP_RATE_LIMIT_WINDOW_SECONDS,
):
    """
    Runs the OTP challenge cleanup once, outside the scheduler.
    """
    asyncio.run(purge_otp_task(retention_seconds))


@app.command()
def makemigrations(comment: Annotated[str, typer.Argument()] = "auto"):
    """
    Creates a new Alembic migration revision with an autogenerated migration script.

    Args:
        comment (str, optional): The message to use for the migration revision. Defaults to "auto".

    Raises:
        subprocess.CalledProcessError: If the Alembic command fails.
    """
    try:
        revision_command = f'alembic revision --autogenerate -m "{comment}"'
        print(f"Running Alembic migrations: {revision_command}")
        subprocess.run(revision_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Make migrations complete[/green]")


@app.command()
def showmigrations():
    """
    Shows the current Alembic migration history.
    """
    try:
        history_command = "alembic history"
        print(f"Running Alembic history: {history_command}")
        subprocess.run(history_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Show migrations complete[/green]")


@app.command()
def migrate():
    """
    Runs the Alembic database migration to upgrade the schema to the latest version.
    """
    try:
        upgrade_command = "alembic upgrade head"
        print(f"Running Alembic upgrade: {upgrade_command}")
        subprocess.run(upgrade_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Migration complete[/green]")


@app.command()
def runserver():
    try:
        server_command = (
            "uvicorn taskgate.main:app --host 127.0.0.1 --port 8000 --reload"
            if settings.DEBUG
            else "uvicorn taskgate.main:app --host 0.0.0.0 --port 8000"
        )
        print(f"Running FastAPI server: {server_command}")
        subprocess.run(server_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.command()
def runworker():
    """
    Runs the standalone job worker (RabbitMQ consumers).
    """
    try:
        worker_command = "python -m taskgate.infrastructure.messaging.main"
        print(f"Running job worker: {worker_command}")
        subprocess.run(worker_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.command()
def runscheduler():
    """
    Runs the standalone scheduler.
    """
    try:
        scheduler_command = "python -m taskgate.infrastructure.scheduler.main"
        print(f"Running scheduler: {scheduler_command}")
        subprocess.run(scheduler_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.command()
def runbroker():
    """
    Run a local RabbitMQ broker
    """
    try:
        broker_command = "docker run -it --rm --name rabbitmq -p 5672:5672 -p 15672:15672 rabbitmq:4-management"
        print(f"Running RabbitMQ broker: {broker_command}")
        subprocess.run(broker_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.command()
def generateopenapi():
    """
    Generates the OpenAPI schema for the FastAPI application and saves it to openapi.json.
    """
    from taskgate.main import app

    openapi_path = Path("openapi.json")
    with openapi_path.open("w", encoding="utf-8") as f:
        json.dump(app.openapi(), f, ensure_ascii=False, indent=2)
    print(f"[green]OpenAPI schema generated at {openapi_path.name}[/green]")


if __name__ == "__main__":
    app()
