"""
Command-line interface for PlanMatch.
Provides CLI commands for structure ingestion, similarity search and system management.
"""

import sys

import click
from loguru import logger

from .config import get_database_url, get_recent_limit, get_similar_limit, load_config
from .exceptions import PlanMatchError
from .indexing.database import DatabaseManager
from .indexing.ingestion import StructureIngestor, create_floorplan_source
from .indexing.providers import read_floorplan_file
from .logging_config import setup_logging_from_config
from .search.similarity import SimilarityEngine
from .search.similarity_config import SimilarityConfig


def _fail(action: str, error: PlanMatchError):
    logger.error(f"{action} failed: {error.message} {error.details}")
    click.echo(f"{action} failed: {error.message}", err=True)
    sys.exit(1)


def _format_ratio(value: float) -> str:
    return f"{value:.3f}" if value != float('inf') else "inf"


@click.group()
@click.option('--config', default=None, help='Configuration file path')
@click.pass_context
def cli(ctx, config):
    """PlanMatch CLI - floor plan structure indexing and similarity search."""
    ctx.ensure_object(dict)
    ctx.obj['config'] = load_config(config)
    setup_logging_from_config(ctx.obj['config'])


def _database(config) -> DatabaseManager:
    return DatabaseManager(get_database_url(config))


def _engine(config, db_manager: DatabaseManager) -> SimilarityEngine:
    return SimilarityEngine(db_manager, SimilarityConfig.from_dict(config.get('similarity')))


@cli.command()
@click.argument('project_id')
@click.option('--file', 'floorplan_file', type=click.Path(exists=True, dir_okay=False),
              help='Floor-plan JSON file to ingest instead of the configured source')
@click.pass_context
def ingest(ctx, project_id, floorplan_file):
    """Build and store structure records for a project."""
    config = ctx.obj['config']
    db_manager = None

    try:
        db_manager = _database(config)
        provider, lister = create_floorplan_source(config, db_manager)
        ingestor = StructureIngestor(db_manager, provider, lister)

        if floorplan_file:
            floorplans = read_floorplan_file(floorplan_file)
            floor_records, room_records = ingestor.ingest_project(project_id, floorplans)
            floors_saved, rooms_saved = len(floor_records), len(room_records)
        else:
            result = ingestor.ingest_project_from_source(project_id)
            floors_saved, rooms_saved = result.floors_saved, result.rooms_saved

        click.echo(f"Project {project_id}: {floors_saved} floors, {rooms_saved} rooms saved")

    except PlanMatchError as e:
        _fail("Ingestion", e)
    finally:
        if db_manager:
            db_manager.close()


@cli.command()
@click.option('--limit', type=int, default=None, help='Number of recent projects to refresh')
@click.pass_context
def refresh(ctx, limit):
    """Rebuild structure records for the most recently updated projects."""
    config = ctx.obj['config']
    db_manager = None

    try:
        db_manager = _database(config)
        provider, lister = create_floorplan_source(config, db_manager)
        ingestor = StructureIngestor(db_manager, provider, lister)

        result = ingestor.refresh_recent_projects(limit if limit is not None else get_recent_limit(config))

        click.echo(f"Refreshed {len(result.project_ids)} projects "
                   f"({len(result.skipped_project_ids)} without floor plans)")
        click.echo(f"   - Floors: {result.floors_saved}")
        click.echo(f"   - Rooms: {result.rooms_saved}")
        click.echo(f"   - Processing time: {result.processing_time:.2f}s")

    except PlanMatchError as e:
        _fail("Refresh", e)
    finally:
        if db_manager:
            db_manager.close()


@cli.command()
@click.argument('kind', type=click.Choice(['floor', 'room']))
@click.argument('record_id')
@click.pass_context
def show(ctx, kind, record_id):
    """Show the stored features of a floor or room."""
    config = ctx.obj['config']
    db_manager = None

    try:
        db_manager = _database(config)
        engine = _engine(config, db_manager)
        repository = engine.floors if kind == 'floor' else engine.rooms
        record = repository.find_by_id(record_id)

        for name, value in record.to_dict().items():
            click.echo(f"{name}: {value}")

    except PlanMatchError as e:
        _fail("Lookup", e)
    finally:
        if db_manager:
            db_manager.close()


@cli.command('similar-floors')
@click.argument('floor_id')
@click.option('--area-from', type=float, default=None, help='Lower area bound')
@click.option('--area-to', type=float, default=None, help='Upper area bound')
@click.option('--limit', type=int, default=None, help='Maximum number of results')
@click.option('--explain', is_flag=True, help='Show the score breakdown')
@click.pass_context
def similar_floors(ctx, floor_id, area_from, area_to, limit, explain):
    """Find floors of other projects similar to FLOOR_ID."""
    config = ctx.obj['config']
    db_manager = None

    try:
        db_manager = _database(config)
        engine = _engine(config, db_manager)
        reference = engine.floors.find_by_id(floor_id)
        k = limit if limit is not None else get_similar_limit(config)

        results = engine.rank_floors(reference, area_from, area_to, k)

        click.echo(f"\nFloors similar to {floor_id}: {len(results)} results\n")
        for i, result in enumerate(results, 1):
            record = result.record
            click.echo(f"{i}. Score: {result.score:.4f} | {record.id} | {record.title}")
            click.echo(f"   Area: {record.area:.2f} | Rooms: {record.room_count} | "
                       f"Aspect: {_format_ratio(record.bounding_box_aspect)} | "
                       f"Rectangularity: {record.rectangularity:.3f}")
            if explain:
                _echo_explanation(engine.explain_floor(reference, record))

    except PlanMatchError as e:
        _fail("Search", e)
    finally:
        if db_manager:
            db_manager.close()


@cli.command('similar-rooms')
@click.argument('room_id')
@click.option('--area-from', type=float, default=None, help='Lower area bound in square metres')
@click.option('--area-to', type=float, default=None, help='Upper area bound in square metres')
@click.option('--limit', type=int, default=None, help='Maximum number of results')
@click.option('--any-type', is_flag=True, help='Do not restrict results to the room type')
@click.option('--explain', is_flag=True, help='Show the score breakdown')
@click.pass_context
def similar_rooms(ctx, room_id, area_from, area_to, limit, any_type, explain):
    """Find rooms of other projects similar to ROOM_ID."""
    config = ctx.obj['config']
    db_manager = None

    try:
        db_manager = _database(config)
        engine = _engine(config, db_manager)
        scale = engine.config.room.area_override_scale
        reference = engine.rooms.find_by_id(room_id)
        k = limit if limit is not None else get_similar_limit(config)

        results = engine.rank_rooms(
            reference,
            area_from * scale if area_from is not None else None,
            area_to * scale if area_to is not None else None,
            k,
            False if any_type else None,
        )

        click.echo(f"\nRooms similar to {room_id}: {len(results)} results\n")
        for i, result in enumerate(results, 1):
            record = result.record
            click.echo(f"{i}. Score: {result.score:.4f} | {record.id} | Type: {record.type}")
            click.echo(f"   Area: {record.area / scale:.2f} m2 | "
                       f"Aspect: {_format_ratio(record.bounding_box_aspect_ratio_inverted)} | "
                       f"Rectangularity: {record.rectangularity:.3f}")
            if explain:
                _echo_explanation(engine.explain_room(reference, record))

    except PlanMatchError as e:
        _fail("Search", e)
    finally:
        if db_manager:
            db_manager.close()


def _echo_explanation(explanation):
    for term in explanation['terms']:
        click.echo(f"     {term['name']}: {term['contribution']:.4f} "
                   f"(weight {term['weight']}, {term['explanation']})")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show system statistics."""
    config = ctx.obj['config']
    db_manager = None

    try:
        db_manager = _database(config)
        stats = db_manager.get_database_stats()

        click.echo("PlanMatch Statistics")
        click.echo("=" * 30)
        click.echo(f"Floors: {stats.get('floors', 0)} ({stats.get('floor_projects', 0)} projects)")
        click.echo(f"Rooms: {stats.get('rooms', 0)} ({stats.get('room_projects', 0)} projects)")

    except PlanMatchError as e:
        _fail("Stats", e)
    finally:
        if db_manager:
            db_manager.close()


@cli.command()
@click.option('--host', default='0.0.0.0', help='Host to bind to')
@click.option('--port', default=8000, help='Port to bind to')
@click.option('--reload', is_flag=True, help='Enable auto-reload')
def serve(host, port, reload):
    """Start the PlanMatch API server."""
    import uvicorn

    click.echo(f"Starting PlanMatch API server on {host}:{port}")
    uvicorn.run(
        "planmatch.api.main:app",
        host=host,
        port=port,
        reload=reload
    )


@cli.command()
@click.pass_context
def setup(ctx):
    """Create the structure tables."""
    config = ctx.obj['config']

    try:
        db_manager = _database(config)
        db_manager.close()
        click.echo("Setup completed successfully!")

    except PlanMatchError as e:
        _fail("Setup", e)


if __name__ == '__main__':
    cli()
