"""CLI interface for LegacyScope"""

import click
import json
from pathlib import Path
from typing import Dict, Optional, Tuple
import logging
import sys

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from legacyscope import __version__
from legacyscope.config import load_config
from legacyscope.project_analyzer import ProjectAnalyzer
from legacyscope.scoring import MigrationComplexityScorer
from legacyscope.static_analysis import (
    CopybookAnalyzer,
    ORMConfigAnalyzer,
    ProgramStructureAnalyzer,
    SourceReadError,
)


def _emit(data: Dict, output: Optional[str]):
    """Write JSON to a file or stdout"""
    text = json.dumps(data, indent=2)
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(text + "\n")
        click.echo(f"[OK] Results saved to: {output}", err=True)
    else:
        click.echo(text)


def _fail(error: SourceReadError):
    click.echo(f"[ERROR] {error}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="YAML file overriding scoring and analysis settings")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.option("--quiet", is_flag=True, help="Only log warnings and errors")
@click.pass_context
def main(ctx, config_path: Optional[str], verbose: bool, quiet: bool):
    """LegacyScope - static analysis of COBOL programs, copybooks and ORM mappings

    Derives structural metadata and a 0-100 migration difficulty score.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger().setLevel(logging.WARNING)

    try:
        ctx.obj = load_config(Path(config_path) if config_path else None)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--config")


@main.command()
@click.argument("source", type=click.Path(dir_okay=False))
@click.option("--output", type=click.Path(), help="Path to output JSON file")
@click.option("--score", "with_score", is_flag=True, help="Include the migration complexity score")
@click.pass_obj
def analyze_program(config: Dict, source: str, output: Optional[str], with_score: bool):
    """Analyze a COBOL program (.cbl/.cob)"""
    analyzer = ProgramStructureAnalyzer(assembly_tokens=config["assembly_linkage_tokens"])
    try:
        result = analyzer.analyze(source)
    except SourceReadError as e:
        _fail(e)

    data = result.to_dict()
    if with_score:
        data["migrationComplexity"] = MigrationComplexityScorer(config).score_file(result).to_dict()
    _emit(data, output)


@main.command()
@click.argument("source", type=click.Path(dir_okay=False))
@click.option("--output", type=click.Path(), help="Path to output JSON file")
def analyze_copybook(source: str, output: Optional[str]):
    """Analyze a copybook record layout (.cpy)"""
    try:
        result = CopybookAnalyzer().analyze(source)
    except SourceReadError as e:
        _fail(e)
    _emit(result.to_dict(), output)


@main.command()
@click.argument("source", type=click.Path(dir_okay=False))
@click.option("--output", type=click.Path(), help="Path to output JSON file")
def analyze_orm(source: str, output: Optional[str]):
    """Analyze an ORM mapping file (MyBatis, JPA, Hibernate)"""
    try:
        result = ORMConfigAnalyzer().analyze(source)
    except SourceReadError as e:
        _fail(e)
    _emit(result.to_dict(), output)


@main.command()
@click.argument("sources", nargs=-1, required=True, type=click.Path(dir_okay=False))
@click.option("--output", type=click.Path(), help="Path to output JSON file")
@click.pass_obj
def score(config: Dict, sources: Tuple[str, ...], output: Optional[str]):
    """Score migration difficulty for one or more COBOL programs"""
    analyzer = ProgramStructureAnalyzer(assembly_tokens=config["assembly_linkage_tokens"])
    scorer = MigrationComplexityScorer(config)

    results = []
    for source in sources:
        try:
            results.append(analyzer.analyze(source))
        except SourceReadError as e:
            _fail(e)

    project_score = scorer.score_project(results)
    click.echo(f"{project_score.difficulty} difficulty (score: {project_score.overall}/100)", err=True)
    _emit({
        "files": {r.path: scorer.score_file(r).to_dict() for r in results},
        "migrationComplexity": project_score.to_dict(),
    }, output)


@main.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--output", type=click.Path(), help="Path to output JSON file")
@click.option("--no-progress", is_flag=True, help="Disable the progress bar")
@click.pass_obj
def analyze_project(config: Dict, directory: str, output: Optional[str], no_progress: bool):
    """Analyze every program, copybook and ORM file under DIRECTORY"""
    analyzer = ProjectAnalyzer(config=config, show_progress=not no_progress)
    result = analyzer.analyze_directory(directory)

    click.echo(f"\n{'='*60}", err=True)
    click.echo(f"PROJECT ANALYSIS: {directory}", err=True)
    click.echo(f"{'='*60}", err=True)
    click.echo(f"  Programs:   {len(result.programs)}", err=True)
    click.echo(f"  Copybooks:  {len(result.copybooks)}", err=True)
    click.echo(f"  ORM files:  {len(result.orm_configs)}", err=True)
    click.echo(f"  {result.metadata['complexity_summary']}", err=True)
    if result.failures:
        click.echo(f"  [WARNING] {len(result.failures)} file(s) could not be read", err=True)
    click.echo(f"{'='*60}", err=True)

    _emit(result.to_dict(), output)


if __name__ == "__main__":
    main()
