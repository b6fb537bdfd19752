"""CLI interface for legacyxref"""

import json
import logging
from pathlib import Path
from typing import Optional

import click

from legacyxref import __version__
from legacyxref.config import ConfigError, load_config
from legacyxref.context import AnalysisContext
from legacyxref.jcl import JclParser
from legacyxref.project_analyzer import ProjectAnalyzer, generate_summary_report
from legacyxref.static_analysis import ProgramAnalyzer
from legacyxref.xref import generate_xref_report

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_path: Optional[str]):
    try:
        return load_config(config_path)
    except ConfigError as e:
        click.echo(f"[ERROR] {e}")
        raise click.ClickException("invalid configuration") from e


@click.group()
@click.version_option(version=__version__)
def main():
    """legacyxref - structural extraction, cross-references and migration
    complexity for COBOL and JCL sources
    """
    pass


@main.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False))
@click.option("--output", type=click.Path(), help="Write the full analysis as JSON")
@click.option("--config", "config_path", type=click.Path(), help="YAML configuration overrides")
@click.option("--verbose", is_flag=True, default=False, help="Debug logging")
def analyze(root: str, output: Optional[str], config_path: Optional[str], verbose: bool):
    """Analyze every program, copybook and JCL member under ROOT"""
    _setup_logging(verbose)
    config = _load_config(config_path)

    click.echo(f"Analyzing {root}...")
    analysis = ProjectAnalyzer(config).analyze_directory(root)

    if not analysis.programs and not analysis.jcl:
        click.echo(f"[ERROR] No COBOL or JCL sources found under {root}")
        raise click.ClickException("nothing to analyze")

    click.echo(generate_summary_report(analysis))

    if output:
        path = analysis.save(output)
        click.echo(f"\n[OK] Analysis saved to: {path}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_path", type=click.Path(), help="YAML configuration overrides")
def program(file: str, config_path: Optional[str]):
    """Extract facts from one COBOL program and print them as JSON"""
    _setup_logging(False)
    context = AnalysisContext(config=_load_config(config_path))
    facts = ProgramAnalyzer().analyze_file(file, context)
    click.echo(json.dumps(facts.to_dict(), indent=2))


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_path", type=click.Path(), help="YAML configuration overrides")
def jcl(file: str, config_path: Optional[str]):
    """Extract facts from one JCL member and print them as JSON"""
    _setup_logging(False)
    context = AnalysisContext(config=_load_config(config_path))
    facts = JclParser().parse_file(file, context)
    click.echo(json.dumps(facts.to_dict(), indent=2))


@main.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False))
@click.option("--output", type=click.Path(), help="Write the cross-reference graph as JSON")
@click.option("--config", "config_path", type=click.Path(), help="YAML configuration overrides")
def xref(root: str, output: Optional[str], config_path: Optional[str]):
    """Print the cross-reference summary for ROOT"""
    _setup_logging(False)
    config = _load_config(config_path)
    analysis = ProjectAnalyzer(config, show_progress=False).analyze_directory(root)
    click.echo(generate_xref_report(analysis.xref))

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(analysis.xref.to_dict(), f, indent=2)
        click.echo(f"\n[OK] Cross references saved to: {output_path}")


if __name__ == "__main__":
    main()
