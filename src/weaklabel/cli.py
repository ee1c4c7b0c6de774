from __future__ import annotations

import sys
from pathlib import Path

import click
from loguru import logger

from .config import Settings
from .core.configs import LabelModelConfig, PopulationConfig
from .core.utils.data_utils import load_documents
from .core.utils.ruleset_utils import load_labeling_functions
from .core.weak_supervision import (
    LabelingFunctionRegistry,
    WeakSupervisionError,
    WeakSupervisionService,
)


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Set the logging level (e.g., DEBUG, INFO, WARNING). Defaults to WEAKLABEL_LOG_LEVEL.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """
    WeakLabel CLI: aggregate noisy labeling function votes into
    probabilistic document labels.
    """
    settings = Settings()
    level = (log_level or settings.log_level).upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=settings.log_format)
    logger.debug(f"Log level set to {level}")
    ctx.obj = settings


def _load_rules(rules: Path) -> LabelingFunctionRegistry:
    registry = load_labeling_functions(rules)
    if len(registry) == 0:
        logger.error(f"No labeling functions could be loaded from {rules}")
        sys.exit(1)
    return registry


@cli.command()
@click.argument("input_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--rules",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON file defining the labeling functions.",
)
@click.option("--dataset-name", default="corpus", show_default=True, help="Name of the corpus.")
@click.option("--max-iterations", type=int, default=100, show_default=True, help="Maximum EM iterations.")
@click.option(
    "--convergence-threshold",
    type=float,
    default=0.001,
    show_default=True,
    help="Stop once the log-likelihood improves by less than this.",
)
@click.option(
    "--regularization",
    type=float,
    default=0.01,
    show_default=True,
    help="Pseudo-count smoothing applied to accuracy estimates.",
)
@click.option("--workers", type=int, default=1, show_default=True, help="Threads used to apply labeling functions.")
@click.pass_obj
def label(
    settings: Settings,
    input_dir: Path,
    output_dir: Path,
    rules: Path,
    dataset_name: str,
    max_iterations: int,
    convergence_threshold: float,
    regularization: float,
    workers: int,
):
    """Label every cleaned document in INPUT_DIR and write results to OUTPUT_DIR."""
    labeling_functions = _load_rules(rules)
    service = WeakSupervisionService(
        dataset_name,
        settings,
        config=LabelModelConfig(
            max_iterations=max_iterations,
            convergence_threshold=convergence_threshold,
            regularization=regularization,
        ),
        population_config=PopulationConfig(max_workers=workers),
    )

    try:
        result = service.label_directory(input_dir, labeling_functions, output_dir)
    except WeakSupervisionError as e:
        logger.error(f"Weak supervision failed: {e}")
        sys.exit(1)

    stats = result.stats
    click.echo(
        f"Labeled {stats.total_documents} documents with {stats.total_labeling_functions} "
        f"labeling functions ({result.training.state.value} after {result.training.iterations} iterations)"
    )
    click.echo(f"Coverage: {stats.coverage:.1%}  Conflict rate: {stats.conflict_rate:.1%}")
    click.echo(f"Results written to {output_dir}")


@cli.command()
@click.argument("input_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    "--rules",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON file defining the labeling functions.",
)
@click.option("--dataset-name", default="corpus", show_default=True, help="Name of the corpus.")
@click.pass_obj
def analyze(settings: Settings, input_dir: Path, rules: Path, dataset_name: str):
    """
    Print labeling function diagnostics for INPUT_DIR.

    No labels, statistics or summaries are written; only the corpus results
    directory under WEAKLABEL_RESULTS_DIR is created, empty.
    """
    labeling_functions = _load_rules(rules)
    documents = load_documents(input_dir, settings.clean_suffix)
    service = WeakSupervisionService(dataset_name, settings)

    try:
        result = service.run(documents, labeling_functions)
    except WeakSupervisionError as e:
        logger.error(f"Weak supervision failed: {e}")
        sys.exit(1)

    stats = result.stats
    click.echo(result.lf_summary.to_string())
    click.echo("")
    click.echo(f"Documents: {stats.total_documents}")
    click.echo(f"Coverage: {stats.coverage:.1%}")
    click.echo(f"Conflict rate: {stats.conflict_rate:.1%}")
    for label_name, fraction in sorted(stats.label_distribution.items()):
        click.echo(f"  {label_name}: {fraction:.1%}")
    for pair, agreement in stats.labeling_function_agreement.items():
        click.echo(f"Agreement {pair}: {agreement:.2f}")


if __name__ == "__main__":
    cli()
