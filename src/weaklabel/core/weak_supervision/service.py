"""
Weak supervision service.

Ties the pipeline together: labeling functions are applied to a corpus
to build a vote matrix, the label model is trained to convergence, and
weak label records plus diagnostics are assembled and optionally written
to disk.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

import pandas as pd
from loguru import logger

from ...config import Settings
from ...models import Document, WeakLabel, WeakSupervisionStats
from ..base import ConfigurableComponent
from ..configs import LabelModelConfig, OutputConfig, PopulationConfig
from ..utils.data_utils import load_documents, write_json, write_jsonl
from .analysis import VoteAnalyzer
from .assembler import OutputAssembler
from .errors import DegenerateCorpusError
from .labeling_functions import LabelingFunction, LabelingFunctionRegistry
from .population import PopulationReport, VoteMatrixBuilder
from .trainer import ConvergenceController, TrainingResult
from .vote_matrix import VoteMatrix


@dataclass
class WeakSupervisionResult:
    """Everything produced by one weak supervision run."""

    records: list[WeakLabel]
    stats: WeakSupervisionStats
    training: TrainingResult
    population: PopulationReport
    matrix: VoteMatrix
    lf_summary: pd.DataFrame


class WeakSupervisionService(ConfigurableComponent[LabelModelConfig]):
    """
    Service for aggregating labeling function votes into probabilistic labels.

    Args:
        dataset_name (str): Name of the dataset.
        settings (Settings): Application settings.
        config (LabelModelConfig | None): Label model training configuration.
        population_config (PopulationConfig | None): Population pass configuration.
        output_config (OutputConfig | None): Record and diagnostics configuration.

    Example:
        >>> service = WeakSupervisionService("news", settings)
        >>> result = service.run(documents, [fear_lf, loaded_language_lf])
        >>> result.stats.coverage
        0.72
    """

    def __init__(
        self,
        dataset_name: str,
        settings: Settings,
        config: LabelModelConfig | None = None,
        population_config: PopulationConfig | None = None,
        output_config: OutputConfig | None = None,
    ) -> None:
        super().__init__(
            component_type="weak_supervision",
            dataset_name=dataset_name,
            settings=settings,
            config=config or LabelModelConfig(),
        )
        self.population_config = population_config or PopulationConfig()
        self.output_config = output_config or OutputConfig()
        self._controller: ConvergenceController | None = None
        self._cancel_requested = False

    def cancel(self) -> None:
        """
        Stop the current or next run at its next training iteration boundary.

        A request made during the population pass is applied once training
        starts; the run ends EXHAUSTED with stop reason ``cancelled``.
        """
        self._cancel_requested = True
        if self._controller is not None:
            self._controller.cancel()

    def run(
        self,
        documents: Sequence[Document],
        labeling_functions: LabelingFunctionRegistry | Iterable[LabelingFunction],
    ) -> WeakSupervisionResult:
        """
        Run the full pipeline in memory.

        Raises:
            DegenerateCorpusError: If there are no documents or no labeling functions.
        """
        if not isinstance(labeling_functions, LabelingFunctionRegistry):
            labeling_functions = LabelingFunctionRegistry(labeling_functions)
        if not documents:
            raise DegenerateCorpusError("No documents supplied")
        if len(labeling_functions) == 0:
            raise DegenerateCorpusError("No labeling functions supplied")

        self._controller = ConvergenceController(self.config)
        if self._cancel_requested:
            self._controller.cancel()
        try:
            return self._run(documents, labeling_functions, self._controller)
        finally:
            self._cancel_requested = False

    def _run(
        self,
        documents: Sequence[Document],
        labeling_functions: LabelingFunctionRegistry,
        controller: ConvergenceController,
    ) -> WeakSupervisionResult:
        logger.info(
            f"Starting weak supervision for {len(documents)} documents "
            f"with {len(labeling_functions)} labeling functions"
        )

        matrix, population = VoteMatrixBuilder(labeling_functions, self.population_config).build(documents)

        training = controller.train(matrix)

        assembler = OutputAssembler(
            documents, matrix, training, self.output_config, population_report=population
        )
        records = assembler.assemble()
        stats = assembler.statistics()
        lf_summary = VoteAnalyzer(matrix).labeling_function_summary(
            training.parameters, population.failure_counts()
        )

        logger.info(
            f"Weak supervision complete: {len(records)} documents labeled, "
            f"coverage {stats.coverage * 100:.1f}%, conflicts {stats.conflict_rate * 100:.1f}%"
        )
        return WeakSupervisionResult(
            records=records,
            stats=stats,
            training=training,
            population=population,
            matrix=matrix,
            lf_summary=lf_summary,
        )

    def label_directory(
        self,
        input_dir: str | Path,
        labeling_functions: LabelingFunctionRegistry | Iterable[LabelingFunction],
        output_dir: str | Path | None = None,
    ) -> WeakSupervisionResult:
        """
        Label every cleaned document in ``input_dir`` and write the results.

        Output goes to ``output_dir``, or to the component's storage path
        when none is given.
        """
        documents = load_documents(input_dir, self.settings.clean_suffix)
        result = self.run(documents, labeling_functions)
        self.save_results(result, output_dir or self.storage_path)
        return result

    def save_results(self, result: WeakSupervisionResult, output_dir: str | Path) -> dict[str, Path]:
        """Write weak labels (JSONL), statistics (JSON) and the function summary (CSV)."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        paths = {
            "weak_labels": output_dir / self.settings.weak_labels_filename,
            "stats": output_dir / self.settings.stats_filename,
        }
        count = write_jsonl(result.records, paths["weak_labels"])
        logger.info(f"Saved {count} weak labels to {paths['weak_labels']}")

        write_json(result.stats, paths["stats"])
        logger.info(f"Saved weak supervision statistics to {paths['stats']}")

        if self.output_config.write_lf_summary:
            paths["lf_summary"] = output_dir / self.settings.lf_summary_filename
            result.lf_summary.to_csv(paths["lf_summary"])
            logger.info(f"Saved labeling function summary to {paths['lf_summary']}")

        return paths
