"""Shared plumbing for weak supervision components: storage locations and batched passes."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Generic, TypeVar

from loguru import logger
from pydantic import BaseModel
from tqdm import tqdm

from ..config import Settings

ConfigT = TypeVar("ConfigT", bound=BaseModel)
ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")


class ConfigurableComponent(Generic[ConfigT]):
    """
    A named, per-corpus component holding a pydantic config.

    Each component owns an output directory under
    ``settings.results_dir / component_type / dataset_name``, created on
    construction, where it writes anything it persists for that corpus.
    """

    def __init__(
        self,
        component_type: str,
        dataset_name: str,
        settings: Settings,
        config: ConfigT | None = None,
    ):
        """
        Args:
            component_type: Kind of component, used as the first path segment (e.g. 'weak_supervision')
            dataset_name: Name of the corpus the component works on
            settings: Application settings providing ``results_dir``
            config: The component's configuration model
        """
        self.component_type = component_type
        self.dataset_name = dataset_name
        self.settings = settings
        self.config = config

        self.storage_path = Path(settings.results_dir) / component_type / dataset_name
        self.storage_path.mkdir(parents=True, exist_ok=True)

        logger.info(f"{component_type} ready for corpus '{dataset_name}' (output: {self.storage_path})")

    def get_stats(self) -> dict[str, Any]:
        """Describe the component: type, corpus, output directory and active config."""
        return {
            "component_type": self.component_type,
            "dataset_name": self.dataset_name,
            "storage_path": str(self.storage_path),
            "config": self.config.model_dump() if self.config is not None else None,
        }


class BatchProcessor:
    """Mixin running a per-batch function over a sequence with a tqdm progress bar."""

    def process_in_batches(
        self,
        items: Sequence[ItemT],
        batch_size: int,
        process_func: Callable[[Sequence[ItemT]], list[ResultT]],
        desc: str = "Processing",
        show_progress: bool = True,
    ) -> list[ResultT]:
        """
        Feed ``items`` to ``process_func`` in consecutive slices of ``batch_size``.

        ``process_func`` must return exactly one result per item of its
        slice; results are concatenated in item order.

        Raises:
            ValueError: If a batch returns the wrong number of results.
        """
        collected: list[ResultT] = []
        total = len(items)
        with tqdm(total=total, desc=desc, disable=not show_progress) as progress:
            for start in range(0, total, batch_size):
                chunk = items[start : start + batch_size]
                chunk_results = process_func(chunk)
                if len(chunk_results) != len(chunk):
                    raise ValueError(
                        f"Batch function returned {len(chunk_results)} results for {len(chunk)} items"
                    )
                collected.extend(chunk_results)
                progress.update(len(chunk))
                logger.debug(f"{desc}: {min(start + batch_size, total)}/{total}")

        return collected
