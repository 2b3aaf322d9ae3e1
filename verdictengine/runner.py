"""
Batch runner - classifies many paths on a thread pool
"""

import time
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

import yaml

from .dataflow.aggregator import TaintClassifier
from .dataflow.path import PathDescriptor, load_path_documents
from .errors import MalformedPath
from .models import BatchResult, Outcome, Verdict

logger = logging.getLogger(__name__)

PathInput = Union[PathDescriptor, Mapping[str, Any]]


class BatchClassifier:
    """Runs a classifier over a batch of paths"""

    def __init__(self, classifier: TaintClassifier, max_workers: int = 4):
        self.classifier = classifier
        self.max_workers = max(1, max_workers)

    def classify_all(self, paths: Sequence[PathInput]) -> List[Verdict]:
        """Classify every path; verdicts come back in input order"""
        if self.max_workers > 1 and len(paths) > 1:
            return self._classify_parallel(paths)
        return [self._classify_one(p) for p in paths]

    def classify_files(self, files: Sequence[Path]) -> BatchResult:
        """Load descriptor files and classify everything in them"""
        start_time = time.time()
        result = BatchResult()
        documents: List[PathInput] = []

        for filepath in files:
            try:
                loaded = load_path_documents(filepath)
            except (OSError, yaml.YAMLError, MalformedPath) as e:
                logger.error(f"Failed to load paths from {filepath}: {e}")
                result.errors.append(f"{filepath}: {e}")
                continue
            documents.extend(loaded)
            result.sources.append(str(filepath))
            logger.info(f"Loaded {len(loaded)} paths from {Path(filepath).name}")

        result.verdicts = self.classify_all(documents)
        result.duration_seconds = time.time() - start_time
        logger.info(f"Classified {len(result.verdicts)} paths in {result.duration_seconds:.2f}s")
        return result

    def _classify_parallel(self, paths: Sequence[PathInput]) -> List[Verdict]:
        verdicts: List[Optional[Verdict]] = [None] * len(paths)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {
                executor.submit(self.classifier.classify, p): i for i, p in enumerate(paths)
            }

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    verdicts[index] = future.result()
                except Exception as e:
                    verdicts[index] = self._failed(paths[index], e)

        return verdicts

    def _classify_one(self, path: PathInput) -> Verdict:
        try:
            return self.classifier.classify(path)
        except Exception as e:
            return self._failed(path, e)

    def _failed(self, path: PathInput, error: Exception) -> Verdict:
        """Unexpected failure: the path stays unclassified, never Safe"""
        path_id = _path_id(path)
        logger.error(f"Error classifying {path_id}: {error}")
        return Verdict(
            path_id=path_id,
            outcome=Outcome.UNKNOWN,
            notes=(f"classification failed: {error}",),
        )


def _path_id(path: PathInput) -> str:
    if isinstance(path, PathDescriptor):
        return path.path_id
    if isinstance(path, Mapping) and path.get('path_id'):
        return str(path['path_id'])
    return "<unnamed>"
