"""
Annotated image corpus: images grouped by the ground-truth file annotating them.

Images are decoded once and ground-truth files parsed once; both stay read-only
for the rest of the tuning run.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence

import cv2
import numpy as np

from paramtune.exceptions import CorpusLoadError
from paramtune.stages.protocols import EvaluatorFactory, GroundTruthEvaluator
from utils.logger import get_logger

logger = get_logger(__name__)

ImageReader = Callable[[Path], np.ndarray]


def read_grayscale(path: Path) -> np.ndarray:
    """Decode an image file as a single channel 8 bit array."""
    image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise CorpusLoadError(f"Unable to read image: {path}")
    return image


def load_ground_truth(path: Path) -> Dict[str, Any]:
    """Parse a ground-truth file (JSON)."""
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CorpusLoadError(f"Unable to read ground truth '{path}': {e}") from e


@dataclass
class GroundTruthGroup:
    """The images annotated by one ground-truth file, with that file's evaluator."""
    ground_truth_path: Path
    evaluator: GroundTruthEvaluator
    image_paths: List[Path] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.image_paths)


class Corpus:
    """
    Collection of (image, ground truth) items, partitioned by ground-truth file.
    """

    def __init__(self, groups: Sequence[GroundTruthGroup], images: Mapping[Path, np.ndarray]):
        self._groups = list(groups)
        self._images = dict(images)

        for group in self._groups:
            for path in group.image_paths:
                if path not in self._images:
                    raise KeyError(f"Image '{path}' of '{group.ground_truth_path}' was not loaded")

    @classmethod
    def load(
        cls,
        images_by_ground_truth: Mapping[Path, Sequence[Path]],
        evaluator_factory: EvaluatorFactory,
        image_reader: ImageReader = read_grayscale
    ) -> "Corpus":
        """
        Read every ground-truth file and image once.

        Args:
            images_by_ground_truth: Image paths keyed by the ground-truth file annotating them
            evaluator_factory: Builds an evaluator from a parsed ground-truth document
            image_reader: Decodes an image file

        Returns:
            Loaded corpus, groups in sorted ground-truth order
        """
        groups = []
        images: Dict[Path, np.ndarray] = {}

        for ground_truth_path in sorted(images_by_ground_truth):
            image_paths = list(images_by_ground_truth[ground_truth_path])
            document = load_ground_truth(ground_truth_path)

            for image_path in image_paths:
                if image_path in images:
                    continue
                image = image_reader(image_path)
                # Shared by every evaluation and worker, nobody may write to it
                image.setflags(write=False)
                images[image_path] = image

            groups.append(GroundTruthGroup(
                ground_truth_path=Path(ground_truth_path),
                evaluator=evaluator_factory(document),
                image_paths=image_paths
            ))
            logger.info(f"Loaded ground truth {ground_truth_path} with {len(image_paths)} image(s)")

        return cls(groups, images)

    @property
    def groups(self) -> List[GroundTruthGroup]:
        return list(self._groups)

    def image(self, path: Path) -> np.ndarray:
        return self._images[path]

    def image_paths(self) -> List[Path]:
        return [path for group in self._groups for path in group.image_paths]

    def is_empty(self) -> bool:
        return len(self) == 0

    def __len__(self) -> int:
        return sum(len(group) for group in self._groups)
