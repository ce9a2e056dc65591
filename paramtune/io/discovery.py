"""
Discovery of ground-truth files, their images and optional settings files in a data folder.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from paramtune.exceptions import EmptyCorpusError, TaskDiscoveryError
from utils.logger import get_logger
from .settings_store import SETTINGS_FILES

logger = get_logger(__name__)

GROUND_TRUTH_SUFFIX = ".tdat"
IMAGE_SUFFIX = ".jpeg"
LOG_FILE_NAME = "output.log"


class TuningTask(BaseModel):
    """
    Everything a tuning run reads and writes.

    Attributes:
        images_by_ground_truth (Dict): Image paths keyed by the ground-truth file annotating them.
        output_folder (Path): Folder receiving the tuned settings.
        logfile (Path): Run-scoped log file.
        settings_files (Dict): Existing settings files keyed by section; their stages are not tuned.
    """

    images_by_ground_truth: Dict[Path, List[Path]]
    output_folder: Path
    logfile: Path
    settings_files: Dict[str, Path] = Field(default_factory=dict)

    def has_settings(self, *sections: str) -> bool:
        return all(section in self.settings_files for section in sections)

    @property
    def num_images(self) -> int:
        return sum(len(paths) for paths in self.images_by_ground_truth.values())


def find_ground_truth_files(data_folder: Path) -> List[Path]:
    """All ground-truth files below the data folder, sorted."""
    return sorted(path for path in Path(data_folder).rglob(f"*{GROUND_TRUTH_SUFFIX}") if path.is_file())


def image_filenames(document: Dict[str, Any]) -> List[str]:
    """File names listed by a ground-truth document, with or without a 'value0' wrapper."""
    if isinstance(document.get("value0"), dict):
        document = document["value0"]
    filenames = document.get("filenames", [])
    if not isinstance(filenames, list):
        raise TaskDiscoveryError("Ground truth 'filenames' must be a list")
    return [str(name) for name in filenames]


def resolve_images(ground_truth_path: Path) -> List[Path]:
    """
    Image files annotated by a ground-truth file.

    Names are resolved next to the ground-truth file with the extension replaced by
    '.jpeg'; names without an existing image are skipped.
    """
    try:
        with open(ground_truth_path, "r") as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise TaskDiscoveryError(f"Unable to read ground truth '{ground_truth_path}': {e}") from e

    images = []
    for name in image_filenames(document):
        image_path = (ground_truth_path.parent / name).with_suffix(IMAGE_SUFFIX)
        if image_path.is_file():
            images.append(image_path)
        else:
            logger.warning(f"Image {image_path} listed in {ground_truth_path} not found, skipping")
    return images


def discover_task(
    data_folder: Path,
    ground_truth_files: Optional[Sequence[Path]] = None,
    run_name: Optional[str] = None,
    settings_folder: Optional[Path] = None
) -> TuningTask:
    """
    Build the tuning task of a data folder and create its output folder.

    Args:
        data_folder: Folder to search
        ground_truth_files: Restrict the task to these ground-truth files
        run_name: Suffix of the timestamped output folder
        settings_folder: Folder holding existing settings files, defaults to the data folder

    Returns:
        TuningTask

    Raises:
        EmptyCorpusError: No listed image exists; no output folder is created
    """
    data_folder = Path(data_folder)
    if not data_folder.is_dir():
        raise TaskDiscoveryError(f"Invalid input data path: {data_folder}")

    if ground_truth_files is None:
        ground_truth_files = find_ground_truth_files(data_folder)

    images_by_ground_truth = {
        Path(path): resolve_images(Path(path)) for path in sorted(ground_truth_files)
    }
    num_images = sum(len(v) for v in images_by_ground_truth.values())
    logger.info(
        f"Found {len(images_by_ground_truth)} ground-truth file(s) with "
        f"{num_images} image(s) in {data_folder}"
    )
    if num_images == 0:
        names = ", ".join(str(path) for path in images_by_ground_truth) or data_folder
        raise EmptyCorpusError(f"No annotated images found for {names}")

    folder_name = datetime.now().strftime('%Y-%m-%d_%H-%M-%S')
    if run_name:
        folder_name = f"{folder_name}_{run_name}"
    output_folder = data_folder / folder_name

    try:
        output_folder.mkdir()
    except OSError as e:
        raise TaskDiscoveryError(f"Unable to create output directory: {output_folder}") from e

    settings_folder = Path(settings_folder) if settings_folder is not None else data_folder
    settings_files = {
        section: settings_folder / filename
        for section, filename in SETTINGS_FILES.items()
        if (settings_folder / filename).is_file()
    }

    return TuningTask(
        images_by_ground_truth=images_by_ground_truth,
        output_folder=output_folder,
        logfile=output_folder / LOG_FILE_NAME,
        settings_files=settings_files
    )
