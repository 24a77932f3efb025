"""Writing merged projects to disk."""

import json
import logging
import shutil
from pathlib import Path
from typing import List, Optional

from ..core.config import OutputSettings
from ..core.exceptions import ConfigurationError, LabzError
from ..core.types import MergeResult

logger = logging.getLogger(__name__)


class ProjectMaterializer:
    """
    Writes a successful MergeResult into an output directory.

    Copies the shared project skeleton first (when configured), then the
    merged files verbatim, then applies the package.json patch and writes
    the manifest.
    """

    def __init__(self, settings: Optional[OutputSettings] = None, skeleton_dir: Optional[str] = None):
        self.settings = settings or OutputSettings()
        self.skeleton_dir = skeleton_dir or self.settings.skeleton_dir

    def write(self, output_dir: str, result: MergeResult) -> List[Path]:
        """
        Materialize a project.

        Args:
            output_dir: Target directory, created if missing
            result: A successful merge result

        Returns:
            Paths written, relative to the output directory

        Raises:
            LabzError: If the result was refused or the target is not empty
            ConfigurationError: If the skeleton directory does not exist
        """
        result.raise_for_refusal()

        target = Path(output_dir)
        if target.exists() and any(target.iterdir()) and not self.settings.overwrite:
            raise LabzError(f"Output directory is not empty: {target}", details={"path": str(target)})
        target.mkdir(parents=True, exist_ok=True)

        if self.skeleton_dir:
            skeleton = Path(self.skeleton_dir)
            if not skeleton.is_dir():
                raise ConfigurationError(
                    f"Skeleton directory not found: {skeleton}", config_key="LABZ_SKELETON_DIR"
                )
            shutil.copytree(skeleton, target, dirs_exist_ok=True)
            logger.debug("Copied skeleton %s", skeleton)

        written: List[Path] = []
        for relative, content in result.files.items():
            path = target / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            written.append(Path(relative))

        if result.package_patch:
            self._patch_package(target / "package.json", result.package_patch)
            if Path("package.json") not in written:
                written.append(Path("package.json"))

        if result.manifest is not None:
            manifest_path = target / self.settings.manifest_name
            manifest_path.write_text(json.dumps(result.manifest.to_dict(), indent=2) + "\n", encoding="utf-8")
            written.append(Path(self.settings.manifest_name))

        logger.info("Wrote %d file(s) to %s", len(written), target)
        return written

    @staticmethod
    def _patch_package(path: Path, patch: dict) -> None:
        package = {}
        if path.is_file():
            try:
                package = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise LabzError(f"Cannot patch invalid package.json: {path}", cause=e)
        package.update(patch)
        path.write_text(json.dumps(package, indent=2) + "\n", encoding="utf-8")
