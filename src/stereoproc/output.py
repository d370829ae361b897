"""Output writers and extension-based dispatch for pipeline artifacts."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import cv2
import numpy as np
import open3d as o3d

from .errors import (
    DirectoryCreateError,
    EncodeFailedError,
    MissingColorReferenceError,
    UnsupportedFormatError,
)
from .reprojection import MISSING_DEPTH
from .templating import StringTemplate

logger = logging.getLogger(__name__)

# Extension tokens are matched case-sensitively
STRUCTURED_EXTENSIONS = {"xml", "yml", "yaml"}
BINARY_EXTENSIONS = {"bin"}
POINT_CLOUD_EXTENSIONS = {"pcd"}


class ArtifactKind(str, Enum):
    """Kind of data produced by a pipeline stage."""

    IMAGE = "image"
    MATRIX = "matrix"
    POINTS = "points"


@dataclass(frozen=True)
class Artifact:
    """A typed artifact handed to the output sink.

    Attributes:
        kind: Artifact kind, decides which serializers are allowed.
        data: Image (H, W[, C]), numeric matrix (H, W[, C]) or per-pixel
            points (H, W, 3).
        storage_key: Top-level node name in structured matrix containers.
        num_disparities: Disparity level count, used to scale disparity
            matrices when they are written as images.
    """

    kind: ArtifactKind
    data: np.ndarray
    storage_key: str = "image"
    num_disparities: int | None = None

    @classmethod
    def image(cls, data: np.ndarray) -> "Artifact":
        return cls(ArtifactKind.IMAGE, data, storage_key="image")

    @classmethod
    def disparity(cls, data: np.ndarray, num_disparities: int | None = None) -> "Artifact":
        return cls(
            ArtifactKind.MATRIX,
            data,
            storage_key="disparity",
            num_disparities=num_disparities,
        )

    @classmethod
    def points(cls, data: np.ndarray) -> "Artifact":
        return cls(ArtifactKind.POINTS, data, storage_key="points")


def output_extension(path: str | Path) -> str:
    """Return the final extension token of a path without the dot ("" if none).

    Only the last suffix counts, so ``disp.v2.yml`` dispatches as ``yml`` and
    ``pts.0001.pcd`` as ``pcd`` rather than being rejected for their
    multi-part suffix.
    """
    return Path(path).suffix[1:]


def ensure_parent_directory(path: str | Path) -> None:
    """Create all missing ancestor directories of ``path``.

    Raises:
        DirectoryCreateError: If a directory cannot be created.
    """
    parent = Path(path).absolute().parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreateError(f"Failed to create directory for '{path}': {e}") from e


def save_image(path: str | Path, image: np.ndarray) -> None:
    """Encode an image with the encoder selected by the path's extension.

    Raises:
        EncodeFailedError: If OpenCV cannot encode or write the image.
    """
    try:
        ok = cv2.imwrite(str(path), image)
    except cv2.error as e:
        raise EncodeFailedError(f"Failed to save image {path}: {e}") from e
    if not ok:
        raise EncodeFailedError(f"Failed to write output image '{path}'")


def disparity_to_image(disparity: np.ndarray, num_disparities: int | None = None) -> np.ndarray:
    """Convert a disparity matrix into an encodable 8-bit visualization.

    8-bit and 16-bit integer matrices are returned unchanged. Other matrices
    are scaled so that ``num_disparities`` maps to 255 (the matrix maximum is
    used when the level count is unknown); invalid values become 0.

    Args:
        disparity: Disparity matrix (H, W).
        num_disparities: Number of disparity levels of the matcher.

    Returns:
        Image suitable for ``cv2.imwrite``.
    """
    if disparity.dtype in (np.uint8, np.uint16):
        return disparity

    disp = disparity.astype(np.float32)
    invalid = ~np.isfinite(disp) | (disp < 0)
    disp[invalid] = 0.0

    max_value = float(num_disparities) if num_disparities else float(disp.max())
    if max_value <= 0:
        return np.zeros(disp.shape, dtype=np.uint8)

    return np.clip(disp * (255.0 / max_value), 0, 255).astype(np.uint8)


def save_matrix_storage(path: str | Path, key: str, matrix: np.ndarray) -> None:
    """Write a matrix to an OpenCV XML/YAML file storage under ``key``.

    Raises:
        EncodeFailedError: If the storage cannot be opened or written.
    """
    storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    if not storage.isOpened():
        raise EncodeFailedError(f"Failed to open file storage '{path}' for writing")
    try:
        storage.write(key, matrix)
    except cv2.error as e:
        raise EncodeFailedError(f"Failed to save matrix to file {path}: {e}") from e
    finally:
        storage.release()


def load_matrix_storage(path: str | Path, key: str) -> np.ndarray:
    """Read a matrix written by save_matrix_storage.

    Raises:
        FileNotFoundError: If the storage cannot be opened.
        KeyError: If ``key`` is not present.
    """
    storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    try:
        if not storage.isOpened():
            raise FileNotFoundError(f"Could not open file storage: {path}")
        node = storage.getNode(key)
        if node.empty():
            raise KeyError(f"Node '{key}' not found in {path}")
        return node.mat()
    finally:
        storage.release()


def save_matrix_binary(path: str | Path, matrix: np.ndarray) -> None:
    """Write a matrix as a raw binary dump in NumPy ``.npy`` layout.

    The file holds the shape and dtype header followed by the row-major
    payload. It is written through an open handle so the path keeps its
    extension.

    Raises:
        EncodeFailedError: If the matrix is not 2-D/3-D or the file cannot be written.
    """
    if matrix.ndim not in (2, 3):
        raise EncodeFailedError(
            f"Failed to save binary file {path}: expected 2-D or 3-D matrix, "
            f"got shape {matrix.shape}"
        )

    try:
        with open(path, "wb") as f:
            np.save(f, np.ascontiguousarray(matrix))
    except OSError as e:
        raise EncodeFailedError(f"Failed to save binary file {path}: {e}") from e


def load_matrix_binary(path: str | Path) -> np.ndarray:
    """Read a matrix written by save_matrix_binary.

    Raises:
        ValueError: If the file is not a binary matrix dump.
    """
    return np.load(path, allow_pickle=False)


def _colors_from_image(image: np.ndarray) -> np.ndarray:
    """Convert a BGR or grayscale image to per-pixel RGB colors in [0, 1]."""
    if image.ndim == 2:
        image = np.repeat(image[:, :, None], 3, axis=2)
    elif image.shape[2] == 4:
        image = image[:, :, :3]
    elif image.shape[2] == 1:
        image = np.repeat(image, 3, axis=2)

    colors = image[:, :, ::-1].reshape(-1, 3).astype(np.float64)
    if image.dtype == np.uint8:
        colors /= 255.0
    elif image.dtype == np.uint16:
        colors /= 65535.0
    return np.clip(colors, 0.0, 1.0)


def save_point_cloud_pcd(
    path: str | Path,
    points: np.ndarray,
    color_image: np.ndarray,
    binary: bool = True,
) -> int:
    """Write per-pixel 3-D points with colors from a reference image to a PCD file.

    Pixels with non-finite coordinates or the reprojection's missing-depth
    marker are skipped.

    Args:
        path: Output path (.pcd).
        points: Reprojected points (H, W, 3).
        color_image: Reference image (H, W[, C]) sampled at the same pixels.
        binary: Write binary PCD (ASCII otherwise).

    Returns:
        Number of points written.

    Raises:
        EncodeFailedError: On shape mismatch or write failure.
    """
    if points.ndim != 3 or points.shape[2] != 3:
        raise EncodeFailedError(
            f"Failed to save PCD file {path}: expected (H, W, 3) points, got {points.shape}"
        )
    if color_image.shape[:2] != points.shape[:2]:
        raise EncodeFailedError(
            f"Failed to save PCD file {path}: color image size {color_image.shape[:2]} "
            f"does not match points size {points.shape[:2]}"
        )

    xyz = points.reshape(-1, 3).astype(np.float64)
    colors = _colors_from_image(color_image)

    valid = np.isfinite(xyz).all(axis=1) & (np.abs(xyz[:, 2]) < MISSING_DEPTH)

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(xyz[valid])
    pcd.colors = o3d.utility.Vector3dVector(colors[valid])

    if not o3d.io.write_point_cloud(str(path), pcd, write_ascii=not binary):
        raise EncodeFailedError(f"Failed to save PCD file {path}")

    return int(valid.sum())


class OutputSink:
    """Renders output path templates and writes artifacts by extension.

    Dispatch on the rendered path's extension:

    * ``xml``, ``yml``, ``yaml``: OpenCV file storage under the artifact's key.
    * ``bin``: raw binary matrix dump.
    * ``pcd``: point cloud (point artifacts only, needs a color reference).
    * anything else: image encoder (not allowed for point artifacts).

    Every failure raises a SinkError; nothing is retried or cleaned up.
    """

    def __init__(self):
        self._templates: dict[str, StringTemplate] = {}
        self.files_written = 0

    def render(self, path_template: str, variables: dict[str, object]) -> Path:
        """Render an output path template (compiled templates are cached)."""
        template = self._templates.get(path_template)
        if template is None:
            template = StringTemplate(path_template)
            self._templates[path_template] = template
        return Path(template.render(variables))

    def write(
        self,
        path_template: str,
        variables: dict[str, object],
        artifact: Artifact,
        color_reference: np.ndarray | None = None,
    ) -> Path:
        """Render the path and write the artifact.

        Args:
            path_template: Output filename template.
            variables: Template variables.
            artifact: Artifact to write.
            color_reference: Image sampled for point colors (``pcd`` only).

        Returns:
            Path of the written file.

        Raises:
            UnsupportedFormatError: If the extension cannot hold the artifact.
            MissingColorReferenceError: If ``pcd`` is requested without colors.
            DirectoryCreateError: If the parent directory cannot be created.
            EncodeFailedError: If writing fails.
        """
        path = self.render(path_template, variables)
        ext = output_extension(path)

        # Validate before touching the filesystem
        if ext in POINT_CLOUD_EXTENSIONS:
            if artifact.kind is not ArtifactKind.POINTS:
                raise UnsupportedFormatError(
                    f"Point cloud format '{ext}' requires reprojected points: {path}"
                )
            if color_reference is None:
                raise MissingColorReferenceError(
                    f"Point cloud output {path} requires a color reference image"
                )
        elif (
            ext not in STRUCTURED_EXTENSIONS
            and ext not in BINARY_EXTENSIONS
            and artifact.kind is ArtifactKind.POINTS
        ):
            raise UnsupportedFormatError(
                f"Invalid output format for reprojection: '{ext}' ({path})"
            )

        ensure_parent_directory(path)

        if ext in STRUCTURED_EXTENSIONS:
            save_matrix_storage(path, artifact.storage_key, artifact.data)
        elif ext in BINARY_EXTENSIONS:
            save_matrix_binary(path, artifact.data)
        elif ext in POINT_CLOUD_EXTENSIONS:
            count = save_point_cloud_pcd(path, artifact.data, color_reference)
            logger.debug("Wrote %d points to %s", count, path)
        elif artifact.kind is ArtifactKind.MATRIX:
            save_image(path, disparity_to_image(artifact.data, artifact.num_disparities))
        else:
            save_image(path, artifact.data)

        self.files_written += 1
        logger.debug("Wrote %s", path)
        return path


__all__ = [
    "Artifact",
    "ArtifactKind",
    "OutputSink",
    "disparity_to_image",
    "ensure_parent_directory",
    "load_matrix_binary",
    "load_matrix_storage",
    "output_extension",
    "save_image",
    "save_matrix_binary",
    "save_matrix_storage",
    "save_point_cloud_pcd",
]
