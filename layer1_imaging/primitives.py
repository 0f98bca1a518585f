"""
Layer 1 — Imaging
Component: Image primitives
Responsibility: Pure, stateless OpenCV transforms shared by the locators and the liveness checks

None of these functions mutate their input; every result is a new array.
"""
import logging
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .geometry import Rectangle, RotatedRectangle

logger = logging.getLogger(__name__)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert BGR / BGRA / gray input to a single channel image."""
    if image.ndim == 2:
        return image.copy()
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0].copy()
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Convert gray / BGRA input to three channel BGR."""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image.copy()


def resize(image: np.ndarray,
           max_width: int = 0,
           max_height: int = 0,
           min_width: int = 0,
           min_height: int = 0) -> np.ndarray:
    """
    Resize preserving aspect ratio.

    Constraints are applied in order (max width, max height, min width,
    min height); a value of 0 disables that constraint. When the min and
    max constraints conflict the min constraint is applied last and wins.

    Args:
        image: Input image
        max_width / max_height: Upper bounds for the output size
        min_width / min_height: Lower bounds for the output size

    Returns:
        numpy.ndarray: Resized image
    """
    height, width = image.shape[:2]
    new_width, new_height = float(width), float(height)

    if max_width > 0 and new_width > max_width:
        ratio = max_width / new_width
        new_width, new_height = new_width * ratio, new_height * ratio
    if max_height > 0 and new_height > max_height:
        ratio = max_height / new_height
        new_width, new_height = new_width * ratio, new_height * ratio
    if min_width > 0 and new_width < min_width:
        ratio = min_width / new_width
        new_width, new_height = new_width * ratio, new_height * ratio
    if min_height > 0 and new_height < min_height:
        ratio = min_height / new_height
        new_width, new_height = new_width * ratio, new_height * ratio

    size = (max(1, int(round(new_width))), max(1, int(round(new_height))))
    if size == (width, height):
        return image.copy()
    return cv2.resize(image, size)


def resize_to_height(image: np.ndarray, height: int) -> Tuple[np.ndarray, float]:
    """
    Resize so the output is ``height`` pixels tall.

    Returns:
        tuple: (resized image, ratio) where ratio = original height / new height
    """
    ratio = image.shape[0] / float(height)
    width = max(1, int(image.shape[1] / ratio))
    return cv2.resize(image, (width, height)), ratio


def translate(image: np.ndarray, dx: float, dy: float,
              size: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """Shift the image by (dx, dy) into a canvas of ``size`` (width, height)."""
    height, width = image.shape[:2]
    size = size or (width, height)
    matrix = np.float32([[1, 0, dx], [0, 1, dy]])
    return cv2.warpAffine(image, matrix, size, flags=cv2.INTER_LINEAR,
                          borderMode=cv2.BORDER_REPLICATE)


def rotate(image: np.ndarray, angle: float,
           center: Optional[Tuple[float, float]] = None,
           size: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """Rotate by ``angle`` degrees (counter-clockwise on screen) about ``center``."""
    height, width = image.shape[:2]
    center = center or (width / 2.0, height / 2.0)
    size = size or (width, height)
    matrix = cv2.getRotationMatrix2D(center, angle, 1.0)
    return cv2.warpAffine(image, matrix, size, flags=cv2.INTER_CUBIC,
                          borderMode=cv2.BORDER_REPLICATE)


def erode(image: np.ndarray, iterations: int = 1, kernel: Optional[np.ndarray] = None) -> np.ndarray:
    return cv2.erode(image, kernel, iterations=iterations)


def dilate(image: np.ndarray, iterations: int = 1, kernel: Optional[np.ndarray] = None) -> np.ndarray:
    return cv2.dilate(image, kernel, iterations=iterations)


def close(image: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Morphological close (dilate then erode)."""
    return cv2.morphologyEx(image, cv2.MORPH_CLOSE, kernel)


def black_hat(image: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Dark details smaller than ``kernel`` on a light background."""
    return cv2.morphologyEx(image, cv2.MORPH_BLACKHAT, kernel)


def rect_kernel(width: int, height: int) -> np.ndarray:
    return cv2.getStructuringElement(cv2.MORPH_RECT, (width, height))


def stretch_to_full_range(image: np.ndarray) -> np.ndarray:
    """
    Rescale to 0-255 using the observed min / max.

    Args:
        image: Any numeric image (e.g. a float gradient)

    Returns:
        numpy.ndarray: uint8 image; all zeros for a constant input
    """
    data = np.abs(image.astype(np.float32))
    low, high = float(data.min()), float(data.max())
    if high - low <= 0:
        return np.zeros(data.shape, dtype=np.uint8)
    scaled = (data - low) * (255.0 / (high - low))
    return np.clip(np.round(scaled), 0, 255).astype(np.uint8)


def external_contours(binary: np.ndarray) -> List[np.ndarray]:
    contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    return list(contours)


def largest_contour(contours: Sequence[np.ndarray]) -> Optional[np.ndarray]:
    """
    Select the contour with the longest perimeter.

    Perimeter rather than area favours elongated shapes such as text strips
    and barcode blobs over compact ones.

    Returns:
        numpy.ndarray or None: The winning contour, None for an empty list
    """
    best, best_perimeter = None, -1.0
    for contour in contours:
        perimeter = cv2.arcLength(contour, True)
        if perimeter > best_perimeter:
            best, best_perimeter = contour, perimeter
    return best


def min_area_rect(contour: np.ndarray) -> RotatedRectangle:
    """Minimum-area rotated rectangle in canonical form."""
    rect = cv2.minAreaRect(contour)
    return RotatedRectangle.from_box_points(cv2.boxPoints(rect))


def bounding_rect(contour: np.ndarray) -> Rectangle:
    return Rectangle.from_tuple(cv2.boundingRect(contour))


def crop(image: np.ndarray, rect: Rectangle) -> np.ndarray:
    """Crop ``rect`` clipped to the image bounds (may return an empty array)."""
    height, width = image.shape[:2]
    r = rect.clip(width, height)
    return image[r.y:r.y + r.height, r.x:r.x + r.width].copy()


def extract_rotated_region(image: np.ndarray,
                           center: Tuple[float, float],
                           size: Tuple[int, int],
                           angle: float) -> np.ndarray:
    """
    Rotate about ``center`` and cut a ``size`` (width, height) window around it.

    The rotation matrix is composed with a translation moving ``center`` to
    the middle of a fresh canvas of the requested size. Translation-only
    extraction resamples bilinearly, rotation uses bicubic resampling.

    Args:
        image: Source image
        center: Rotation center in source coordinates
        size: Output (width, height)
        angle: Rotation in degrees

    Returns:
        numpy.ndarray: Rectified region
    """
    out_width, out_height = max(1, int(size[0])), max(1, int(size[1]))
    matrix = cv2.getRotationMatrix2D((float(center[0]), float(center[1])), angle, 1.0)
    matrix[0, 2] += out_width / 2.0 - center[0]
    matrix[1, 2] += out_height / 2.0 - center[1]
    interpolation = cv2.INTER_LINEAR if angle == 0 else cv2.INTER_CUBIC
    return cv2.warpAffine(image, matrix, (out_width, out_height),
                          flags=interpolation, borderMode=cv2.BORDER_REPLICATE)


def hanning_window(image: np.ndarray) -> np.ndarray:
    """Multiply by a 2D Hanning window; returns float32."""
    data = image.astype(np.float32)
    rows, cols = data.shape[:2]
    if rows < 2 or cols < 2:
        return data
    window = cv2.createHanningWindow((cols, rows), cv2.CV_32F)
    return data * window


def magnitude_spectrum(image: np.ndarray) -> np.ndarray:
    """
    Log-magnitude Fourier spectrum with the DC component centred.

    Steps: Hanning window, zero-pad to the optimal DFT size, DFT,
    log(1 + magnitude), crop to even size, swap quadrants, min-max
    normalize to 0-255.

    Args:
        image: Single channel image

    Returns:
        numpy.ndarray: uint8 spectrum
    """
    windowed = hanning_window(to_grayscale(image) if image.ndim == 3 else image)
    rows, cols = windowed.shape
    padded = cv2.copyMakeBorder(
        windowed,
        0, cv2.getOptimalDFTSize(rows) - rows,
        0, cv2.getOptimalDFTSize(cols) - cols,
        cv2.BORDER_CONSTANT, value=0,
    )
    complex_image = cv2.dft(padded, flags=cv2.DFT_COMPLEX_OUTPUT)
    magnitude = cv2.magnitude(complex_image[:, :, 0], complex_image[:, :, 1])
    magnitude = np.log1p(magnitude)

    # Even size so the quadrants swap cleanly
    magnitude = magnitude[:magnitude.shape[0] & -2, :magnitude.shape[1] & -2]
    mid_row, mid_col = magnitude.shape[0] // 2, magnitude.shape[1] // 2
    shifted = np.empty_like(magnitude)
    shifted[:mid_row, :mid_col] = magnitude[mid_row:, mid_col:]
    shifted[mid_row:, mid_col:] = magnitude[:mid_row, :mid_col]
    shifted[:mid_row, mid_col:] = magnitude[mid_row:, :mid_col]
    shifted[mid_row:, :mid_col] = magnitude[:mid_row, mid_col:]

    return cv2.normalize(shifted, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)


def blurriness(image: np.ndarray) -> float:
    """Variance of the Laplacian; higher means sharper."""
    gray = to_grayscale(image) if image.ndim == 3 else image
    laplacian = cv2.Laplacian(gray, cv2.CV_64F)
    return float(laplacian.var())


def channel_histogram(image: np.ndarray, channel: int, bins: int = 256) -> np.ndarray:
    """1D histogram of one channel over 0-255, flattened to ``bins`` counts."""
    hist = cv2.calcHist([image], [channel], None, [bins], [0, 256])
    return hist.flatten()
