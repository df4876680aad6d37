"""
Convert photos into gridded pixel art.

The source image is reduced to a small grid by supersampled area averaging,
the cell colors are reduced to a bounded palette with median cut, and every
cell is snapped to its nearest palette entry. The result can be rendered as
enlarged blocks with a faint grid outline (see render.py).
"""

from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, ImageOps

from .config import MAX_INPUT_BYTES, SUPERSAMPLE, ConvertSettings
from .render import PillowSurface, SvgSurface, render_cells

Color = tuple[int, int, int]

# Cells at or below this alpha do not take part in palette construction.
ALPHA_THRESHOLD = 128


def color_distance_sq(c1: Color, c2: Color) -> int:
    """Squared RGB Euclidean distance (no weighting, no alpha)."""
    dr = int(c1[0]) - int(c2[0])
    dg = int(c1[1]) - int(c2[1])
    db = int(c1[2]) - int(c2[2])
    return dr * dr + dg * dg + db * db


def _round_mean(total: int | np.ndarray, count: int) -> int | np.ndarray:
    # floor(total / count + 0.5) without going through floats
    return (2 * total + count) // (2 * count)


def _check_raster(raster: np.ndarray | None) -> np.ndarray:
    if raster is None:
        raise ValueError("no source raster given")
    raster = np.asarray(raster)
    if raster.dtype != np.uint8 or raster.ndim != 3 or raster.shape[2] != 4:
        raise ValueError(f"expected uint8 (H, W, 4) RGBA raster, got {raster.dtype} {raster.shape}")
    if raster.shape[0] == 0 or raster.shape[1] == 0:
        raise ValueError("source raster has zero area")
    return raster


def grid_size(src_width: int, src_height: int, max_size: int) -> tuple[int, int]:
    """
    Size of the pixel grid for a source image.

    The longer side becomes max_size cells and the other side is scaled to
    keep the aspect ratio, rounding down. Neither side drops below 1.
    """
    if src_width < 1 or src_height < 1:
        raise ValueError(f"source size must be positive, got {src_width}x{src_height}")
    if max_size < 1:
        raise ValueError(f"max_size must be at least 1, got {max_size}")

    longest = max(src_width, src_height)
    pixel_width = max(1, src_width * max_size // longest)
    pixel_height = max(1, src_height * max_size // longest)
    return pixel_width, pixel_height


def downsample(
    raster: np.ndarray,
    pixel_width: int,
    pixel_height: int,
    supersample: int = SUPERSAMPLE,
    resample: Image.Resampling = Image.Resampling.LANCZOS,
) -> np.ndarray:
    """
    Reduce an RGBA raster to pixel_width x pixel_height averaged cells.

    The source is first resampled to supersample times the target size, then
    each supersample x supersample block is averaged per channel.

    Args:
        raster: (H, W, 4) uint8 RGBA source, left untouched
        pixel_width: Number of output columns (>= 1)
        pixel_height: Number of output rows (>= 1)
        supersample: Samples per cell along each axis
        resample: Pillow filter used for the intermediate resize

    Returns:
        (pixel_height, pixel_width, 4) uint8 array of average colors
    """
    raster = _check_raster(raster)
    if pixel_width < 1 or pixel_height < 1:
        raise ValueError(f"target grid must be at least 1x1, got {pixel_width}x{pixel_height}")
    if supersample < 1:
        raise ValueError(f"supersample must be at least 1, got {supersample}")

    sample_w = pixel_width * supersample
    sample_h = pixel_height * supersample

    if raster.shape[1] == sample_w and raster.shape[0] == sample_h:
        sampled = raster
    else:
        # Pillow resamples RGBA with premultiplied alpha, so fully transparent
        # pixels do not bleed their color into neighbours.
        img = Image.fromarray(np.ascontiguousarray(raster))
        sampled = np.asarray(img.resize((sample_w, sample_h), resample), dtype=np.uint8)

    blocks = sampled.reshape(pixel_height, supersample, pixel_width, supersample, 4)
    sums = blocks.sum(axis=(1, 3), dtype=np.int64)
    averages = _round_mean(sums, supersample * supersample)
    return np.clip(averages, 0, 255).astype(np.uint8)


def visible_colors(cells: np.ndarray, threshold: int = ALPHA_THRESHOLD) -> list[Color]:
    """RGB of every cell with alpha above threshold, in row-major order."""
    flat = np.asarray(cells).reshape(-1, 4)
    visible = flat[flat[:, 3] > threshold, :3]
    return [tuple(c) for c in visible.tolist()]


def _widest_channel(bucket: list[Color]) -> int:
    """Channel with the largest value range. Ties prefer R, then G, then B."""
    reds, greens, blues = zip(*bucket)
    range_r = max(reds) - min(reds)
    range_g = max(greens) - min(greens)
    range_b = max(blues) - min(blues)
    if range_r >= range_g and range_r >= range_b:
        return 0
    return 1 if range_g >= range_b else 2


def _split_bucket(bucket: list[Color], depth: int) -> list[list[Color]]:
    if depth == 0 or not bucket:
        return [bucket]

    channel = _widest_channel(bucket)
    bucket.sort(key=lambda c: c[channel])  # stable, equal keys keep input order
    mid = len(bucket) // 2
    return _split_bucket(bucket[:mid], depth - 1) + _split_bucket(bucket[mid:], depth - 1)


def _bucket_mean(bucket: list[Color]) -> Color:
    n = len(bucket)
    reds, greens, blues = zip(*bucket)
    return (_round_mean(sum(reds), n), _round_mean(sum(greens), n), _round_mean(sum(blues), n))


def median_cut(colors: list[Color], color_count: int) -> list[Color] | None:
    """
    Reduce colors to at most color_count representatives with median cut.

    Every bucket is split ceil(log2(color_count)) times along its widest
    channel at the median index. The first color_count leaf buckets are kept,
    empty ones are dropped, and each survivor contributes its mean color.
    Repeated means appear once, in first-seen order.

    Returns None when color_count <= 0 or there are no colors, meaning the
    caller should skip quantization.
    """
    if color_count <= 0:
        return None

    bucket = [(int(c[0]), int(c[1]), int(c[2])) for c in colors]
    if not bucket:
        return None

    depth = (color_count - 1).bit_length()  # ceil(log2(color_count))
    buckets = _split_bucket(bucket, depth)[:color_count]
    # Flat buckets share a mean; keep the first of each.
    return list(dict.fromkeys(_bucket_mean(b) for b in buckets if b))


def build_palette(
    cells: np.ndarray,
    color_count: int,
    alpha_threshold: int = ALPHA_THRESHOLD,
) -> list[Color] | None:
    """Median-cut palette over the visible cells, or None if there is nothing to quantize."""
    return median_cut(visible_colors(cells, alpha_threshold), color_count)


def nearest_color(color: Color, palette: list[Color]) -> Color:
    """Closest palette entry by RGB distance. The earliest entry wins ties."""
    if not palette:
        raise ValueError("cannot snap to an empty palette")

    best_dist = None
    best_color = palette[0]
    for entry in palette:
        dist = color_distance_sq(color, entry)
        if best_dist is None or dist < best_dist:
            best_dist = dist
            best_color = entry
    return best_color


def map_to_palette(cells: np.ndarray, palette: list[Color]) -> np.ndarray:
    """
    Snap every cell to its nearest palette color, keeping the cell's alpha.

    Same rule as nearest_color, evaluated for the whole grid at once.
    """
    if not palette:
        raise ValueError("cannot snap to an empty palette")

    cells = np.asarray(cells)
    flat = cells.reshape(-1, 4)
    rgb = flat[:, :3].astype(np.int64)
    pal = np.asarray(palette, dtype=np.int64).reshape(-1, 3)

    best_dist = np.full(len(flat), np.iinfo(np.int64).max, dtype=np.int64)
    best_idx = np.zeros(len(flat), dtype=np.intp)
    for i, entry in enumerate(pal):
        dist = ((rgb - entry) ** 2).sum(axis=1)
        closer = dist < best_dist
        best_dist[closer] = dist[closer]
        best_idx[closer] = i

    out = flat.copy()
    out[:, :3] = pal[best_idx].astype(np.uint8)
    return out.reshape(cells.shape)


@dataclass(frozen=True, eq=False)
class PixelArt:
    """Result of one conversion."""

    averages: np.ndarray  # (h, w, 4) area-averaged cell colors
    cells: np.ndarray  # (h, w, 4) final colors, quantized when a palette exists
    palette: list[Color] | None

    @property
    def width(self) -> int:
        return self.cells.shape[1]

    @property
    def height(self) -> int:
        return self.cells.shape[0]

    def render(self, surface, block_size: int) -> None:
        render_cells(self.cells, surface, block_size)

    def to_image(self, block_size: int) -> Image.Image:
        surface = PillowSurface(self.width * block_size, self.height * block_size)
        self.render(surface, block_size)
        return surface.to_image()

    def to_svg(self, block_size: int) -> str:
        surface = SvgSurface(self.width * block_size, self.height * block_size)
        self.render(surface, block_size)
        return surface.to_svg()

    def cells_image(self) -> Image.Image:
        """One output pixel per cell."""
        return Image.fromarray(np.ascontiguousarray(self.cells))


def convert_raster(
    raster: np.ndarray,
    max_size: int,
    color_count: int,
    supersample: int = SUPERSAMPLE,
) -> PixelArt:
    """
    Run the full pipeline on a decoded RGBA raster.

    max_size and color_count are used as given. Clamp them beforehand
    (ConvertSettings.from_user) when they come from a user.
    """
    raster = _check_raster(raster)
    pixel_width, pixel_height = grid_size(raster.shape[1], raster.shape[0], max_size)
    averages = downsample(raster, pixel_width, pixel_height, supersample)

    palette = build_palette(averages, color_count)
    if palette is None:
        cells = averages.copy()
    else:
        cells = map_to_palette(averages, palette)

    return PixelArt(averages=averages, cells=cells, palette=palette)


def load_raster(path: str | Path) -> np.ndarray:
    """Decode an image file into an upright (H, W, 4) uint8 RGBA array."""
    with Image.open(path) as img:
        img = ImageOps.exif_transpose(img)
        return np.array(img.convert("RGBA"), dtype=np.uint8)


def default_output_path(input_path: str | Path) -> Path:
    input_path = Path(input_path)
    return input_path.parent / f"pixel_{input_path.stem}.png"


def convert_image(
    input_path: str | Path,
    output_path: str | Path | None = None,
    settings: ConvertSettings | None = None,
    verbose: bool = False,
    cells_output: str | Path | None = None,
    svg_output: str | Path | None = None,
) -> PixelArt:
    """
    Convert an image file into gridded pixel art and save it as PNG.

    Args:
        input_path: Path to the source image
        output_path: Where to save the rendering (default: pixel_<name>.png beside the input)
        settings: Conversion parameters (default: ConvertSettings())
        verbose: Print progress info
        cells_output: Optional path for the 1:1 image, one pixel per cell
        svg_output: Optional path for an SVG rendering

    Returns:
        The conversion result
    """
    settings = settings or ConvertSettings()
    input_path = Path(input_path)
    if output_path is None:
        output_path = default_output_path(input_path)

    file_size = input_path.stat().st_size
    if file_size > MAX_INPUT_BYTES:
        raise ValueError(
            f"{input_path.name} is {file_size / (1024 * 1024):.1f}MB, "
            f"limit is {MAX_INPUT_BYTES // (1024 * 1024)}MB"
        )

    raster = load_raster(input_path)
    if verbose:
        print(f"Input image: {raster.shape[1]}x{raster.shape[0]}")

    result = convert_raster(raster, settings.max_size, settings.color_count, settings.supersample)

    if verbose:
        print(f"Pixel grid: {result.width}x{result.height} (max {settings.max_size})")
        if result.palette is None:
            print("  No visible pixels, keeping averaged colors")
        else:
            print(f"  Palette: {len(result.palette)} colors (requested {settings.color_count})")

    result.to_image(settings.block_size).save(output_path, format="PNG")
    if verbose:
        print(f"Saved to: {output_path}")

    if cells_output:
        result.cells_image().save(cells_output, format="PNG")
        if verbose:
            print(f"Cells saved to: {cells_output}")

    if svg_output:
        Path(svg_output).write_text(result.to_svg(settings.block_size), encoding="utf-8")
        if verbose:
            print(f"SVG saved to: {svg_output}")

    return result
