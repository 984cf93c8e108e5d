import numpy as np
import pytest
from PIL import Image

from conftest import gradient_pixels, png_bytes
from paint_by_number.errors import ConfigError, ConversionCancelled, DecodeError, EmptyImageError
from paint_by_number.image_processing.dithering import perceived_error
from paint_by_number.image_processing.processor import ImageConverter, convert
from paint_by_number.image_processing.tessellation import Tessellation
from paint_by_number.models import ConversionConfig, GridType


@pytest.mark.parametrize("grid_type", list(GridType))
@pytest.mark.parametrize("use_dithering", [False, True])
def test_conversion_is_deterministic(gradient_png, grid_type, use_dithering):
    config = ConversionConfig(grid_type=grid_type, cell_size=8, palette_size=6, use_dithering=use_dithering)
    first = convert(gradient_png, config)
    second = convert(gradient_png, config)
    assert first.to_json() == second.to_json()


def test_palette_bound_and_codes(gradient_png):
    result = convert(gradient_png, ConversionConfig(cell_size=10, palette_size=5))
    assert 1 <= len(result.palette) <= 5
    assert all(0 <= cell.code < len(result.palette) for cell in result.cells)
    assert result.image_width == 60
    assert result.image_height == 40
    assert len(result.cells) == 6 * 4


def test_pipelined_dithering_gives_the_same_result(gradient_png):
    base = ConversionConfig(cell_size=6, palette_size=4, use_dithering=True)
    sequential = convert(gradient_png, base)
    pipelined = convert(gradient_png, ConversionConfig(cell_size=6, palette_size=4, use_dithering=True, dither_workers=3))
    assert sequential.to_json() == pipelined.to_json()


def test_accepts_path_and_pil_image(tmp_path):
    image = Image.fromarray(gradient_pixels(30, 20))
    path = tmp_path / "gradient.png"
    image.save(path)
    config = ConversionConfig(cell_size=5, palette_size=4)
    from_path = convert(path, config)
    from_bytes = convert(path.read_bytes(), config)
    from_image = convert(image, config)
    assert from_path.to_json() == from_bytes.to_json() == from_image.to_json()


def test_wide_images_are_downscaled():
    image = Image.new("RGB", (1000, 500), (20, 40, 60))
    result = convert(png_bytes(image), ConversionConfig(cell_size=50))
    assert (result.image_width, result.image_height) == (800, 400)
    assert len(result.cells) == 16 * 8


def test_transparency_becomes_unlabelled_background():
    image = Image.new("RGBA", (20, 20), (0, 0, 0, 0))
    image.paste((10, 10, 10, 255), (0, 0, 10, 20))
    result = convert(png_bytes(image), ConversionConfig(cell_size=10))
    assert result.palette.colors == ((10, 10, 10), (255, 255, 255))
    assert result.palette.labels == ("0", "")
    assert result.cell_at(1, 0).code == 1


@pytest.mark.parametrize(
    "changes",
    [{"cell_size": 0}, {"palette_size": 0}, {"grid_type": "triangle"}],
)
def test_invalid_config(gradient_png, changes):
    with pytest.raises(ConfigError):
        convert(gradient_png, ConversionConfig(**changes))


def test_config_is_checked_before_decoding():
    with pytest.raises(ConfigError):
        convert(b"not an image", ConversionConfig(cell_size=0))


def test_corrupt_bytes(gradient_png):
    with pytest.raises(DecodeError):
        convert(b"not an image")
    with pytest.raises(DecodeError):
        convert(gradient_png[:60])


def test_zero_area_image():
    with pytest.raises(EmptyImageError):
        convert(Image.new("RGB", (0, 0)))


def test_errors_are_value_errors():
    with pytest.raises(ValueError):
        convert(b"")


def test_cancellation_between_stages(gradient_png):
    with pytest.raises(ConversionCancelled):
        ImageConverter(ConversionConfig()).convert(gradient_png, cancel_check=lambda: True)


def test_step_methods(gradient_png):
    converter = ImageConverter(ConversionConfig(cell_size=10, palette_size=3, use_dithering=True))
    image = converter.load_image(gradient_png)
    pixels = converter.prepare_pixels(image)
    assert pixels.shape == (40, 60, 3)
    palette, labels = converter.quantize_colors(pixels)
    codes = converter.assign_pixels(pixels, palette)
    assert codes.shape == labels.shape
    assert np.all(codes < len(palette))
    assert len(converter.tessellate(60, 40).cells()) == 24


def gray_ramp_png(width=300, height=150):
    ramp = np.rint(np.linspace(0, 255, width)).astype(np.uint8)
    pixels = np.empty((height, width, 3), dtype=np.uint8)
    pixels[:, :, :] = ramp[None, :, None]
    return pixels, png_bytes(Image.fromarray(pixels))


def cell_code_image(result):
    """Per-pixel codes as painted by the finished grid."""
    tessellation = Tessellation(result.grid_type, result.cell_size, result.image_width, result.image_height)
    codes = np.zeros((result.image_height, result.image_width), dtype=np.int64)
    for cell in result.cells:
        rows, cols, mask = tessellation.footprint_mask(cell)
        codes[rows, cols][mask] = cell.code
    return codes


@pytest.mark.parametrize("grid_type", list(GridType))
def test_dithering_preserves_a_gradient_across_cells(grid_type):
    pixels, data = gray_ramp_png()
    plain = convert(data, ConversionConfig(grid_type=grid_type, cell_size=10, palette_size=2))
    dithered = convert(data, ConversionConfig(grid_type=grid_type, cell_size=10, palette_size=2, use_dithering=True))

    assert plain.palette == dithered.palette
    assert [c.code for c in plain.cells] != [c.code for c in dithered.cells]

    # Viewed a couple of cells wide, the dithered grid tracks the ramp
    radius = 20
    plain_error = perceived_error(pixels, cell_code_image(plain), plain.palette, radius)
    dithered_error = perceived_error(pixels, cell_code_image(dithered), dithered.palette, radius)
    assert dithered_error < plain_error


def test_downscaling_keeps_a_flat_palette_exact():
    image = Image.new("RGB", (1000, 100), (0, 0, 255))
    image.paste((255, 0, 0), (500, 0, 1000, 100))
    result = convert(png_bytes(image), ConversionConfig(cell_size=10, palette_size=4))
    assert result.image_width == 800
    assert result.palette.colors == ((0, 0, 255), (255, 0, 0))
    assert {cell.code for cell in result.cells} == {0, 1}
