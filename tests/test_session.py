import pytest

from paint_by_number.errors import ConfigError, DecodeError
from paint_by_number.image_processing.processor import convert
from paint_by_number.models import ConversionConfig, GridType
from paint_by_number.session import PaintSession


def imported_session(gradient_png, **config):
    session = PaintSession(ConversionConfig(cell_size=10, palette_size=4, **config))
    session.import_image(gradient_png)
    return session


def fill_first_cell(session):
    cell = session.result.cells[0]
    session.select(cell.code)
    assert session.fill(cell.x, cell.y)
    return cell


def test_import_keeps_original_bytes(gradient_png):
    session = imported_session(gradient_png)
    assert session.original == gradient_png
    assert session.result is not None
    assert len(session.filled) == 0


def test_fill_uses_selection(gradient_png):
    session = imported_session(gradient_png)
    cell = fill_first_cell(session)
    assert (cell.x, cell.y) in session.filled

    other = next(c for c in session.result.cells if c.code != cell.code)
    assert not session.fill(other.x, other.y)


def test_select_rejects_unknown_code(gradient_png):
    session = imported_session(gradient_png)
    with pytest.raises(ValueError):
        session.select(99)
    session.select(None)
    assert session.selection is None


def test_reconversion_resets_fills(gradient_png):
    session = imported_session(gradient_png)
    fill_first_cell(session)
    session.reprocess(grid_type=GridType.HONEYCOMB)
    assert len(session.filled) == 0
    assert session.selection is None
    assert session.config.grid_type is GridType.HONEYCOMB


def test_reprocess_starts_from_the_original(gradient_png):
    session = imported_session(gradient_png)
    session.reprocess(palette_size=3)
    session.reprocess(palette_size=6, use_dithering=True)
    expected = convert(gradient_png, ConversionConfig(cell_size=10, palette_size=6, use_dithering=True))
    assert session.result.to_json() == expected.to_json()
    assert session.original == gradient_png


def test_failed_conversion_leaves_state_untouched(gradient_png):
    session = imported_session(gradient_png)
    fill_first_cell(session)
    result = session.result
    filled = session.filled.to_dict()

    with pytest.raises(ConfigError):
        session.reprocess(cell_size=0)
    with pytest.raises(DecodeError):
        session.import_image(b"garbage")

    assert session.result is result
    assert session.filled.to_dict() == filled
    assert session.original == gradient_png
    assert session.config.cell_size == 10


def test_last_write_wins(gradient_png):
    session = PaintSession()
    old = convert(gradient_png, ConversionConfig(cell_size=20))
    new = convert(gradient_png, ConversionConfig(cell_size=10))

    first = session.begin_conversion()
    second = session.begin_conversion()
    assert session.install(new, second)
    assert not session.install(old, first)
    assert session.result is new


def test_reprocess_without_image():
    with pytest.raises(RuntimeError):
        PaintSession().reprocess(cell_size=5)


def test_progress_round_trip(gradient_png):
    session = imported_session(gradient_png)
    cell = fill_first_cell(session)
    saved = session.save_progress()
    assert saved["data_id"] == "square-60x40-10"

    session.reset_fills()
    assert len(session.filled) == 0
    assert session.load_progress(saved)
    assert (cell.x, cell.y) in session.filled


def test_progress_for_another_grid_is_refused(gradient_png):
    session = imported_session(gradient_png)
    fill_first_cell(session)
    saved = session.save_progress()
    session.reprocess(cell_size=12)
    assert not session.load_progress(saved)
    assert len(session.filled) == 0


def test_filled_is_a_snapshot(gradient_png):
    session = imported_session(gradient_png)
    cell = fill_first_cell(session)
    snapshot = session.filled
    session.reset_fills()
    assert (cell.x, cell.y) in snapshot
    assert len(session.filled) == 0
    assert session.save_progress()["filled"] == {}
