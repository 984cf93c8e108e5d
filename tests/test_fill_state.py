from paint_by_number.fill_state import FillStateEngine
from paint_by_number.models import Cell, CellShape, ConversionResult, FilledSet, GridType, Palette


def make_result():
    palette = Palette(colors=((0, 0, 0), (255, 0, 0), (255, 255, 255)))
    cells = (
        Cell(0, 0, (5.0, 5.0), CellShape.SQUARE, 10.0, code=0),
        Cell(1, 0, (15.0, 5.0), CellShape.SQUARE, 10.0, code=1),
        Cell(0, 1, (5.0, 15.0), CellShape.SQUARE, 10.0, code=2),
        Cell(1, 1, (15.0, 15.0), CellShape.SQUARE, 10.0, code=0),
    )
    return ConversionResult(GridType.SQUARE, 10.0, palette, cells, image_width=20, image_height=20)


def test_fill_with_matching_code():
    engine = FillStateEngine(make_result())
    assert engine.fill(0, 0, 0)
    assert engine.is_filled(0, 0)
    assert engine.filled.to_dict() == {"0,0": True}


def test_rejected_fills_are_no_ops():
    engine = FillStateEngine(make_result())
    assert not engine.fill(1, 0, 0)  # wrong code
    assert not engine.fill(7, 7, 0)  # no such cell
    assert not engine.fill(0, 0, None)  # nothing selected
    assert len(engine.filled) == 0


def test_reset():
    engine = FillStateEngine(make_result())
    engine.fill(0, 0, 0)
    engine.fill(1, 1, 0)
    engine.reset()
    assert len(engine.filled) == 0
    assert not engine.is_filled(0, 0)


def test_progress_skips_background():
    engine = FillStateEngine(make_result())
    engine.fill(0, 0, 0)
    assert engine.progress() == {0: (1, 2), 1: (0, 1)}
    assert not engine.is_complete
    engine.fill(1, 1, 0)
    engine.fill(1, 0, 1)
    assert engine.is_complete


def test_load_replaces_fills():
    engine = FillStateEngine(make_result())
    engine.fill(0, 0, 0)
    engine.load({"1,0": True})
    assert engine.filled == FilledSet.from_dict({"1,0": True})
    assert not engine.is_filled(0, 0)
