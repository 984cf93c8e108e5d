"""Fill-state engine: records which cells the user has painted.

AIDEV-NOTE: A fill only sticks when the selected code matches the cell's
code. Mismatches and unknown cells are ordinary user noise, so fill()
returns False instead of raising.
"""

from .models import ConversionResult, FilledSet


class FillStateEngine:
    """Validates and records fill actions against one conversion result."""

    def __init__(self, result: ConversionResult, filled: FilledSet | None = None):
        self.result = result
        self.filled = filled if filled is not None else FilledSet()

    def fill(self, x: int, y: int, code: int | None) -> bool:
        """Mark cell (x, y) as filled if it exists and carries the given code.

        Args:
            x: Lattice x of the cell
            y: Lattice y of the cell
            code: Currently selected palette code (None when nothing is selected)

        Returns:
            True if the cell is now filled, False if the fill was rejected
        """
        if code is None:
            return False
        cell = self.result.cell_at(x, y)
        if cell is None or cell.code != code:
            return False
        self.filled.mark(x, y)
        return True

    def is_filled(self, x: int, y: int) -> bool:
        return (x, y) in self.filled

    def reset(self) -> None:
        """Forget all fills."""
        self.filled.clear()

    def load(self, data: "dict[str, bool] | FilledSet") -> None:
        """Replace the fills with previously saved progress.

        Saved progress is trusted: entries are not checked against the
        current cells.
        """
        loaded = data if isinstance(data, FilledSet) else FilledSet.from_dict(data)
        self.filled.clear()
        for x, y in loaded:
            self.filled.mark(x, y)

    def progress(self) -> "dict[int, tuple[int, int]]":
        """Per-code (filled, total) counts for every labelled code."""
        palette = self.result.palette
        counts: dict[int, list[int]] = {}
        for cell in self.result.cells:
            if palette.is_background(cell.code):
                continue
            entry = counts.setdefault(cell.code, [0, 0])
            entry[1] += 1
            if cell.key in self.filled:
                entry[0] += 1
        return {code: (done, total) for code, (done, total) in sorted(counts.items())}

    @property
    def is_complete(self) -> bool:
        """True when every labelled cell is filled."""
        return all(done == total for done, total in self.progress().values())
