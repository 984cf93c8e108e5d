"""Paint session: the explicit state behind one interactive artwork.

AIDEV-NOTE: The session owns the original image bytes, the current
ConversionResult, the fills and the selected code. Reconversion always starts
from the original bytes, never from the current grid, so quantization error
cannot compound across re-runs.

Conversions are numbered. install() only accepts the most recently requested
generation (last write wins), and swaps the result and clears the fills under
the same lock fill() takes, so a fill racing a reconversion never survives it.
"""

import threading
from dataclasses import replace

from .fill_state import FillStateEngine
from .image_processing.processor import ImageSource, convert
from .models import ConversionConfig, ConversionResult, FilledSet


class PaintSession:
    """Original image, current grid, fills and selection."""

    def __init__(self, config: ConversionConfig | None = None):
        self.config = (config or ConversionConfig()).validate()
        self.original: ImageSource | None = None
        self.result: ConversionResult | None = None
        self.engine: FillStateEngine | None = None
        self.selection: int | None = None

        self._lock = threading.Lock()
        self._generation = 0

    # --- Conversion lifecycle ---

    def begin_conversion(self) -> int:
        """Reserve a generation number for a new conversion.

        Any conversion started earlier becomes stale: its install() is refused.
        """
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def install(
        self,
        result: ConversionResult,
        generation: int,
        original: ImageSource | None = None,
        config: ConversionConfig | None = None,
    ) -> bool:
        """Make a finished conversion current.

        Args:
            result: Output of a successful conversion
            generation: Number returned by begin_conversion() for that run
            original: Image the run converted, stored as the new original
            config: Settings the run used, stored as the new config

        Returns:
            True if installed, False if a newer conversion was requested since
        """
        with self._lock:
            if generation != self._generation:
                print(f"Discarding stale conversion (generation {generation}, current {self._generation})")
                return False
            if original is not None:
                self.original = original
            if config is not None:
                self.config = config
            self.result = result
            self.engine = FillStateEngine(result)
            self.selection = None
            return True

    def import_image(self, source: ImageSource, config: ConversionConfig | None = None) -> ConversionResult:
        """Convert a newly imported image and make it current.

        Raises:
            ConversionError: On any pipeline failure; the session is unchanged
        """
        config = (config or self.config).validate()
        if isinstance(source, bytearray):
            source = bytes(source)
        generation = self.begin_conversion()
        result = convert(source, config)
        self.install(result, generation, original=source, config=config)
        return result

    def reprocess(self, **changes) -> ConversionResult:
        """Re-run the conversion from the original image with changed settings.

        Args:
            **changes: ConversionConfig fields to override (grid_type,
                cell_size, palette_size, use_dithering, ...)

        Raises:
            RuntimeError: If no image has been imported
            ConversionError: On any pipeline failure; the session is unchanged
        """
        if self.original is None:
            raise RuntimeError("No image imported")
        config = replace(self.config, **changes).validate()
        generation = self.begin_conversion()
        result = convert(self.original, config)
        self.install(result, generation, config=config)
        return result

    # --- Interaction ---

    def select(self, code: int | None) -> None:
        """Choose the code used by subsequent fills (None to clear)."""
        if code is not None:
            if self.result is None or not 0 <= code < len(self.result.palette):
                raise ValueError(f"No palette entry with code {code}")
        self.selection = code

    def fill(self, x: int, y: int) -> bool:
        """Fill cell (x, y) with the selected code; False when rejected."""
        with self._lock:
            if self.engine is None:
                return False
            return self.engine.fill(x, y, self.selection)

    def reset_fills(self) -> None:
        with self._lock:
            if self.engine is not None:
                self.engine.reset()

    @property
    def filled(self) -> FilledSet:
        """Snapshot of the current fills."""
        with self._lock:
            return self._filled_snapshot()

    def _filled_snapshot(self) -> FilledSet:
        if self.engine is None:
            return FilledSet()
        return FilledSet({key: True for key in self.engine.filled})

    # --- Persistence ---

    def save_progress(self) -> dict:
        """Serializable progress: the grid's data id plus the fills."""
        if self.result is None:
            raise RuntimeError("No conversion to save progress for")
        with self._lock:
            return {"data_id": self.result.data_id, "filled": self._filled_snapshot().to_dict()}

    def load_progress(self, data: dict) -> bool:
        """Restore saved fills if they belong to the current grid.

        Returns:
            True if loaded, False if there is no grid or the data id differs
        """
        with self._lock:
            if self.engine is None or self.result is None:
                return False
            if data.get("data_id") != self.result.data_id:
                print(f"Saved progress is for {data.get('data_id')!r}, not {self.result.data_id!r}")
                return False
            self.engine.load(data.get("filled", {}))
            return True
