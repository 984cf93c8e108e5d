"""Background conversion so the interactive thread never blocks.

AIDEV-NOTE: ConversionController keeps at most one live ConversionThread.
Starting a new conversion requests interruption of the previous thread and
reserves a newer session generation, so a late result from the old thread is
refused by PaintSession.install() even if it slips past cancellation.
"""

from dataclasses import replace

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from .errors import ConversionCancelled
from .image_processing.processor import ImageConverter, ImageSource
from .models import ConversionConfig, ConversionResult
from .session import PaintSession


class ConversionThread(QThread):
    """Background thread running one conversion."""

    conversion_finished = pyqtSignal(object, int)  # ConversionResult, generation
    error = pyqtSignal(str)  # Error message
    progress = pyqtSignal(int)  # Progress percentage

    def __init__(self, source: ImageSource, config: ConversionConfig, generation: int = 0):
        super().__init__()
        self.source = source
        self.config = config
        self.generation = generation

    def run(self):
        """Execute the conversion in background."""
        try:
            converter = ImageConverter(self.config)

            self.progress.emit(10)
            result = converter.convert(self.source, cancel_check=self.isInterruptionRequested)

            self.progress.emit(100)
            self.conversion_finished.emit(result, self.generation)

        except ConversionCancelled:
            print(f"Conversion {self.generation} cancelled")
        except Exception as e:
            self.error.emit(str(e))


class ConversionController(QObject):
    """Runs session conversions off the interactive thread, last write wins."""

    result_installed = pyqtSignal(object)  # ConversionResult
    conversion_failed = pyqtSignal(str)  # Error message
    progress = pyqtSignal(int)  # Progress percentage

    def __init__(self, session: PaintSession, parent: QObject | None = None):
        super().__init__(parent)
        self.session = session
        self._thread: ConversionThread | None = None
        self._retired: list[ConversionThread] = []

    @property
    def busy(self) -> bool:
        return self._thread is not None and self._thread.isRunning()

    def start(self, source: ImageSource | None = None, config: ConversionConfig | None = None) -> int:
        """Convert source (or the session's original) with config in the background.

        Returns:
            Generation number of the new conversion

        Raises:
            RuntimeError: If no source is given and nothing was imported
        """
        if source is None:
            source = self.session.original
        if source is None:
            raise RuntimeError("No image to convert")
        config = (config or self.session.config).validate()

        self._cancel_current()

        generation = self.session.begin_conversion()
        thread = ConversionThread(source, config, generation)
        thread.conversion_finished.connect(lambda result, gen, t=thread: self._on_finished(t, result, gen))
        thread.error.connect(lambda message, t=thread: self._on_error(t, message))
        thread.progress.connect(self.progress)
        self._thread = thread
        thread.start()
        return generation

    def reprocess(self, **changes) -> int:
        """Background equivalent of PaintSession.reprocess()."""
        return self.start(config=replace(self.session.config, **changes))

    def cancel(self) -> None:
        """Abandon the running conversion, if any."""
        self._cancel_current()
        # Invalidate whatever the cancelled thread may still deliver
        self.session.begin_conversion()

    def wait(self, msecs: int = -1) -> bool:
        """Block until the current thread finishes (for scripts and tests)."""
        if self._thread is None:
            return True
        if msecs < 0:
            return self._thread.wait()
        return self._thread.wait(msecs)

    def _cancel_current(self) -> None:
        thread = self._thread
        if thread is None:
            return
        if thread.isRunning():
            thread.requestInterruption()
            # Keep a reference until Qt is done with the thread
            self._retired.append(thread)
            thread.finished.connect(lambda t=thread: self._forget(t))
        self._thread = None

    def _forget(self, thread: ConversionThread) -> None:
        if thread in self._retired:
            self._retired.remove(thread)

    def _on_finished(self, thread: ConversionThread, result: ConversionResult, generation: int):
        if self.session.install(result, generation, original=thread.source, config=thread.config):
            self.result_installed.emit(result)

    def _on_error(self, thread: ConversionThread, message: str):
        if not self.session.is_current(thread.generation):
            return
        self.conversion_failed.emit(message)
