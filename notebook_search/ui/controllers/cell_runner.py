"""Runs code cells in child Python processes using QProcess."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field

import structlog
from PySide6.QtCore import QObject, QProcess, QProcessEnvironment, Signal

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class _CellRun:
    process: QProcess
    execution_count: int
    stdout: bytearray = field(default_factory=bytearray)
    stderr: bytearray = field(default_factory=bytearray)


class CellRunner(QObject):
    """One interpreter per run; output is collected and reported when the process ends."""

    # cell_id, outputs, execution_count
    cellFinished = Signal(str, list, int)

    def __init__(self, parent: QObject | None = None, *, program: str | None = None) -> None:
        super().__init__(parent)
        self._program = program or sys.executable
        self._runs: dict[str, _CellRun] = {}

    def is_running(self, cell_id: str) -> bool:
        run = self._runs.get(cell_id)
        return run is not None and run.process.state() != QProcess.NotRunning

    def run(self, cell_id: str, source: str, execution_count: int) -> None:
        self.stop(cell_id)
        proc = QProcess(self)
        env = QProcessEnvironment.systemEnvironment()
        env.insert("PYTHONIOENCODING", "utf-8")
        env.insert("PYTHONUNBUFFERED", "1")
        proc.setProcessEnvironment(env)
        proc.setProgram(self._program)
        proc.setArguments(["-c", source])
        run = _CellRun(proc, execution_count)
        self._runs[cell_id] = run
        proc.readyReadStandardOutput.connect(lambda: run.stdout.extend(bytes(proc.readAllStandardOutput())))
        proc.readyReadStandardError.connect(lambda: run.stderr.extend(bytes(proc.readAllStandardError())))
        proc.finished.connect(lambda code, status: self._on_finished(cell_id, run, code, status))
        proc.errorOccurred.connect(lambda error: self._on_error(cell_id, run, error))
        logger.debug("cell.run", cell_id=cell_id, execution_count=execution_count)
        proc.start()

    def wait_for_finished(self, cell_id: str, msecs: int = 30000) -> bool:
        run = self._runs.get(cell_id)
        if run is None:
            return True
        return run.process.waitForFinished(msecs)

    def stop(self, cell_id: str) -> None:
        run = self._runs.pop(cell_id, None)
        if run is None:
            return
        if run.process.state() != QProcess.NotRunning:
            run.process.kill()
            run.process.waitForFinished(1000)
        run.process.deleteLater()

    def stop_all(self) -> None:
        for cell_id in list(self._runs):
            self.stop(cell_id)

    def _on_finished(self, cell_id: str, run: _CellRun, exit_code: int, _status: QProcess.ExitStatus) -> None:
        if self._runs.get(cell_id) is not run:
            return
        del self._runs[cell_id]
        run.stdout.extend(bytes(run.process.readAllStandardOutput()))
        run.stderr.extend(bytes(run.process.readAllStandardError()))
        outputs = [
            text
            for text in (
                run.stdout.decode("utf-8", errors="replace"),
                run.stderr.decode("utf-8", errors="replace").rstrip("\n"),
            )
            if text
        ]
        logger.debug("cell.finished", cell_id=cell_id, exit_code=exit_code)
        run.process.deleteLater()
        self.cellFinished.emit(cell_id, outputs, run.execution_count)

    def _on_error(self, cell_id: str, run: _CellRun, error: QProcess.ProcessError) -> None:
        # Crashes still end in finished(); only a failed start never gets there.
        if error != QProcess.ProcessError.FailedToStart or self._runs.get(cell_id) is not run:
            return
        del self._runs[cell_id]
        message = run.process.errorString()
        logger.warning("cell.start_failed", cell_id=cell_id, program=self._program, error=message)
        run.process.deleteLater()
        self.cellFinished.emit(cell_id, [message], run.execution_count)
