"""Step timing and logging for flatmap construction."""

import logging
import re
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np


class ProcessingLogger:
    """Times construction steps and records the size of every raster produced."""

    def __init__(self, logger_name: str = 'label_flatmaps'):
        self.logger = logging.getLogger(logger_name)
        self.logger.propagate = False

        self.formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(self.formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

        self.step_times: Dict[str, float] = {}
        self.raster_stats: Dict[str, Tuple[Tuple[int, ...], str, int]] = {}
        self.current_step: Optional[str] = None
        self.step_start_time: Optional[float] = None
        self.file_handler: Optional[logging.Handler] = None
        self.current_log_path: Optional[Path] = None

    def configure_run(self, log_dir: str | Path, run_label: str):
        """Route the log of one volume to ``<log_dir>/<run_label>.log``.

        Characters outside ``[A-Za-z0-9._-]`` in the label become underscores.
        Timing and raster records start empty for the new run.
        """
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"{re.sub(r'[^A-Za-z0-9._-]+', '_', run_label)}.log"

        self.close_run()
        self.file_handler = logging.FileHandler(log_path, mode='w')
        self.file_handler.setFormatter(self.formatter)
        self.logger.addHandler(self.file_handler)
        self.logger.info(f"Writing flatmap log to {log_path}")

        self.current_log_path = log_path
        self.step_times = {}
        self.raster_stats = {}
        self.current_step = None
        self.step_start_time = None

    def close_run(self):
        if self.file_handler is not None:
            self.logger.removeHandler(self.file_handler)
            self.file_handler.close()
            self.file_handler = None
        self.current_log_path = None

    def start_step(self, step_name: str, description: str = ""):
        if self.current_step:
            self.end_step()

        self.current_step = step_name
        self.step_start_time = time.time()
        self.logger.info(f"Step {step_name}" + (f": {description}" if description else ""))

    def end_step(self):
        if self.current_step and self.step_start_time:
            elapsed = time.time() - self.step_start_time
            self.step_times[self.current_step] = elapsed
            self.logger.info(f"Step {self.current_step} done in {elapsed:.2f}s")
            self.current_step = None
            self.step_start_time = None

    def log_substep(self, message: str):
        self.logger.info(f"  └─ {message}")

    def log_slice_counts(self, n_slices: int, n_valid: int, top_extent: int, bottom_extent: int):
        """Report how many slices yielded a contour and the offset range they span."""
        self.log_substep(f"{n_valid}/{n_slices} slices with a contour, "
                         f"offsets -{bottom_extent}..{top_extent}")

    def log_raster(self, name: str, raster: np.ndarray):
        """Record the shape, dtype and number of filled cells of a produced raster.

        Filled cells are non-NaN for float rasters and non-zero otherwise.
        """
        raster = np.asarray(raster)
        if np.issubdtype(raster.dtype, np.floating):
            filled = int(np.count_nonzero(~np.isnan(raster)))
        else:
            filled = int(np.count_nonzero(raster))
        self.raster_stats[name] = (raster.shape, str(raster.dtype), filled)
        self.logger.info(f"Raster {name}: {'x'.join(map(str, raster.shape))} {raster.dtype}, "
                         f"{filled}/{raster.size} cells filled")

    def get_step_times(self) -> Dict[str, float]:
        return self.step_times.copy()

    def get_raster_stats(self) -> Dict[str, Tuple[Tuple[int, ...], str, int]]:
        return self.raster_stats.copy()

    def log_summary(self):
        """Log step times and, when any were produced, the raster sizes."""
        if not self.step_times and not self.raster_stats:
            return

        total_time = sum(self.step_times.values())
        self.logger.info("=" * 60)
        self.logger.info("FLATMAP CONSTRUCTION SUMMARY")
        self.logger.info("=" * 60)
        for step, time_taken in self.step_times.items():
            percentage = time_taken / (total_time or 1e-12) * 100
            self.logger.info(f"{step:<30} {time_taken:>8.2f}s ({percentage:>5.1f}%)")
        self.logger.info(f"{'TOTAL TIME':<30} {total_time:>8.2f}s")
        if self.raster_stats:
            self.logger.info("-" * 60)
            for name, (shape, dtype, filled) in self.raster_stats.items():
                self.logger.info(f"{name:<30} {'x'.join(map(str, shape)):>12} {dtype:>8} {filled:>8} filled")
        self.logger.info("=" * 60)
