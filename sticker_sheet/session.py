"""Interactive recompute session for one sprite sheet.

Parameter edits are debounced and only the newest recompute is published.
GIF synthesis is never automatic: callers trigger it, and ``gif_outdated``
flags when frame settings changed after the last synthesis.
"""

import asyncio
import sys

from .gif_encoder import DEFAULT_FPS, synthesize_gif
from .grid import GridConfig, Slice, slice_to_grid
from .image_utils import Raster, remove_background

DEBOUNCE_SECONDS = 0.2


class EditorSession:
    """Holds the source sheet, the current GridConfig and the latest slices.

    Must be driven from a running asyncio event loop.
    """

    def __init__(self, source: Raster, config: GridConfig | None = None, debounce: float = DEBOUNCE_SECONDS):
        self.source = source
        self.config = config if config else GridConfig()
        self.debounce = debounce

        self.slices: list[Slice] = []
        self.gif: bytes | None = None
        self.gif_outdated = False

        self._generation = 0
        self._task: asyncio.Task | None = None
        self._keyed: tuple[float, Raster] | None = None

    def update(self, **changes) -> bool:
        """Apply GridConfig field changes and schedule a recompute.

        Returns:
            True if the config changed, False if the edit was a no-op.
        """
        config = self.config.replace(**changes)
        if config == self.config:
            return False
        self.config = config
        if self.gif is not None:
            self.gif_outdated = True
        self.refresh()
        return True

    def refresh(self) -> asyncio.Task:
        """Schedule a debounced recompute, superseding any earlier request."""
        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(
            self._recompute(self._generation, self.config)
        )
        return self._task

    async def _keyed_source(self, tolerance: float) -> Raster:
        if self._keyed is None or self._keyed[0] != tolerance:
            keyed = await asyncio.to_thread(remove_background, self.source, tolerance)
            self._keyed = (tolerance, keyed)
        return self._keyed[1]

    async def _recompute(self, generation: int, config: GridConfig) -> list[Slice] | None:
        await asyncio.sleep(self.debounce)
        if generation != self._generation:
            return None

        keyed = await self._keyed_source(config.tolerance)
        slices = await asyncio.to_thread(slice_to_grid, keyed, config)

        if generation != self._generation:
            # A newer request finished or is pending; drop this result
            for stale in slices:
                stale.release()
            return None

        for old in self.slices:
            old.release()
        self.slices = slices
        print(f"Recomputed {len(slices)} slices ({config.rows}x{config.cols} grid)", file=sys.stderr)
        return slices

    async def wait(self) -> list[Slice]:
        """Wait for the newest scheduled recompute and return the published slices."""
        while self._task is not None:
            task = self._task
            await task
            if task is self._task:
                break
        return self.slices

    async def synthesize_gif(self, fps: float = DEFAULT_FPS) -> bytes:
        """Build the GIF from the current slices.

        ``gif_outdated`` is left set if the config changed while encoding.
        """
        slices = await self.wait()
        generation = self._generation
        data = await asyncio.to_thread(synthesize_gif, [s.raster for s in slices], fps)
        self.gif = data
        self.gif_outdated = generation != self._generation
        return data
