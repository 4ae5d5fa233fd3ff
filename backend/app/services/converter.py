"""
Conversion execution collaborator.

The workflow only depends on the ConversionExecutor protocol. The shipped
SimulatedConverter stands in for a real job queue: it waits a fixed delay and
returns the input bytes under the new filename.
"""

import asyncio
from typing import Protocol

import structlog

from app.errors import ConversionExecutionError
from app.models.conversion import ConvertedFile, FormatKey
from app.services.format_registry import output_filename

logger = structlog.get_logger(__name__)


class ConversionExecutor(Protocol):
    async def convert(
        self,
        content: bytes,
        filename: str,
        source: FormatKey,
        target: FormatKey,
    ) -> ConvertedFile:
        """Convert content from source to target.

        Raises:
            ConversionExecutionError: the output could not be produced.
        """


class SimulatedConverter:
    """Fixed-delay stand-in for a conversion worker."""

    def __init__(self, delay_seconds: float = 2.0) -> None:
        self.delay_seconds = delay_seconds

    async def convert(
        self,
        content: bytes,
        filename: str,
        source: FormatKey,
        target: FormatKey,
    ) -> ConvertedFile:
        if source == target:
            raise ConversionExecutionError(f"Source and target are both {source.value}")

        logger.info(
            "simulated_conversion_started",
            filename=filename,
            source=source.value,
            target=target.value,
            delay_seconds=self.delay_seconds,
        )
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        return ConvertedFile(
            filename=output_filename(filename, target),
            format=target,
            content=content,
        )
