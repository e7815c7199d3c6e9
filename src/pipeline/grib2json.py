"""
grib2json Decoder

Runs the external grib2json tool that turns one GRIB2 message selection into
a JSON array of records.
"""

import asyncio
import logging
import shlex
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)


class DecoderError(RuntimeError):
    """grib2json could not produce output for a product."""

    def __init__(self, returncode: int, input_path: Union[str, Path], message: str = ""):
        self.returncode = returncode
        self.input_path = str(input_path)
        super().__init__(message or f"grib2json failed ({returncode}): {input_path}")


class Grib2Json:
    """Invokes grib2json as a subprocess without blocking the event loop."""

    def __init__(self, command: str = "grib2json", flags: str = "-c -d -n"):
        self.command = shlex.split(command)
        self.flags = shlex.split(flags)

    def build_args(
        self,
        recipe_filter: str,
        output_path: Union[str, Path],
        input_path: Union[str, Path]
    ) -> List[str]:
        return [
            *self.command,
            *shlex.split(recipe_filter),
            *self.flags,
            "-o", str(output_path),
            str(input_path),
        ]

    async def run(
        self,
        recipe_filter: str,
        output_path: Union[str, Path],
        input_path: Union[str, Path]
    ) -> int:
        """
        Decode `input_path` into `output_path`.

        Returns:
            The process exit code

        Raises:
            DecoderError: If the grib2json executable cannot be started
        """
        args = self.build_args(recipe_filter, output_path, input_path)
        logger.debug(f"Running: {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise DecoderError(-1, input_path, f"grib2json not found ({self.command[0]}): {e}") from e

        output, _ = await process.communicate()
        if output:
            for line in output.decode(errors="replace").splitlines():
                if line.strip():
                    logger.info(f"  grib2json: {line}")

        return process.returncode
