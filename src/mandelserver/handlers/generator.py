"""
=============================================================================
MANDELBROT MOVIE GENERATOR
=============================================================================

Adapter around the external programs that render a zoom movie centred on
a point of the Mandelbrot set.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      generate(x=0.5, y=-1.25)                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   cwd = generator_dir                                               │
    │                                                                      │
    │   1. RENDER   ./mandelmovie -c 10 -m 100 -x 0.5 -y -1.25            │
    │               └── writes mandel1.jpg ... mandel10.jpg               │
    │                                                                      │
    │   2. ENCODE   ffmpeg -nostdin -y -i mandel%d.jpg mandel.mp4         │
    │               └── writes mandel.mp4                                 │
    │                                                                      │
    │   3. PUBLISH  copy mandel.mp4 → <content_root>/mandel.mp4           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Commands are argument lists run without a shell, so nothing from the
request is ever interpreted as shell syntax. The numbers arrive as floats
and are formatted with repr(), which round-trips exactly.

Both programs get /dev/null as stdin. They never read keystrokes from the
server's terminal or stop on SIGTTIN when the server runs in the background.

Each call blocks its connection unit until all three steps finish.
Concurrent calls write the same files; there is no locking.

=============================================================================
"""

import os
import shutil
import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    """Typed parameters for one movie."""

    x: float
    y: float
    frame_count: int = 10
    max_iterations: int = 100


@dataclass(frozen=True)
class GenerationResult:
    """
    Outcome of a generation run.

    Attributes:
        ok: True if every step succeeded.
        output_path: Where the artifact is published in the content root.
        step: Name of the failing step ("render", "encode", "publish").
        returncode: Exit status of the failing command, if it ran.
        message: Human-readable failure description.
    """

    ok: bool
    output_path: str
    step: Optional[str] = None
    returncode: Optional[int] = None
    message: str = ""


class ContentGenerator(ABC):
    """
    Interface the dispatcher talks to.

    Subclasses implement generate(); artifact_uri tells the dispatcher which
    request path to re-resolve afterwards.
    """

    artifact_uri: str = "/"

    @abstractmethod
    def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Produce the artifact for `request` and block until it is done.

        Must not raise for external failures; report them in the result.
        """
        pass


class MandelbrotGenerator(ContentGenerator):
    """
    Runs mandelmovie + ffmpeg and publishes the result.

    Usage:
        generator = MandelbrotGenerator(
            workdir="/opt/mandelbrot",
            content_root="httpdocs",
        )
        result = generator.generate(GenerationRequest(x=0.5, y=-1.25))
    """

    def __init__(
        self,
        workdir: str,
        content_root: str,
        program: str = "./mandelmovie",
        encoder: str = "ffmpeg",
        artifact_name: str = "mandel.mp4",
        timeout: Optional[float] = None,
    ):
        self.workdir = workdir
        self.content_root = content_root
        self.program = program
        self.encoder = encoder
        self.artifact_name = artifact_name
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "MandelbrotGenerator":
        return cls(
            workdir=config.generator_dir,
            content_root=config.content_root,
            program=config.generator_program,
            encoder=config.encoder_program,
            artifact_name=config.artifact_name,
            timeout=config.generator_timeout,
        )

    @property
    def artifact_uri(self) -> str:
        return "/" + self.artifact_name

    @property
    def output_path(self) -> str:
        return os.path.join(self.content_root, self.artifact_name)

    def render_command(self, request: GenerationRequest) -> List[str]:
        return [
            self.program,
            "-c", str(request.frame_count),
            "-m", str(request.max_iterations),
            "-x", repr(request.x),
            "-y", repr(request.y),
        ]

    def encode_command(self) -> List[str]:
        return [self.encoder, "-nostdin", "-y", "-i", "mandel%d.jpg", self.artifact_name]

    def generate(self, request: GenerationRequest) -> GenerationResult:
        logger.info(f"Generating movie at ({request.x}, {request.y})")

        failure = (
            self._run("render", self.render_command(request))
            or self._run("encode", self.encode_command())
        )
        if failure is not None:
            return failure

        try:
            shutil.copyfile(
                os.path.join(self.workdir, self.artifact_name),
                self.output_path,
            )
        except OSError as e:
            logger.error(f"Publishing {self.artifact_name} failed: {e}")
            return GenerationResult(
                ok=False,
                output_path=self.output_path,
                step="publish",
                message=str(e),
            )

        logger.info(f"Movie published to {self.output_path}")
        return GenerationResult(ok=True, output_path=self.output_path)

    def _run(self, step: str, command: List[str]) -> Optional[GenerationResult]:
        """Run one step. Returns a failed result, or None on success."""
        logger.debug(f"{step}: {' '.join(command)}")
        try:
            completed = subprocess.run(
                command,
                cwd=self.workdir,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"{step} step timed out after {self.timeout}s")
            return GenerationResult(
                ok=False,
                output_path=self.output_path,
                step=step,
                message=f"timed out after {self.timeout}s",
            )
        except OSError as e:
            # Program missing, not executable, or workdir missing
            logger.error(f"{step} step could not start: {e}")
            return GenerationResult(
                ok=False,
                output_path=self.output_path,
                step=step,
                message=str(e),
            )

        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            logger.error(f"{step} step exited with {completed.returncode}: {stderr[-500:]}")
            return GenerationResult(
                ok=False,
                output_path=self.output_path,
                step=step,
                returncode=completed.returncode,
                message=stderr[-500:],
            )
        return None
