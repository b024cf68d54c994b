import asyncio
import logging

from ..config import SCAFFOLD_PHP_BINARY, SCAFFOLD_PROJECT_DIR, SCAFFOLD_TIMEOUT_SECS

logger = logging.getLogger(__name__)


class ScaffoldCommandError(RuntimeError):
    pass


class ScaffoldRunner:
    """Runs ``artisan make:model`` inside a configured Laravel project."""

    def __init__(
        self,
        project_dir: str = SCAFFOLD_PROJECT_DIR,
        php_binary: str = SCAFFOLD_PHP_BINARY,
        timeout: float = SCAFFOLD_TIMEOUT_SECS,
    ) -> None:
        self._project_dir = project_dir
        self._php = php_binary
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self._project_dir)

    async def make_model(self, name: str, flags: list[str]) -> bool:
        """Return True if the command ran, False if no project is configured."""
        if not self.enabled:
            logger.info("No scaffold project configured, skipping make:model %s", name)
            return False

        cmd = [self._php, "artisan", "make:model", name, *flags, "--no-interaction"]
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=self._project_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise ScaffoldCommandError(f"make:model {name} timed out") from None

        if proc.returncode != 0:
            raise ScaffoldCommandError(
                f"make:model {name} exited with {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )
        logger.info("Scaffolded model %s (%s)", name, " ".join(flags) or "no extras")
        return True
