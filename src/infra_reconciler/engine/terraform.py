"""Terraform CLI adapter implementing the declarative engine state interface."""

import json
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from infra_reconciler.utils.errors import ConfigurationError, ErrorContext, ExecutionFailure
from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)

# Phrases Terraform prints when there is simply no state yet
NO_STATE_MARKERS = ("No state file was found", "No state file found")


class TerraformEngine:
    """Runs ``terraform`` in a working directory.

    Every call has an explicit timeout. Failures raise ``ExecutionFailure``
    carrying Terraform's stderr verbatim.
    """

    def __init__(
        self,
        work_dir: Path,
        variables: Optional[Mapping[str, str]] = None,
        timeout: float = 300.0,
        binary: str = "terraform"
    ):
        """Initialize Terraform engine.

        Args:
            work_dir: Terraform root module directory
            variables: Input variables passed as ``-var`` to import/plan/apply
            timeout: Timeout in seconds for each Terraform invocation
            binary: Terraform executable
        """
        self.work_dir = Path(work_dir)
        self.variables = dict(variables or {})
        self.timeout = timeout
        self.binary = binary

    def _var_args(self) -> List[str]:
        args = []
        for key, value in sorted(self.variables.items()):
            args.extend(["-var", f"{key}={value}"])
        return args

    def _run(
        self,
        *args: str,
        operation: str,
        address: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> subprocess.CompletedProcess:
        """Run a terraform command and return the completed process.

        Raises:
            ConfigurationError: If the terraform binary is missing
            ExecutionFailure: On timeout
        """
        cmd = [self.binary, *args]
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            return subprocess.run(
                cmd,
                cwd=str(self.work_dir),
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Terraform executable not found: {self.binary}",
                cause=e,
                suggestions=["Install Terraform and make sure it is on PATH"]
            )
        except subprocess.TimeoutExpired as e:
            raise ExecutionFailure(
                f"terraform {operation} timed out after {e.timeout}s",
                context=ErrorContext(resource_id=address, operation=operation),
                cause=e
            )

    def _check(
        self,
        result: subprocess.CompletedProcess,
        operation: str,
        address: Optional[str] = None
    ) -> str:
        if result.returncode != 0:
            raise ExecutionFailure(
                f"terraform {operation} failed: {result.stderr.strip() or result.stdout.strip()}",
                context=ErrorContext(
                    resource_id=address,
                    operation=operation,
                    additional_info={'returncode': result.returncode, 'stderr': result.stderr}
                )
            )
        return result.stdout

    def is_initialized(self) -> bool:
        """Check whether ``terraform init`` has been run."""
        return (self.work_dir / ".terraform").is_dir()

    def init(self, upgrade: bool = False) -> str:
        """Initialize the working directory."""
        args = ["init", "-input=false", "-no-color"]
        if upgrade:
            args.append("-upgrade")
        return self._check(self._run(*args, operation="init"), "init")

    def list(self) -> List[str]:
        """List tracked resource addresses (``terraform state list``)."""
        result = self._run("state", "list", operation="state list")
        if result.returncode != 0 and any(m in result.stderr for m in NO_STATE_MARKERS):
            return []
        output = self._check(result, "state list")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def pull_state(self) -> Optional[str]:
        """Fetch the raw state document (``terraform state pull``).

        Returns:
            State JSON text, or None when no state exists yet
        """
        result = self._run("state", "pull", operation="state pull")
        if result.returncode != 0 and any(m in result.stderr for m in NO_STATE_MARKERS):
            return None
        output = self._check(result, "state pull")
        return output if output.strip() else None

    def import_resource(self, address: str, native_id: str) -> str:
        """Bring an existing resource under management (``terraform import``)."""
        logger.info(f"Importing {address} <- {native_id}")
        result = self._run(
            "import", "-input=false", "-no-color", *self._var_args(), address, native_id,
            operation="import", address=address
        )
        return self._check(result, "import", address)

    def remove(self, address: str) -> str:
        """Stop tracking a resource without touching it (``terraform state rm``)."""
        logger.info(f"Removing {address} from state")
        result = self._run("state", "rm", "-no-color", address, operation="state rm", address=address)
        return self._check(result, "state rm", address)

    def plan(self, out: str = "tfplan") -> str:
        """Create a saved plan for the engine's own apply phase."""
        result = self._run(
            "plan", "-input=false", "-no-color", *self._var_args(), f"-out={out}",
            operation="plan"
        )
        return self._check(result, "plan")

    def apply(self, plan_file: str = "tfplan") -> str:
        """Apply a saved plan."""
        result = self._run("apply", "-input=false", "-no-color", plan_file, operation="apply")
        return self._check(result, "apply")

    def output(self) -> Dict[str, Any]:
        """Read root module outputs."""
        output = self._check(self._run("output", "-json", operation="output"), "output")
        return json.loads(output) if output.strip() else {}
