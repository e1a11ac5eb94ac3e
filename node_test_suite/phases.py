"""Sequencing of the suite's phases and their gated checks."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import TypeAlias
from pathlib import Path

from node_test_suite.config import SuiteConfig
from node_test_suite.ledger import ResultLedger
from node_test_suite.models.contract import ContractOutput
from node_test_suite.node_client import NodeClient
from node_test_suite.process import ManagedProcess, SpawnError
from node_test_suite.readiness import poll_until, sample_progress
from node_test_suite.tools import ToolInvoker, ToolResult

log = logging.getLogger(__name__)

Spawner: TypeAlias = Callable[..., Awaitable[ManagedProcess]]

UPSTREAM_INCOMPATIBILITY = "ReviveApi_instantiate is not found"
GRANTED_LEVEL = "Premium"
REQUIRED_LEVEL = "Basic"
OUTPUT_EXCERPT_LINES = 20

CRUD_DEPLOY = "CRUD: Deploy access_registry"
CRUD_GRANT = "CRUD: Grant entitlement"
CRUD_GET = "CRUD: Get entitlement"
CRUD_HAS = "CRUD: Has entitlement check"
CRUD_REVOKE = "CRUD: Revoke entitlement"
CRUD_CHECKS = (CRUD_DEPLOY, CRUD_GRANT, CRUD_GET, CRUD_HAS, CRUD_REVOKE)


def log_header(title: str) -> None:
    """Log a phase banner."""
    log.info("=" * 80)
    log.info("  %s", title)
    log.info("=" * 80)


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "K", "M"):
        if value < 1024:
            return f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}G"


@dataclass(kw_only=True)
class RunContext:
    """State carried from earlier phases to the gating of later checks."""

    node: ManagedProcess | None = None
    node_ready: bool = False

    @property
    def node_running(self) -> bool:
        """Whether the node was started and is still alive right now."""
        return self.node is not None and self.node.is_alive()

    @property
    def node_usable(self) -> bool:
        """Whether the node is alive and answered its health endpoint."""
        return self.node_running and self.node_ready


@dataclass(kw_only=True)
class PhaseExecutor:
    """Runs the environment, build, runtime and integration phases in order.

    Each check records exactly one outcome in the ledger. A check whose
    prerequisite did not succeed is recorded as skipped without attempting
    its underlying operation. Processes started here are registered on
    ``cleanup`` as soon as they exist, so the caller's exit stack stops them
    on every exit path.
    """

    config: SuiteConfig
    invoker: ToolInvoker
    node_client: NodeClient
    ledger: ResultLedger
    cleanup: AsyncExitStack
    spawn: Spawner = ManagedProcess.spawn
    context: RunContext = field(default_factory=RunContext)

    async def run(self) -> None:
        """Run phases one to four."""
        await self.validate_environment()
        await self.verify_build()
        await self.test_runtime()
        await self.test_integration()

    @property
    def root(self) -> Path:
        """Project root that commands run in."""
        return self.config.project_root

    async def _run(self, command: str | Path, *args: str | Path) -> ToolResult:
        return await self.invoker.run(command, *args, cwd=self.root)

    def _log_excerpt(self, result: ToolResult) -> None:
        if excerpt := result.excerpt(OUTPUT_EXCERPT_LINES):
            log.info("  Output (first %d lines):\n%s", OUTPUT_EXCERPT_LINES, excerpt)

    # Phase 1

    async def validate_environment(self) -> None:
        """Probe the toolchain and dependency source independently."""
        log_header("Phase 1: Environment Validation")

        rustc = await self._run("rustc", "--version")
        if rustc.ok:
            self.ledger.passed("Rust toolchain available")
            log.info("  Version: %s", rustc.stdout.strip())
        else:
            self.ledger.failed("Rust toolchain available", "rustc not found in PATH")

        targets = await self._run("rustup", "target", "list", "--installed")
        if self.config.wasm_target in targets.stdout:
            self.ledger.passed("WebAssembly target installed")
        else:
            self.ledger.failed(
                "WebAssembly target installed",
                f"{self.config.wasm_target} not installed",
            )

        cargo_contract = await self._run("cargo-contract", "--version")
        if cargo_contract.ok:
            self.ledger.passed("Ink! cargo-contract available")
            log.info("  Version: %s", cargo_contract.stdout.strip())
        else:
            self.ledger.failed(
                "Ink! cargo-contract available", "cargo-contract not found"
            )

        remote = await self._run(
            "git", "ls-remote", self.config.dependency_remote, "HEAD"
        )
        if remote.ok:
            self.ledger.passed("Git dependency access")
        else:
            self.ledger.failed(
                "Git dependency access", "Cannot reach GitHub (network issue?)"
            )

    # Phase 2

    async def verify_build(self) -> None:
        """Build the node, runtime and contracts and verify their artifacts."""
        log_header("Phase 2: Build Verification")

        log.info("Building node (this may take a while)...")
        await self._compile(
            "Node binary compilation",
            "cargo",
            "build",
            "--quiet",
            "--package",
            self.config.node_package,
        )

        log.info("Building runtime...")
        await self._compile(
            "Runtime compilation",
            "cargo",
            "build",
            "--quiet",
            "--package",
            self.config.runtime_package,
        )

        wasm = self.config.path(self.config.wasm_artifact)
        if wasm.is_file():
            self.ledger.passed("Runtime WASM artifact exists")
            log.info("  WASM size: %s", _human_size(wasm.stat().st_size))
        else:
            self.ledger.failed(
                "Runtime WASM artifact exists", f"WASM file not found at {wasm}"
            )

        await self._check_node_version()

        log.info("Building smart contracts...")
        for contract in self.config.contracts:
            await self._build_contract(contract)

    async def _compile(self, name: str, command: str, *args: str | Path) -> bool:
        result = await self._run(command, *args)
        if result.ok:
            self.ledger.passed(name)
            return True
        self.ledger.failed(name, "Compilation failed")
        self._log_excerpt(result)
        return False

    async def _check_node_version(self) -> None:
        name = "Node version reports correctly"
        binary = self.config.path(self.config.node_binary)
        if not binary.is_file():
            self.ledger.skipped(name, "Node binary not available")
            return

        result = await self._run(binary, "--version")
        version = result.output.strip()
        if self.config.node_identity in version:
            self.ledger.passed(name)
            log.info("  Version: %s", version)
        else:
            self.ledger.failed(name, f"Unexpected version output: {version}")

    async def _build_contract(self, contract: str) -> None:
        compile_name = f"Contract: {contract} compilation"
        artifacts_name = f"Contract: {contract} artifacts"

        contract_dir = self.config.contract_dir(contract)
        if not contract_dir.is_dir():
            self.ledger.skip_all((compile_name, artifacts_name), "Directory not found")
            return

        log.info("  Building %s...", contract)
        built = await self._compile(
            compile_name,
            "cargo",
            "contract",
            "build",
            "--quiet",
            "--release",
            "--manifest-path",
            contract_dir / "Cargo.toml",
        )
        if not built:
            self.ledger.skipped(artifacts_name, "Compilation failed")
            return

        package, metadata = self.config.contract_artifacts(contract)
        if package.is_file() and metadata.is_file():
            self.ledger.passed(artifacts_name)
        else:
            self.ledger.failed(artifacts_name, "Missing .contract or .json file")

    # Phase 3

    async def test_runtime(self) -> None:
        """Start the node, wait for health and check block production."""
        log_header("Phase 3: Runtime Testing")
        await self._start_node()
        await self._check_health()
        await self._check_block_production()

    async def _start_node(self) -> None:
        name = "Node process starts"
        binary = self.config.path(self.config.node_binary)
        if not binary.is_file():
            self.ledger.skipped(name, "Node binary not available")
            return

        log.info("Starting node in dev mode...")
        try:
            node = await self.spawn(
                binary,
                list(self.config.node_args),
                log_path=self.config.path(self.config.node_log),
                settle=self.config.start_settle,
            )
        except SpawnError as e:
            log.debug("Node spawn failed: %s", e)
            self.ledger.failed(name, "Process died immediately")
            return

        self.cleanup.push_async_callback(node.stop, self.config.stop_grace)
        self.context.node = node
        self.ledger.passed(name)
        log.info("  Node PID: %d", node.pid)

    async def _check_health(self) -> None:
        name = "Node health endpoint responsive"
        if not self.context.node_running:
            self.ledger.skipped(name, "Node not running")
            return

        log.info("Waiting for node to be ready...")
        poll = await poll_until(
            self.node_client.is_healthy,
            interval=self.config.health_interval,
            max_attempts=self.config.health_attempts,
        )
        if not poll.ready:
            self.ledger.failed(name, "Timeout waiting for health endpoint")
            return

        self.context.node_ready = True
        self.ledger.passed(name)
        log.info("  Health: %s", await self.node_client.health())

    async def _check_block_production(self) -> None:
        name = "Block production active"
        if not self.context.node_usable:
            self.ledger.skipped(name, "Node not ready")
            return

        log.info("Monitoring block production...")
        settle = self.config.progress_settle
        sample = await sample_progress(self.node_client.block_number, settle)
        if sample.advanced:
            self.ledger.passed(name)
            log.info("  Block height: %s → %s", sample.first, sample.second)
        elif not sample.complete:
            self.ledger.failed(name, "Could not read block height from node RPC")
        else:
            self.ledger.failed(name, f"No new blocks produced in {settle:g} seconds")

    # Phase 4

    async def test_integration(self) -> None:
        """Build the deployer, deploy all contracts and run the CRUD cycle."""
        log_header("Phase 4: Integration Testing")

        log.info("Building deployer tool...")
        await self._compile(
            "Deployer tool compilation",
            "cargo",
            "build",
            "--quiet",
            "--manifest-path",
            self.config.path(self.config.deployer_manifest),
        )

        await self._deploy_all()
        await self.run_crud_cycle()

    async def _deploy_all(self) -> None:
        name = "Contract deployment (all contracts)"
        deployer = self.config.path(self.config.deployer_binary)
        if not deployer.is_file():
            self.ledger.skipped(name, "Deployer not available")
            return
        if not self.context.node_usable:
            self.ledger.skipped(name, "Node not running")
            return

        log.info("Deploying contracts with deployer tool...")
        result = await self._run(
            deployer,
            "--endpoint",
            self.config.ws_url,
            "deploy-all",
            "--account",
            self.config.deploy_account,
        )
        if result.ok:
            self.ledger.passed(name)
            if "Contract address" in result.output:
                log.info("  Deployment successful, contracts instantiated")
        else:
            self.ledger.failed(name, f"Deployer exited with code {result.exit_code}")
            self._log_excerpt(result)

    async def run_crud_cycle(self) -> None:
        """Deploy the registry contract and grant, read and revoke an entitlement.

        The four steps after the deploy are only attempted once the deploy
        produced a contract address; otherwise they are skipped together with
        the reason the deploy did not happen.
        """
        contract_file, _ = self.config.contract_artifacts(self.config.crud_contract)

        if not self.context.node_usable:
            self.ledger.skip_all(CRUD_CHECKS, "Node not running")
            return
        if not contract_file.is_file():
            self.ledger.skip_all(CRUD_CHECKS, "Contract not built")
            return

        log.info("Starting Access Registry CRUD test cycle...")
        log.info("Deploying %s contract...", self.config.crud_contract)
        instantiate = await self._run(
            "cargo",
            "contract",
            "instantiate",
            "--suri",
            self.config.signer_suri,
            "--url",
            self.config.ws_url,
            "--constructor",
            "new",
            "--output-json",
            "-x",
            "-y",
            contract_file,
        )

        if UPSTREAM_INCOMPATIBILITY in instantiate.output:
            log.warning(
                "Runtime uses pallet-contracts but cargo-contract "
                "requires pallet-revive"
            )
            self.ledger.skipped(
                CRUD_DEPLOY,
                "pallet-revive not available (runtime uses pallet-contracts)",
            )
            self.ledger.skip_all(CRUD_CHECKS[1:], "pallet-revive not available")
            return

        address = ContractOutput.parse(instantiate.output).contract_address
        if address is None:
            self.ledger.failed(CRUD_DEPLOY, "No contract address")
            self._log_excerpt(instantiate)
            self.ledger.skip_all(CRUD_CHECKS[1:], "Deploy failed")
            return

        self.ledger.passed(CRUD_DEPLOY)
        log.info("  Contract address: %s", address)
        await self._crud_steps(address, contract_file)

    async def _crud_steps(self, address: str, contract_file: Path) -> None:
        target = self.config.target_address

        log.info("Granting %s entitlement to %s...", GRANTED_LEVEL, target)
        grant, output = await self._call(
            address,
            contract_file,
            "grant_entitlement",
            (target, GRANTED_LEVEL),
            execute=True,
        )
        if grant.ok and output.has_status_marker():
            self.ledger.passed(CRUD_GRANT)
        else:
            self.ledger.failed(CRUD_GRANT, "Grant failed")

        log.info("Querying %s entitlement...", target)
        _, output = await self._call(
            address, contract_file, "get_entitlement", (target,)
        )
        if output.contains(GRANTED_LEVEL):
            self.ledger.passed(CRUD_GET)
            log.info("  Result: %s (as expected)", GRANTED_LEVEL)
        else:
            self.ledger.failed(CRUD_GET, f"Expected {GRANTED_LEVEL}")

        log.info("Checking has_entitlement(%s, %s)...", target, REQUIRED_LEVEL)
        _, output = await self._call(
            address, contract_file, "has_entitlement", (target, REQUIRED_LEVEL)
        )
        if output.contains("true"):
            self.ledger.passed(CRUD_HAS)
            log.info("  Result: true (%s >= %s)", GRANTED_LEVEL, REQUIRED_LEVEL)
        else:
            self.ledger.failed(CRUD_HAS, "Expected true")

        log.info("Revoking %s entitlement...", target)
        revoke, _ = await self._call(
            address, contract_file, "revoke_entitlement", (target,), execute=True
        )
        if not revoke.ok:
            self.ledger.failed(CRUD_REVOKE, "Revoke call failed")
            return

        _, output = await self._call(
            address, contract_file, "get_entitlement", (target,)
        )
        if output.contains("None"):
            self.ledger.passed(CRUD_REVOKE)
            log.info("  Entitlement revoked successfully")
        else:
            self.ledger.failed(CRUD_REVOKE, "Entitlement not cleared")

    async def _call(
        self,
        address: str,
        contract_file: Path,
        message: str,
        args: Sequence[str] = (),
        *,
        execute: bool = False,
    ) -> tuple[ToolResult, ContractOutput]:
        """Call a contract message; ``execute`` submits it as a transaction."""
        argv: list[str | Path] = [
            "contract",
            "call",
            "--suri",
            self.config.signer_suri,
            "--url",
            self.config.ws_url,
            "--contract",
            address,
            "--message",
            message,
        ]
        if args:
            argv += ["--args", *args]
        argv.append("--output-json")
        if execute:
            argv += ["-x", "-y"]
        argv.append(contract_file)

        result = await self._run("cargo", *argv)
        return result, ContractOutput.parse(result.output)
