"""Configuration for the node test suite."""

from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_CONTRACTS = (
    "access_registry",
    "attribute_store",
    "policy_engine",
    "payment_integration",
)


class SuiteConfig(BaseModel):
    """Paths, endpoints, identities and timing budgets for a suite run.

    Relative paths are resolved against ``project_root``.
    """

    project_root: Path = Field(default_factory=Path.cwd)

    # Build targets
    node_package: str = "arkavo-node"
    runtime_package: str = "arkavo-runtime"
    node_binary: Path = Path("target/debug/arkavo-node")
    node_identity: str = "arkavo-node"
    node_args: Sequence[str] = ("--dev", "--tmp")
    wasm_artifact: Path = Path(
        "target/debug/wbuild/arkavo-runtime/arkavo_runtime.wasm"
    )
    wasm_target: str = "wasm32-unknown-unknown"
    dependency_remote: str = "https://github.com/paritytech/polkadot-sdk.git"

    # Contracts
    contracts: Sequence[str] = DEFAULT_CONTRACTS
    contracts_dir: Path = Path("contracts")
    ink_output_dir: Path = Path("contracts/target/ink")
    crud_contract: str = "access_registry"

    # Deployer
    deployer_manifest: Path = Path("tools/deployer/Cargo.toml")
    deployer_binary: Path = Path("tools/deployer/target/debug/deployer")
    deploy_account: str = "alice"

    # Node endpoints and identities
    rpc_url: str = "http://127.0.0.1:9944"
    ws_url: str = "ws://127.0.0.1:9944"
    health_path: str = "/health"
    signer_suri: str = "//Alice"
    target_address: str = "0x8eaf04151687736326c9fea17e25fc5287613693"

    # Output files
    report_path: Path = Path("tools/test-results.md")
    node_log: Path = Path("tools/node-test.log")

    # Timing budgets (seconds)
    start_settle: float = 3.0
    stop_grace: float = 2.0
    health_interval: float = 1.0
    health_attempts: int = Field(default=30, ge=1)
    progress_settle: float = 15.0
    rpc_timeout: float = 5.0
    tool_timeout: float | None = 3600.0

    def path(self, relative: Path) -> Path:
        """Resolve a configured path against the project root."""
        return relative if relative.is_absolute() else self.project_root / relative

    def contract_dir(self, contract: str) -> Path:
        """Source directory of a contract."""
        return self.path(self.contracts_dir) / contract

    def contract_artifacts(self, contract: str) -> tuple[Path, Path]:
        """Package and metadata files produced by building a contract."""
        output_dir = self.path(self.ink_output_dir) / contract
        return output_dir / f"{contract}.contract", output_dir / f"{contract}.json"
