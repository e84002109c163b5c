import subprocess
from dataclasses import dataclass
from typing import List, Optional


def mask_product_key(key: str) -> str:
    """Hide everything but the last group of a product key."""
    if not key:
        return ""
    groups = key.split("-")
    if len(groups) < 2:
        return "*" * max(len(key) - 5, 0) + key[-5:]
    return "-".join(["*" * len(g) for g in groups[:-1]] + [groups[-1]])


@dataclass
class ToolResult:
    """Outcome of one slmgr invocation."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return (self.stdout or self.stderr or "").strip()


class LicenseManagerTool:
    """
    Run the Windows Software License Manager (slmgr.vbs).

    Exit codes from slmgr are not a reliable success signal, so failures
    are returned to the caller rather than raised.
    """

    def __init__(
        self,
        slmgr_path: str = "C:\\Windows\\System32\\slmgr.vbs",
        cscript_path: str = "cscript.exe",
        timeout: Optional[int] = 120
    ):
        self.slmgr_path = slmgr_path
        self.cscript_path = cscript_path
        self.timeout = timeout

    def _build_command(self, *args: str) -> List[str]:
        return [self.cscript_path, "//nologo", self.slmgr_path, *args]

    def _run_command(self, cmd: List[str], display_args: Optional[List[str]] = None) -> ToolResult:
        """Run slmgr and wait for it to finish."""
        shown = display_args or cmd
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            return ToolResult(args=shown, returncode=-1, stderr=str(e))

        return ToolResult(
            args=shown,
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or ""
        )

    def install_product_key(self, product_key: str) -> ToolResult:
        """Install a product key (slmgr /ipk)."""
        cmd = self._build_command("/ipk", product_key)
        return self._run_command(cmd, self._build_command("/ipk", mask_product_key(product_key)))

    def activate(self, activation_id: Optional[str] = None) -> ToolResult:
        """Request online activation (slmgr /ato), optionally for one activation ID."""
        args = ["/ato"]
        if activation_id:
            args.append(activation_id)
        return self._run_command(self._build_command(*args))

    def display_license_info(self, activation_id: Optional[str] = None) -> ToolResult:
        """Detailed license information (slmgr /dlv)."""
        args = ["/dlv"]
        if activation_id:
            args.append(activation_id)
        return self._run_command(self._build_command(*args))
