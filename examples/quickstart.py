"""Quick start: trace an application and reconcile its Dockerfile (needs a Docker daemon)."""

import sys
from pathlib import Path

from fix_dockerfile import ContainerEngine, ReconciliationPipeline, ToolingUnavailableError
from fix_dockerfile.utils.io import load_file
from fix_dockerfile.utils.ui import print_diagnostics, print_dockerfile

source_tree = Path(sys.argv[1] if len(sys.argv) > 1 else ".").resolve()
dockerfile = source_tree / "Dockerfile"

pipeline = ReconciliationPipeline(
    ContainerEngine(),
    scratch_dir=source_tree / ".fix-dockerfile",
    duration=5,
)

# Example 1: one trace cycle
try:
    cycle = pipeline.run_cycle(source_tree)
except ToolingUnavailableError as e:
    print(f"Docker is not available: {e}")
    sys.exit(1)

print(f"Ports seen: {cycle.features.ports}")
print(f"Packages added by the build: {cycle.features.packages}")
print_dockerfile(cycle.alternative.text, title="Synthesized Dockerfile")

# Example 2: diagnostics against the trace, then repairs
text = load_file(dockerfile)
print_diagnostics(pipeline.diagnose(text), title=str(dockerfile))

result = pipeline.repair_all(text)
print_dockerfile(result.text, title="Repaired Dockerfile")
