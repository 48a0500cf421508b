"""Example usage of the static checker and the repair loop (no container engine needed)."""

from fix_dockerfile import ReconciliationPipeline, check_repairable_problems, parse_dockerfile
from fix_dockerfile.utils.ui import print_comparison, print_diagnostics

DOCKERFILE = """FROM node
MAINTAINER someone@example.com
RUN apt-get install curl
RUN curl http://example.com/setup.sh | sh
COPY . .
CMD ["node", "server.js"]
"""


def example_repair_dockerfile():
    """Report the static problems of a Dockerfile, then repair all of them."""
    print_diagnostics(check_repairable_problems(parse_dockerfile(DOCKERFILE)), title="Before")

    # repairs that need no trace never touch the engine
    pipeline = ReconciliationPipeline(engine=None, scratch_dir=".fix-dockerfile")
    result = pipeline.repair_all(DOCKERFILE)

    print_comparison(DOCKERFILE, result.text)
    for edit in result.edits:
        print(f"{edit.code}: {edit.title}")


if __name__ == "__main__":
    example_repair_dockerfile()
