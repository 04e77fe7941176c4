"""
Pytest configuration for the curriculum queue tests.

Provides an autouse logging run per test module, zero-delay queue
settings, and scriptable fake generation collaborators.
"""

import asyncio
import os
from collections.abc import Generator
from typing import Optional

import pytest

from curriculum.batch_queue import GenerationError, PhaseConfig, RunConfig, SchedulingMode
from curriculum.config import QueueSettings
from curriculum.logging import end_run, start_run


@pytest.fixture(autouse=True)
def logging_run(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    """Rotate logs at test module boundaries.

    With pytest-xdist, each worker gets its own log directory.
    """
    worker_id = os.environ.get("PYTEST_XDIST_WORKER")
    if worker_id:
        os.environ["CURRICULUM_LOG_DIR"] = f"logs/test-{worker_id}"

    test_path = request.node.nodeid.split("::")[0]
    test_name = test_path.replace("/", "-").replace(".py", "")
    start_run(f"test-{test_name}")
    yield
    end_run()


class FakeGenerators:
    """Scriptable phase collaborators.

    ``fail_structure`` / ``fail_content`` map a topic to how many calls
    fail before one succeeds (``ALWAYS`` never succeeds). ``gates`` maps a
    topic to an asyncio.Event the structure call waits on, and ``started``
    is set whenever a gated call begins.
    """

    ALWAYS = 10**9

    def __init__(
        self,
        fail_structure: Optional[dict[str, int]] = None,
        fail_content: Optional[dict[str, int]] = None,
    ):
        self.fail_structure = dict(fail_structure or {})
        self.fail_content = dict(fail_content or {})
        self.calls: list[tuple[str, str]] = []
        self.content_structures: dict[str, str] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.started = asyncio.Event()

    def count(self, phase: str, topic: Optional[str] = None) -> int:
        return sum(1 for p, t in self.calls if p == phase and (topic is None or t == topic))

    async def generate_structure(self, topic: str, phase_config: PhaseConfig) -> str:
        self.calls.append(("structure", topic))
        gate = self.gates.get(topic)
        if gate is not None:
            self.started.set()
            await gate.wait()
        else:
            await asyncio.sleep(0)

        if self.fail_structure.get(topic, 0) > 0:
            self.fail_structure[topic] -= 1
            raise GenerationError(f"structure service unavailable for {topic}", provider=phase_config.provider)
        return f"# {topic}\n\n1. Basics\n2. Details"

    async def generate_content(self, topic: str, structure: str, phase_config: PhaseConfig) -> str:
        self.calls.append(("content", topic))
        self.content_structures[topic] = structure
        await asyncio.sleep(0)

        if self.fail_content.get(topic, 0) > 0:
            self.fail_content[topic] -= 1
            raise GenerationError(f"content service unavailable for {topic}", provider=phase_config.provider)
        return f"Full note on {topic}"


@pytest.fixture
def settings(tmp_path) -> QueueSettings:
    """Zero-delay settings so retries and cooldowns do not slow tests."""
    return QueueSettings(
        max_attempts=3,
        base_delay=0.0,
        max_delay=0.0,
        circuit_threshold=3,
        cooldown=0.0,
        state_dir=tmp_path / "state",
    )


@pytest.fixture
def fake_generators() -> FakeGenerators:
    return FakeGenerators()


def make_run_config(
    auto_approve: bool = False,
    scheduling: SchedulingMode = SchedulingMode.PHASE_FIRST,
) -> RunConfig:
    return RunConfig(
        structure=PhaseConfig(provider="groq", model="llama-3.3-70b", custom_prompt="Outline it."),
        content=PhaseConfig(provider="anthropic", model="claude-sonnet-4-5-20250929"),
        auto_approve=auto_approve,
        scheduling=scheduling,
    )


@pytest.fixture
def make_config():
    """Factory for RunConfig objects."""
    return make_run_config


@pytest.fixture
def make_generators():
    """Factory for FakeGenerators with scripted failures."""
    return FakeGenerators
