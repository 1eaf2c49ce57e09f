"""Tests for agents.generator — call_llm is mocked."""

from unittest.mock import patch

import pytest

from agents.generator import GeneratorAgent, describe_exports, parse_artifacts
from config.rules import CLIENT_MARKER
from core.errors import GenerationError
from core.state import RequirementsDocument, Task
from utils.llm import LLMTimeout, MalformedResponse

REQS = RequirementsDocument(overview="A counter", features=("increment", "decrement"))

COUNTER_RAW = """import { useState } from 'react';

export function Counter() {
  const [count, setCount] = useState(0);
  return (
    <div>
      <button onClick={() => setCount(count - 1)}>-</button>
      <span>{count}</span>
      <button onClick={() => setCount(count + 1)}>+</button>
    </div>
  );
}
"""


def _task(files=("/src/components/Counter.tsx",)):
    return Task(id="task-1", name="Counter component", description="Counter with two buttons",
                files=list(files))


@patch("agents.generator.call_llm")
def test_generated_component_gets_marker_and_default_export(mock_llm):
    mock_llm.return_value = {
        "files": [{"path": "src/components/Counter.tsx", "content": COUNTER_RAW}],
        "description": "Counter",
    }
    output = GeneratorAgent().run(_task(), {}, REQS)
    assert len(output.artifacts) == 1
    artifact = output.artifacts[0]
    assert artifact.path == "/src/components/Counter.tsx"
    assert artifact.action == "create"
    assert artifact.content.startswith(CLIENT_MARKER)
    assert "export default Counter;" in artifact.content
    assert output.fixes


@patch("agents.generator.call_llm")
def test_existing_file_defaults_to_update(mock_llm):
    mock_llm.return_value = {"files": [{"path": "/src/app/page.tsx", "content": "export default function Home() {\n  return <main />;\n}\n"}]}
    snapshot = {"/src/app/page.tsx": "export default function Home() {\n  return null;\n}\n"}
    output = GeneratorAgent().run(_task(["/src/app/page.tsx"]), snapshot, REQS)
    assert output.artifacts[0].action == "update"


@patch("agents.generator.call_llm")
def test_file_outside_claimed_set_fails(mock_llm):
    mock_llm.return_value = {"files": [
        {"path": "src/components/Counter.tsx", "content": COUNTER_RAW},
        {"path": "src/app/page.tsx", "content": "export default function Home() {}"},
    ]}
    with pytest.raises(GenerationError, match="outside the task") as exc:
        GeneratorAgent().run(_task(), {}, REQS)
    assert exc.value.task_id == "task-1"


@patch("agents.generator.call_llm")
def test_missing_claimed_file_fails(mock_llm):
    mock_llm.return_value = {"files": [{"path": "src/components/Counter.tsx", "content": COUNTER_RAW}]}
    task = _task(["/src/components/Counter.tsx", "/src/hooks/useCounter.ts"])
    with pytest.raises(GenerationError, match="missing claimed"):
        GeneratorAgent().run(task, {}, REQS)


@patch("agents.generator.call_llm")
def test_fenced_block_fallback(mock_llm):
    raw = f"Here you go:\n```tsx src/components/Counter.tsx\n{COUNTER_RAW}```\n"
    mock_llm.side_effect = MalformedResponse("not json", raw=raw)
    output = GeneratorAgent().run(_task(), {}, REQS)
    assert output.artifacts[0].path == "/src/components/Counter.tsx"
    assert "useState" in output.artifacts[0].content


@patch("agents.generator.call_llm")
def test_unparseable_response_fails(mock_llm):
    mock_llm.side_effect = MalformedResponse("not json", raw="I cannot help with that.")
    with pytest.raises(GenerationError, match="Unparseable"):
        GeneratorAgent().run(_task(), {}, REQS)


@patch("agents.generator.call_llm")
def test_timeout_is_generation_error(mock_llm):
    mock_llm.side_effect = LLMTimeout("Model call exceeded 120s")
    with pytest.raises(GenerationError, match="exceeded"):
        GeneratorAgent().run(_task(), {}, REQS)


@patch("agents.generator.call_llm")
def test_prompt_includes_dependency_content_and_exports(mock_llm):
    mock_llm.return_value = {"files": [{"path": "src/app/page.tsx", "content": "export default function Home() {\n  return <main />;\n}\n"}]}
    counter = "'use client';\n\nexport default function Counter() {\n  return <button onClick={() => null}>+</button>;\n}\n"
    snapshot = {"/src/components/Counter.tsx": counter, "/src/app/page.tsx": "export default function Home() {}\n"}
    GeneratorAgent().run(_task(["/src/app/page.tsx"]), snapshot, REQS,
                         context_paths=["/src/components/Counter.tsx"])
    user_message = mock_llm.call_args[0][1]
    assert "TASK: Counter component" in user_message
    assert "## Features" in user_message
    assert "/src/components/Counter.tsx: default Counter" in user_message
    assert counter in user_message


def test_parse_artifacts_rejects_bad_payloads():
    with pytest.raises(GenerationError):
        parse_artifacts({"files": []}, {})
    with pytest.raises(GenerationError):
        parse_artifacts({"files": [{"content": "x"}]}, {})
    with pytest.raises(GenerationError, match="unknown action"):
        parse_artifacts({"files": [{"path": "a.ts", "content": "x", "action": "rename"}]}, {})
    with pytest.raises(GenerationError, match="no content"):
        parse_artifacts({"files": [{"path": "a.ts"}]}, {})


def test_parse_artifacts_accepts_delete_without_content():
    artifacts = parse_artifacts({"files": [{"path": "src/old.ts", "action": "delete"}]}, {"/src/old.ts": ""})
    assert artifacts[0].action == "delete"
    assert artifacts[0].path == "/src/old.ts"


def test_describe_exports():
    files = {
        "/src/hooks/useToggle.ts": "export function useToggle() {}\n",
        "/src/app/globals.css": "body {}",
    }
    assert describe_exports(files) == "  /src/hooks/useToggle.ts: named useToggle"


def test_parse_artifacts_rejects_path_outside_project():
    with pytest.raises(GenerationError, match="outside the project"):
        parse_artifacts({"files": [{"path": "../../escape.ts", "content": "x"}]}, {})
