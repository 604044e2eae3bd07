from __future__ import annotations

import pytest

from siteaudit.agents.coordinator import ANALYSIS_TASKS
from siteaudit.services import prompt_store
from siteaudit.services.prompt_store import clear_prompt_cache, get_prompt, render_prompt


def test_every_analysis_task_has_a_prompt():
    for task in ANALYSIS_TASKS:
        assert get_prompt(task.prompt_key).strip()


def test_render_prompt_substitutes_values():
    text = render_prompt("compiler.system", threshold=95)
    assert "confidence below 95" in text
    assert "$threshold" not in text
    assert render_prompt("compiler.user", url="https://shop.example") == "Compile audit report for: https://shop.example"


def test_unknown_key_and_missing_value_raise():
    with pytest.raises(KeyError, match="Prompt key not found"):
        get_prompt("agents.nope")
    with pytest.raises(KeyError, match="Missing template value 'url'"):
        render_prompt("compiler.user")
    with pytest.raises(TypeError):
        get_prompt("agents")


def test_catalog_reloads_when_file_changes(tmp_path, monkeypatch):
    catalog = tmp_path / "prompts.json"
    catalog.write_text('{"greeting": "hello $name"}', encoding="utf-8")
    monkeypatch.setattr(prompt_store, "PROMPTS_PATH", catalog)
    clear_prompt_cache()

    assert render_prompt("greeting", name="Ada") == "hello Ada"

    catalog.write_text('{"greeting": "hi $name"}', encoding="utf-8")
    clear_prompt_cache()
    assert render_prompt("greeting", name="Ada") == "hi Ada"
    clear_prompt_cache()
