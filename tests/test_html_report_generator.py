from __future__ import annotations

from pathlib import Path

import pytest

from skillgraph.pipeline import PipelineConfig, SkillGraphPipeline
from skillgraph.tools.fingerprints import sha256_hex
from skillgraph.tools.html_report_generator import HTMLReportGeneratorTool, skill_page_name
from skillgraph.tools.models import HTMLReportRequest


def _records() -> list:
    return [
        {"id": "alpha", "name": "Spec Writer", "stage": "plan", "artifacts_tags": ["spec"]},
        {
            "id": "beta",
            "name": "Coder <b>",
            "stage": "implement",
            "inputs_tags": ["spec"],
            "artifacts_tags": ["code", "python"],
        },
        {"id": "gamma", "name": "Tester", "stage": "verify", "inputs_tags": ["code"]},
        *({"id": f"filler-{index}", "stage": "other"} for index in range(7)),
    ]


def _result(handoff_plan_payload):
    pipeline = SkillGraphPipeline.from_env(config=PipelineConfig(generate_report=False))
    return pipeline.run(_records(), handoff_plan_payload)


def test_skill_page_name_is_filesystem_safe() -> None:
    assert skill_page_name("beta") == "skill-beta.html"
    assert skill_page_name("team/skill one") == (
        f"skill-team-skill-one-{sha256_hex('team/skill one')[:8]}.html"
    )
    assert skill_page_name("///").startswith("skill-unnamed-")


def test_skill_page_names_do_not_collide() -> None:
    ids = ["a b", "a-b", "a/b", "a--b"]

    assert len({skill_page_name(skill_id) for skill_id in ids}) == len(ids)


def test_html_report_generator_writes_pages(tmp_path: Path, handoff_plan_payload) -> None:
    result = _result(handoff_plan_payload)
    request = HTMLReportRequest(
        output_directory=str(tmp_path),
        report_title="Test Report",
        plan_name="Ship a feature",
    )

    report = HTMLReportGeneratorTool().generate(request, result)

    index_path = Path(report.index_file)
    assert index_path.exists()
    assert (tmp_path / "styles.css").exists()
    assert (tmp_path / "skill-alpha.html").exists()
    assert report.total_skills == 10
    assert report.total_steps == 3
    assert len(report.files_generated) == 12

    index_html = index_path.read_text(encoding="utf-8")
    assert "Test Report" in index_html
    assert "Ship a feature" in index_html
    assert '<a href="skill-beta.html">Coder &lt;b&gt;</a>' in index_html
    assert "graph depends_on" in index_html
    assert "field_not_allowed" in index_html

    beta_html = (tmp_path / "skill-beta.html").read_text(encoding="utf-8")
    assert "depends_on" in beta_html
    assert '<span class="tag">code</span>' in beta_html


def test_missing_template_directory_raises(tmp_path: Path, handoff_plan_payload) -> None:
    tool = HTMLReportGeneratorTool(template_directory=str(tmp_path / "nope"))

    with pytest.raises(FileNotFoundError):
        tool.generate(HTMLReportRequest(output_directory=str(tmp_path / "out")), _result(handoff_plan_payload))
