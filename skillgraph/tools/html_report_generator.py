from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup

from skillgraph.engine.types import EdgeType
from skillgraph.skills.models import CatalogEntry, SkillGraphEdge

from .fingerprints import sha256_hex
from .models import HTMLReportRequest, HTMLReportResult

if TYPE_CHECKING:
    from skillgraph.pipeline import PipelineResult

DEFAULT_TEMPLATE_DIRECTORY = str(Path(__file__).parent / "templates" / "report")

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_.-]+")


def skill_page_name(skill_id: str) -> str:
    """File name for an entry page; ids that need escaping get a hash suffix."""
    safe = _UNSAFE_FILENAME.sub("-", skill_id).strip("-")
    if safe == skill_id:
        return f"skill-{safe}.html"
    return f"skill-{safe or 'unnamed'}-{sha256_hex(skill_id)[:8]}.html"


@dataclass(frozen=True, slots=True)
class HTMLReportGeneratorTool:
    """Renders a static, multi-page HTML report of a pipeline run.

    ``index.html`` carries the graph metrics, chains and the assembled plan;
    every catalog entry gets its own page listing its tags, tag issues and
    relationships.
    """

    template_directory: str = DEFAULT_TEMPLATE_DIRECTORY

    def generate(
        self, request: HTMLReportRequest, result: "PipelineResult"
    ) -> HTMLReportResult:
        """Generate the complete HTML report."""
        template_path = Path(self.template_directory)
        if not template_path.is_dir():
            raise FileNotFoundError(f"Report templates not found: {template_path}")

        output_dir = Path(request.output_directory)
        output_dir.mkdir(parents=True, exist_ok=True)

        env = self._setup_jinja_environment(result)

        generated_files: List[str] = []

        index_file = self._generate_index_page(
            env=env,
            output_dir=output_dir,
            request=request,
            result=result,
        )
        generated_files.append(index_file)

        generated_files.extend(
            self._generate_skill_pages(env=env, output_dir=output_dir, result=result)
        )

        css_file = self._generate_stylesheet(env, output_dir)
        generated_files.append(css_file)

        return HTMLReportResult(
            output_path=str(output_dir),
            files_generated=generated_files,
            index_file=index_file,
            total_skills=len(result.catalog),
            total_steps=len(result.assembly.steps),
        )

    def _setup_jinja_environment(self, result: "PipelineResult") -> Environment:
        env = Environment(
            loader=FileSystemLoader(self.template_directory),
            autoescape=True,
        )
        entries_by_id = {entry.id: entry for entry in result.catalog}

        def skill_link(skill_id: str, text: Optional[str] = None) -> Markup:
            entry = entries_by_id.get(skill_id)
            if entry is None:
                return Markup("[Unknown: {}]").format(skill_id)
            return Markup('<a href="{}">{}</a>').format(
                skill_page_name(skill_id), text or entry.display_name
            )

        def skill_name(skill_id: str) -> str:
            entry = entries_by_id.get(skill_id)
            return entry.display_name if entry else "Unknown"

        def confidence_bar(confidence: float) -> str:
            filled = int(round(confidence * 5))
            return "■" * filled + "□" * (5 - filled)

        def tag_list(tags: List[str]) -> Markup:
            if not tags:
                return Markup('<span class="muted">none</span>')
            return Markup(" ").join(
                Markup('<span class="tag">{}</span>').format(tag) for tag in tags
            )

        env.filters["skill_link"] = skill_link
        env.filters["skill_name"] = skill_name
        env.filters["confidence_bar"] = confidence_bar
        env.filters["tag_list"] = tag_list

        return env

    def _generate_index_page(
        self,
        *,
        env: Environment,
        output_dir: Path,
        request: HTMLReportRequest,
        result: "PipelineResult",
    ) -> str:
        metrics = result.graph.metrics
        distribution = [
            (edge_type.value, metrics.distribution_by_type.get(edge_type, 0))
            for edge_type in EdgeType
        ]

        template = env.get_template("index.html.j2")
        content = template.render(
            report_title=request.report_title,
            plan_name=request.plan_name or result.plan.name or "Workflow plan",
            catalog=sorted(result.catalog, key=lambda e: e.id),
            metrics=metrics,
            distribution=distribution,
            drop_reasons=metrics.drop_reasons.model_dump(),
            chains=result.graph.chains,
            steps=result.assembly.steps,
            missing_capabilities=result.assembly.missing_capabilities,
            plan_warnings=result.plan_warnings,
            dropped_tags=result.dropped_tags,
        )

        output_path = output_dir / "index.html"
        output_path.write_text(content, encoding="utf-8")
        return str(output_path)

    def _generate_skill_pages(
        self,
        *,
        env: Environment,
        output_dir: Path,
        result: "PipelineResult",
    ) -> List[str]:
        generated_files: List[str] = []
        edges_by_skill: Dict[str, List[SkillGraphEdge]] = {}
        for edge in result.graph.edges:
            edges_by_skill.setdefault(edge.from_id, []).append(edge)
            edges_by_skill.setdefault(edge.to_id, []).append(edge)

        template = env.get_template("skill.html.j2")
        for entry in result.catalog:
            content = self._render_skill_template(
                template=template,
                entry=entry,
                edges=edges_by_skill.get(entry.id, []),
                related=result.graph.related.get(entry.id, []),
            )
            output_path = output_dir / skill_page_name(entry.id)
            output_path.write_text(content, encoding="utf-8")
            generated_files.append(str(output_path))

        return generated_files

    def _render_skill_template(
        self,
        *,
        template,
        entry: CatalogEntry,
        edges: List[SkillGraphEdge],
        related: List[str],
    ) -> str:
        outgoing = [e for e in edges if e.from_id == entry.id]
        incoming = [e for e in edges if e.to_id == entry.id]
        return template.render(
            skill=entry,
            outgoing=outgoing,
            incoming=incoming,
            related=related,
        )

    def _generate_stylesheet(self, env: Environment, output_dir: Path) -> str:
        template = env.get_template("styles.css.j2")
        css_content = template.render()
        output_path = output_dir / "styles.css"
        output_path.write_text(css_content, encoding="utf-8")
        return str(output_path)
