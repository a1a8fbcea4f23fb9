"""Output Formatter — writes a unit's converted code, specification, review and combined report."""

from datetime import datetime
from pathlib import Path

from abap_refactor.config import get_config
from abap_refactor.results import OrchestratorResult
from abap_refactor.utils.prompting import conversion_labels


def output_paths(output_dir: Path, source_name: str) -> dict[str, Path]:
    """Return the output file paths for a source file name (e.g. ``zreport.abap``)."""
    suffix = get_config().get("output_suffix", "_S4")
    source = Path(source_name)
    stem, ext = source.stem, source.suffix
    return {
        "code": output_dir / f"{stem}{suffix}{ext}",
        "specification": output_dir / f"{stem}{suffix}_Spec.md",
        "review": output_dir / f"{stem}{suffix}_Review.md",
        "report": output_dir / f"{stem}{suffix}_Report.md",
    }


def render_report(
    source_name: str,
    source_code: str,
    result: OrchestratorResult,
    requirements: str = "",
    generated_on: datetime | None = None,
) -> str:
    """Render the combined Markdown report for one converted unit."""
    labels = conversion_labels()
    fence = labels["fence_language"]
    generated_on = generated_on or datetime.now()
    lines = [
        f"# {labels['target_label']} Conversion Report for {Path(source_name).stem}",
        "",
    ]

    if result.warning:
        lines += [f"> **Warning:** {result.warning}", ""]

    lines += [
        f"## Original {labels['source_label']} Source Code",
        "",
        f"```{fence}",
        source_code.rstrip("\n"),
        "```",
        "",
        "---",
        "",
        "## Technical Specification",
        "",
        (result.specification or "").strip(),
        "",
        "---",
        "",
        f"## Generated {labels['target_label']} Code",
        "",
        f"```{fence}",
        (result.final_code or "").rstrip("\n"),
        "```",
        "",
        "---",
        "",
        "## Code Review Report",
        "",
        (result.final_review or "").strip(),
        "",
        "---",
        "",
        f"**Generated on:** {generated_on:%Y-%m-%d %H:%M:%S}",
    ]

    if requirements:
        lines += [
            "",
            "**Additional Requirements Applied:**",
            "",
            "```",
            requirements,
            "```",
        ]

    return "\n".join(lines) + "\n"


def write_outputs(
    output_dir: Path,
    source_name: str,
    source_code: str,
    result: OrchestratorResult,
    requirements: str = "",
) -> dict[str, Path]:
    """Write the four output files for a successful unit and return their paths.

    Raises ValueError for a failed result; failed units produce no partial output.
    """
    if not result.ok:
        raise ValueError(f"Cannot write outputs for failed unit {source_name}: {result.error}")

    output_dir.mkdir(parents=True, exist_ok=True)
    paths = output_paths(output_dir, source_name)
    paths["code"].write_text(result.final_code or "", encoding="utf-8")
    paths["specification"].write_text(result.specification or "", encoding="utf-8")
    paths["review"].write_text(result.final_review or "", encoding="utf-8")
    paths["report"].write_text(
        render_report(source_name, source_code, result, requirements), encoding="utf-8"
    )
    return paths
