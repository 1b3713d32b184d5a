# dl4j_inspector/reporting/console.py
"""
Console reporting for import results and inference runs.
"""
from __future__ import annotations

from typing import List, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from dl4j_inspector.analysis.base import (
    LAYER_SORT_KEYS,
    ImportResult,
    LayerNode,
    WeightProvenance,
)
from dl4j_inspector.analysis.inference import InferenceResult

console = Console()

PROVENANCE_STYLES = {
    WeightProvenance.REAL: "[green]real[/green]",
    WeightProvenance.SYNTHETIC: "[yellow]synthetic[/yellow]",
}


def _fmt_optional(value) -> str:
    return "N/A" if value is None else str(value)


def _render_summary(result: ImportResult) -> None:
    """Render a high-level summary table."""
    m = result.model
    s = result.summary
    t = Table(title="DL4J Model Summary", box=box.SIMPLE_HEAVY)
    t.add_column("Field", style="bold")
    t.add_column("Value")
    t.add_row("Name", m.name)
    t.add_row("Source file", m.source_file_name)
    t.add_row("Layers", str(s.num_layers))
    t.add_row("Total parameters", f"{s.total_parameters:,}")
    t.add_row("Layers with weights", str(s.layers_with_weights))
    t.add_row("Binary weights", "yes" if s.has_binary_weights else "no")
    t.add_row("Updater state", "yes" if s.has_updater_state else "no")
    t.add_row("Binary parameters", _fmt_optional(s.binary_parameters))
    if s.parameter_mismatch is not None:
        mismatch = "[red]MISMATCH[/red]" if s.parameter_mismatch else "[green]match[/green]"
        t.add_row("Parameter check", f"{mismatch} (ratio {s.parameter_match_ratio:.4f})")
    if s.synthetic_weights:
        t.add_row("Weight statistics", "[yellow]include synthetic placeholder values[/yellow]")
    console.print(t)


def _render_layer_table(layers: List[LayerNode], sort: str) -> None:
    table = Table(title="Layers", box=box.ROUNDED, title_style="bold magenta")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Type", style="yellow")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Parameters", justify="right")
    table.add_column("Inbound", style="dim")
    table.add_column("Outbound", style="dim")
    table.add_column("Weights")

    for layer in sorted(layers, key=LAYER_SORT_KEYS.get(sort, LAYER_SORT_KEYS["name"])):
        table.add_row(
            layer.name,
            layer.layer_type.rsplit(".", 1)[-1],
            layer.input_shape or "-",
            layer.output_shape or "-",
            f"{layer.num_parameters:,}",
            ", ".join(layer.inbound_nodes),
            ", ".join(layer.outbound_nodes),
            PROVENANCE_STYLES.get(layer.weight_provenance, "-"),
        )
    console.print(table)


def _render_weight_table(result: ImportResult) -> None:
    if not result.weight_stats:
        return
    names = {l.id: l.name for l in result.layers}
    table = Table(title="Weight Statistics", box=box.ROUNDED, title_style="bold magenta")
    table.add_column("Layer", style="cyan", no_wrap=True)
    table.add_column("Group")
    table.add_column("Count", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Mean", justify="right")
    table.add_column("Std", justify="right")
    table.add_column("Source")
    for ws in result.weight_stats:
        table.add_row(
            names.get(ws.layer_node_id, "?"),
            ws.parameter_group,
            str(ws.num_values),
            f"{ws.min:.6f}",
            f"{ws.max:.6f}",
            f"{ws.mean:.6f}",
            f"{ws.std_dev:.6f}",
            PROVENANCE_STYLES[ws.provenance],
        )
    console.print(table)


def _render_diagnostics(result: ImportResult) -> None:
    s = result.summary
    if not s.skipped_items and not s.unresolved_shapes:
        return
    t = Table(title="Diagnostics", box=box.SIMPLE_HEAVY)
    t.add_column("Kind", style="bold")
    t.add_column("Details")
    for item in s.skipped_items:
        t.add_row("[yellow]skipped[/yellow]", item)
    for name in s.unresolved_shapes:
        t.add_row("[yellow]unresolved shape[/yellow]", f"{name}: dimensions could not be inferred")
    console.print(t)


def render_report(result: ImportResult, *, sort: str = "name") -> None:
    """Renders the full console report for one decoded archive."""
    _render_summary(result)
    _render_layer_table(result.layers, sort)
    _render_weight_table(result)
    _render_diagnostics(result)


def _preview(values: Sequence[float], n: int = 8) -> str:
    head = ", ".join(f"{v:.4f}" for v in values[:n])
    return f"[{head}{', ...' if len(values) > n else ''}] (len {len(values)})"


def render_inference(result: InferenceResult) -> None:
    t = Table(title="Approximate Inference", box=box.ROUNDED, title_style="bold magenta")
    t.add_column("Layer", style="cyan", no_wrap=True)
    t.add_column("Output")
    for name, values in result.layer_outputs.items():
        t.add_row(name, _preview(values))
    console.print(t)
    console.print(f"[bold]Final output:[/bold] {_preview(result.final_output)}")
    if result.uses_synthetic_weights:
        console.print("[yellow]Computed with synthetic placeholder weights.[/yellow]")
    for w in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {w}")
