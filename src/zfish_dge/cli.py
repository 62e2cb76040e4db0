from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Iterable, List, Optional

import click
import pandas as pd

from zfish_dge.classify import (
    classify_table,
    deduplicate,
    filter_significant,
    summarize_expression,
)
from zfish_dge.config import (
    ONTOLOGY_SOURCES,
    PADJ_METHODS,
    AnalysisConfig,
    load_config,
    read_term_list,
)
from zfish_dge.enrichment import top_terms
from zfish_dge.loader import (
    COMPARISON_PATTERNS,
    MalformedTableError,
    find_comparison_files,
    load_comparison,
)
from zfish_dge.model import ComparisonTable
from zfish_dge.orthologs import OrthologMapper
from zfish_dge.overlap import overlap_table, significant_gene_sets, venn_regions
from zfish_dge.pipeline import DGEPipeline, PipelineResult
from zfish_dge.visualizer import ReportVisualizer

INPUT_FILES = click.argument(
    "inputs",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)


def output_dir_option(func):
    return click.option(
        "--output-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Directory for tables and charts (default: ZFISH_DGE_OUTPUT_DIR or ./reports).",
    )(func)


def load_tables(paths: Iterable[Path]) -> List[ComparisonTable]:
    """Load, deduplicate and classify comparison files, reporting failures."""
    tables = []
    for path in paths:
        try:
            table = load_comparison(path)
        except MalformedTableError as exc:
            click.echo(f"Skipping {path.name}: {exc}", err=True)
            continue
        tables.append(table.with_data(classify_table(deduplicate(table.data))))
    if not tables:
        raise click.ClickException("No comparison tables could be loaded.")
    return tables


def resolve_output_dir(config: AnalysisConfig, output_dir: Optional[Path]) -> Path:
    out = Path(output_dir or config.output_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read settings from this .env file.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, env_file: Optional[Path]) -> None:
    """Differential expression and GO enrichment reports for zebrafish RNA-seq."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)
    ctx.obj = load_config(env_file=env_file)


@cli.command("classify")
@INPUT_FILES
@output_dir_option
@click.pass_obj
def classify_command(config: AnalysisConfig, inputs: Iterable[Path], output_dir: Optional[Path]) -> None:
    """Label genes Upregulated/Downregulated/NotSignificant and keep the significant ones."""
    out = resolve_output_dir(config, output_dir)
    summaries = {}
    for table in load_tables(inputs):
        significant = filter_significant(table.data)
        table.data.to_csv(out / f"{table.name}_classified.csv", index=False)
        significant.to_csv(out / f"{table.name}_significant.csv", index=False)
        summaries[table.name] = summarize_expression(table.data)
        counts = summaries[table.name]
        click.echo(
            f"{table.name}: {counts['Upregulated']} up, {counts['Downregulated']} down, "
            f"{counts['total']} total"
        )

    summary = pd.DataFrame.from_dict(summaries, orient="index")
    summary.index.name = "comparison"
    summary.reset_index().to_csv(out / "expression_summary.csv", index=False)
    click.echo(f"Tables written to {out}")


@cli.command("volcano")
@INPUT_FILES
@output_dir_option
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["html", "png", "svg"]),
    default="html",
    show_default=True,
    help="Chart file format (png/svg need the 'static' extra).",
)
@click.pass_obj
def volcano_command(
    config: AnalysisConfig,
    inputs: Iterable[Path],
    output_dir: Optional[Path],
    fmt: str,
) -> None:
    """Render one volcano plot per comparison."""
    out = resolve_output_dir(config, output_dir)
    viz = ReportVisualizer()
    for table in load_tables(inputs):
        fig = viz.volcano(table.data, title=table.name)
        path = viz.save(fig, out / f"{table.name}_volcano.{fmt}")
        click.echo(f"Saved {path}")


@cli.command("overlap")
@INPUT_FILES
@output_dir_option
@click.pass_obj
def overlap_command(config: AnalysisConfig, inputs: Iterable[Path], output_dir: Optional[Path]) -> None:
    """Venn regions of the significant genes of two or more comparisons."""
    tables = load_tables(inputs)
    if len(tables) < 2:
        raise click.UsageError("overlap needs at least two comparison files.")

    out = resolve_output_dir(config, output_dir)
    sets = significant_gene_sets(tables)
    regions = overlap_table(sets)
    regions.to_csv(out / "overlaps.csv", index=False)

    viz = ReportVisualizer()
    viz.save_html(viz.overlap_bar(venn_regions(sets)), out / "overlaps.html")
    for row in regions.itertuples(index=False):
        click.echo(f"{row.region}: {row.size}")


@cli.command("orthologs")
@INPUT_FILES
@output_dir_option
@click.option(
    "--keep-unmapped",
    is_flag=True,
    help="Keep genes without an ortholog (empty ortholog columns).",
)
@click.pass_obj
def orthologs_command(
    config: AnalysisConfig,
    inputs: Iterable[Path],
    output_dir: Optional[Path],
    keep_unmapped: bool,
) -> None:
    """Map significant genes to orthologs in the target organism."""
    out = resolve_output_dir(config, output_dir)
    mapper = OrthologMapper(
        source_organism=config.source_organism,
        target_organism=config.target_organism,
    )
    for table in load_tables(inputs):
        significant = filter_significant(table.data)
        joined, report = mapper.map_table(significant, how="left" if keep_unmapped else "inner")
        joined.to_csv(out / f"{table.name}_orthologs.csv", index=False)
        click.echo(
            f"{table.name}: {report.mapped_count}/{report.input_count} genes mapped "
            f"to {report.target_organism}"
        )


@cli.command("enrich")
@INPUT_FILES
@output_dir_option
@click.option(
    "--ontology",
    type=click.Choice(list(ONTOLOGY_SOURCES)),
    default="ALL",
    show_default=True,
    help="GO namespace(s) to test.",
)
@click.option(
    "--padj-method",
    type=click.Choice(list(PADJ_METHODS)),
    default=None,
    help="Multiple testing correction (default: BH).",
)
@click.option(
    "--cutoff",
    type=click.FloatRange(0, 1),
    default=None,
    help="Adjusted p-value cutoff (default: 0.05).",
)
@click.option(
    "--top-n",
    type=click.IntRange(1, 1000),
    default=None,
    help="Terms per ontology in the bar charts (default: 10).",
)
@click.option(
    "--split-directions",
    is_flag=True,
    help="Enrich upregulated and downregulated genes separately.",
)
@click.pass_obj
def enrich_command(
    config: AnalysisConfig,
    inputs: Iterable[Path],
    output_dir: Optional[Path],
    ontology: str,
    padj_method: Optional[str],
    cutoff: Optional[float],
    top_n: Optional[int],
    split_directions: bool,
) -> None:
    """GO enrichment of each comparison's significant genes (via their orthologs)."""
    overrides = {
        "ontology": ontology,
        "padj_method": padj_method,
        "pvalue_cutoff": cutoff,
        "top_n": top_n,
        "split_directions": split_directions or None,
    }
    config = dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})
    out = resolve_output_dir(config, output_dir)

    pipeline = DGEPipeline(config)
    result = PipelineResult()
    for table in load_tables(inputs):
        try:
            pipeline.process_comparison(table, result)
        except Exception as exc:
            click.echo(f"Failed to enrich {table.name}: {exc}", err=True)

    viz = ReportVisualizer()
    ontologies = ("BP", "CC", "MF") if config.ontology == "ALL" else (config.ontology,)
    for label, terms in result.enrichment.items():
        terms.to_csv(out / f"{label}_go_enrichment.csv", index=False)
        click.echo(f"{label}: {len(terms)} enriched terms")
        for ont in ontologies:
            top = top_terms(terms, ont, n=config.top_n)
            if not top.empty:
                fig = viz.enrichment_bar(top, title=f"{label}: top GO {ont} terms")
                viz.save_html(fig, out / f"{label}_go_{ont}.html")


@cli.command("run")
@click.argument(
    "input_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@output_dir_option
@click.option(
    "--terms-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Curated GO term descriptions for the shared-terms chart, one per line.",
)
@click.option(
    "--unique-terms-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Curated GO term descriptions for the unique-terms chart, one per line.",
)
@click.option(
    "--split-directions",
    is_flag=True,
    help="Enrich upregulated and downregulated genes separately.",
)
@click.pass_obj
def run_command(
    config: AnalysisConfig,
    input_dir: Path,
    output_dir: Optional[Path],
    terms_file: Optional[Path],
    unique_terms_file: Optional[Path],
    split_directions: bool,
) -> None:
    """Run the full report over every *_vs_* comparison table in INPUT_DIR."""
    paths = find_comparison_files(input_dir)
    if not paths:
        raise click.ClickException(
            f"No comparison files ({', '.join(COMPARISON_PATTERNS)}) in {input_dir}"
        )

    if terms_file:
        config = dataclasses.replace(config, shared_terms=read_term_list(terms_file))
    if unique_terms_file:
        config = dataclasses.replace(config, unique_terms=read_term_list(unique_terms_file))
    if split_directions:
        config = dataclasses.replace(config, split_directions=True)

    click.echo(f"Processing {len(paths)} comparison files from {input_dir}")
    pipeline = DGEPipeline(config)
    result = pipeline.run(paths)
    written = pipeline.write_report(result, resolve_output_dir(config, output_dir))

    for error in result.errors:
        click.echo(f"Error: {error}", err=True)
    click.echo(f"Wrote {len(written)} files")
    if not result.comparisons:
        raise click.ClickException("No comparison could be processed.")


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
