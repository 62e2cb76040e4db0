"""
Plotly charts and tables for DGE and enrichment results.

This module provides the presentation layer only:
- Volcano plots (log2FoldChange vs -log10 padj) coloured by Expression
- Horizontal GO term bar charts coloured by adjusted p-value
- Overlap (Venn region) size bar charts
- Interactive data tables

Figures can be saved as HTML or, with kaleido installed, as static
images.

Usage:
    from zfish_dge.visualizer import ReportVisualizer

    viz = ReportVisualizer()
    fig = viz.volcano(classified, title="regen_vs_uninjured")
    viz.save_html(fig, "volcano.html")
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from zfish_dge.classify import classify_table
from zfish_dge.config import (
    EXPRESSION,
    EXPRESSION_LABELS,
    GUIDE_LINE_STYLE,
    LOG2FC,
    LOG2FC_THRESHOLD,
    MIN_PLOTTED_PADJ,
    PADJ,
    PADJ_COLORSCALE,
    PADJ_THRESHOLD,
    SYMBOL,
    VOLCANO_STYLE,
)
from zfish_dge.overlap import OverlapRegion

logger = logging.getLogger(__name__)


class ReportVisualizer:
    """Chart and table builders for a DGE report."""

    def __init__(self, template: str = "plotly_white"):
        """
        Initialize visualizer.

        Args:
            template: Plotly template (plotly_white, simple_white, ggplot2, etc.)
        """
        self.template = template

    def volcano(
        self,
        table: pd.DataFrame,
        title: str = "Volcano plot",
        height: int = 600,
        width: int = 800,
    ) -> go.Figure:
        """
        Volcano scatter of a DGE table.

        Genes without padj or log2FoldChange cannot be placed and are left
        out. Expression is derived when the column is absent.

        Args:
            table: DGE frame (classified or not)
            title: Chart title
            height: Figure height in pixels
            width: Figure width in pixels

        Returns:
            Plotly Figure object
        """
        if EXPRESSION not in table.columns:
            table = classify_table(table)

        plotted = table.dropna(subset=[LOG2FC, PADJ])
        dropped = len(table) - len(plotted)
        if dropped:
            logger.debug("Volcano: %d genes without padj/log2FoldChange not plotted", dropped)
        if plotted.empty:
            return self._empty_figure("No genes with padj to display")

        y = -np.log10(plotted[PADJ].clip(lower=MIN_PLOTTED_PADJ))
        hover = plotted[SYMBOL] if SYMBOL in plotted.columns else plotted.index.astype(str)

        fig = go.Figure()
        for label in EXPRESSION_LABELS:
            mask = plotted[EXPRESSION] == label
            style = VOLCANO_STYLE[label]
            fig.add_trace(go.Scatter(
                x=plotted.loc[mask, LOG2FC],
                y=y[mask],
                mode="markers",
                name=f"{label} ({int(mask.sum())})",
                text=hover[mask],
                marker=dict(
                    color=style["color"],
                    size=style["size"],
                    opacity=style["opacity"],
                ),
                hovertemplate="%{text}<br>log2FC=%{x:.2f}<br>-log10(padj)=%{y:.2f}<extra></extra>",
            ))

        for x in (-LOG2FC_THRESHOLD, LOG2FC_THRESHOLD):
            fig.add_vline(x=x, line=GUIDE_LINE_STYLE)
        fig.add_hline(y=-np.log10(PADJ_THRESHOLD), line=GUIDE_LINE_STYLE)

        fig.update_layout(
            title=dict(text=title, x=0.5),
            xaxis_title="log2 fold change",
            yaxis_title="-log10 adjusted p-value",
            template=self.template,
            height=height,
            width=width,
            legend_title_text=EXPRESSION,
        )
        return fig

    def enrichment_bar(
        self,
        terms: pd.DataFrame,
        title: str = "GO enrichment",
        height: Optional[int] = None,
        width: int = 900,
    ) -> go.Figure:
        """
        Horizontal bar chart of gene count per GO term.

        Bars are coloured on a gradient of p.adjust; the most significant
        term is drawn at the top.

        Args:
            terms: Enrichment table (top_terms / select_terms output)
            title: Chart title
            height: Figure height; grows with the number of terms by default
            width: Figure width in pixels
        """
        if terms.empty:
            return self._empty_figure("No enriched terms to display")

        ordered = terms.sort_values("p.adjust", ascending=False, kind="mergesort")

        fig = go.Figure(go.Bar(
            x=ordered["gene_count"],
            y=ordered["description"],
            orientation="h",
            marker=dict(
                color=ordered["p.adjust"],
                colorscale=PADJ_COLORSCALE,
                colorbar=dict(title=dict(text="p.adjust")),
            ),
            customdata=ordered[["term_id", "p.adjust"]].to_numpy(),
            hovertemplate=(
                "%{y}<br>%{customdata[0]}<br>Count=%{x}"
                "<br>p.adjust=%{customdata[1]:.2e}<extra></extra>"
            ),
        ))
        fig.update_layout(
            title=dict(text=title, x=0.5),
            xaxis_title="Count",
            yaxis_title="",
            template=self.template,
            height=height or max(300, 40 * len(ordered) + 120),
            width=width,
        )
        return fig

    def overlap_bar(
        self,
        regions: List[OverlapRegion],
        title: str = "Gene set overlaps",
        height: int = 500,
        width: int = 900,
    ) -> go.Figure:
        """Bar chart of Venn region sizes, largest first."""
        regions = [r for r in regions if r.size > 0]
        if not regions:
            return self._empty_figure("No overlapping members")

        regions = sorted(regions, key=lambda r: (-r.size, len(r.sets)))
        fig = go.Figure(go.Bar(
            x=[r.label for r in regions],
            y=[r.size for r in regions],
            text=[r.size for r in regions],
            textposition="outside",
            marker_color="#1f77b4",
        ))
        fig.update_layout(
            title=dict(text=title, x=0.5),
            xaxis_title="Region",
            yaxis_title="Members",
            template=self.template,
            height=height,
            width=width,
        )
        return fig

    def data_table(
        self,
        df: pd.DataFrame,
        title: Optional[str] = None,
        max_rows: Optional[int] = None,
    ) -> go.Figure:
        """
        Interactive table view of a frame, values passed through unchanged.

        Args:
            df: Table to display
            title: Optional title
            max_rows: Show only the first ``max_rows`` rows
        """
        shown = df if max_rows is None else df.head(max_rows)
        fig = go.Figure(go.Table(
            header=dict(values=[str(c) for c in shown.columns], align="left"),
            cells=dict(values=[shown[c].tolist() for c in shown.columns], align="left"),
        ))
        fig.update_layout(template=self.template)
        if title:
            fig.update_layout(title=dict(text=title, x=0.5))
        return fig

    def _empty_figure(self, message: str) -> go.Figure:
        """Create an empty figure with a message."""
        fig = go.Figure()
        fig.add_annotation(
            text=message,
            xref="paper", yref="paper",
            x=0.5, y=0.5,
            showarrow=False,
            font=dict(size=16, color="gray"),
        )
        fig.update_layout(
            template=self.template,
            xaxis=dict(visible=False),
            yaxis=dict(visible=False),
        )
        return fig

    def save_html(self, fig: go.Figure, filepath: Union[str, Path], include_plotlyjs: Union[bool, str] = True) -> Path:
        """
        Save figure to an HTML file.

        Args:
            fig: Plotly Figure object
            filepath: Output file path
            include_plotlyjs: Whether to include plotly.js in the file ("cdn" to link it)
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fig.write_html(
            str(filepath),
            include_plotlyjs=include_plotlyjs,
            full_html=True,
        )
        logger.info("Saved %s", filepath)
        return filepath

    def save_image(self, fig: go.Figure, filepath: Union[str, Path], scale: float = 2.0) -> Path:
        """Save figure as a static image (png, svg, pdf); requires kaleido."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fig.write_image(str(filepath), scale=scale)
        logger.info("Saved %s", filepath)
        return filepath

    def save(self, fig: go.Figure, filepath: Union[str, Path]) -> Path:
        """Save as HTML or image depending on the file extension."""
        if Path(filepath).suffix.lower() in (".html", ".htm"):
            return self.save_html(fig, filepath)
        return self.save_image(fig, filepath)
