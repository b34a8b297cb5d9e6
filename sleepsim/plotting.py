"""
Consistent plotting style and figures for SleepSim.

Reference vs. simulated data, per-participant fits under each pooling
strategy, prior vs. posterior distributions and shrinkage plots.

"""

from typing import Dict, List, Optional, Tuple

import arviz as az
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


class SleepSimPlotStyle:
    """
    Consistent figure styling for SleepSim figures.

    Attributes
    ----------
    FIGSIZE_MAIN : Tuple[int, int]
        Default figure size for main plots (10, 6)
    DPI : int
        Resolution for saved figures (300)
    COLORS : Dict[str, str]
        Standard colour for each data source and pooling strategy

    Examples
    --------
    >>> fig, ax = SleepSimPlotStyle.create_figure()
    >>> ax.plot(x, y, color=SleepSimPlotStyle.COLORS['bayesian'])
    >>> SleepSimPlotStyle.save_figure(fig, 'results/figures/plot.png')
    """

    FIGSIZE_MAIN = (10, 6)
    FIGSIZE_SECONDARY = (8, 6)
    FIGSIZE_WIDE = (12, 5)

    DPI = 300

    # Tab10 colours
    COLORS = {
        'reference': '#7f7f7f',        # Gray for observed data
        'simulated': '#1f77b4',        # Blue for simulated data
        'complete_pooling': '#d62728', # Red for one-line-for-all
        'no_pooling': '#2ca02c',       # Green for independent fits
        'mixed': '#9467bd',            # Purple for mixed effects
        'bayesian': '#ff7f0e',         # Orange for hierarchical Bayes
        'prior': '#aec7e8',            # Light blue for priors
        'posterior': '#1f77b4',        # Blue for posteriors
    }

    FONTSIZE_TITLE = 14
    FONTSIZE_LABEL = 12
    FONTSIZE_TICK = 10
    FONTSIZE_LEGEND = 10

    @classmethod
    def apply(cls) -> None:
        """Apply SleepSim style to matplotlib globally."""
        plt.rcParams['figure.figsize'] = cls.FIGSIZE_MAIN
        plt.rcParams['figure.dpi'] = 100
        plt.rcParams['savefig.dpi'] = cls.DPI

        plt.rcParams['font.size'] = cls.FONTSIZE_TICK
        plt.rcParams['axes.titlesize'] = cls.FONTSIZE_TITLE
        plt.rcParams['axes.labelsize'] = cls.FONTSIZE_LABEL
        plt.rcParams['xtick.labelsize'] = cls.FONTSIZE_TICK
        plt.rcParams['ytick.labelsize'] = cls.FONTSIZE_TICK
        plt.rcParams['legend.fontsize'] = cls.FONTSIZE_LEGEND

        plt.rcParams['grid.alpha'] = 0.3
        plt.rcParams['grid.linestyle'] = '--'

        plt.rcParams['lines.linewidth'] = 2
        plt.rcParams['axes.linewidth'] = 1

        plt.rcParams['legend.frameon'] = True
        plt.rcParams['legend.framealpha'] = 0.8

    @classmethod
    def create_figure(
        cls,
        figsize: Optional[Tuple[float, float]] = None,
        **kwargs
    ) -> Tuple[plt.Figure, plt.Axes]:
        """Create a single-axis figure. If figsize is None, uses FIGSIZE_MAIN."""
        if figsize is None:
            figsize = cls.FIGSIZE_MAIN

        fig, ax = plt.subplots(figsize=figsize, **kwargs)
        return fig, ax

    @classmethod
    def create_subplots(
        cls,
        nrows: int = 1,
        ncols: int = 1,
        figsize: Optional[Tuple[float, float]] = None,
        **kwargs
    ) -> Tuple[plt.Figure, np.ndarray]:
        """Create a grid of subplots. If figsize is None, uses FIGSIZE_MAIN."""
        if figsize is None:
            figsize = cls.FIGSIZE_MAIN

        fig, axes = plt.subplots(nrows=nrows, ncols=ncols, figsize=figsize, **kwargs)
        return fig, axes

    @classmethod
    def save_figure(
        cls,
        fig: plt.Figure,
        filepath: str,
        dpi: Optional[int] = None,
        bbox_inches: str = 'tight',
        **kwargs
    ) -> None:
        """
        Save figure with publication quality settings.

        Parameters
        ----------
        fig : plt.Figure
            Figure to save
        filepath : str
            Output path
        dpi : int, optional
            Resolution. If None, uses cls.DPI (300)
        bbox_inches : str, optional (default='tight')
            Bounding box mode
        **kwargs
            Additional arguments passed to fig.savefig()
        """
        if dpi is None:
            dpi = cls.DPI

        fig.savefig(filepath, dpi=dpi, bbox_inches=bbox_inches, **kwargs)
        print(f"[OK] Figure saved: {filepath}")

    @classmethod
    def format_axis(
        cls,
        ax: plt.Axes,
        title: Optional[str] = None,
        xlabel: Optional[str] = None,
        ylabel: Optional[str] = None,
        grid: bool = True,
        legend: bool = False
    ) -> None:
        """Apply consistent title, labels, grid and legend to an axis."""
        if title:
            ax.set_title(title, fontsize=cls.FONTSIZE_TITLE, fontweight='bold')

        if xlabel:
            ax.set_xlabel(xlabel, fontsize=cls.FONTSIZE_LABEL)

        if ylabel:
            ax.set_ylabel(ylabel, fontsize=cls.FONTSIZE_LABEL)

        if grid:
            ax.grid(True, alpha=0.3, linestyle='--')

        if legend:
            ax.legend(fontsize=cls.FONTSIZE_LEGEND, framealpha=0.8)

        ax.tick_params(labelsize=cls.FONTSIZE_TICK)

    @classmethod
    def get_color_cycle(cls, n: int) -> list:
        """Get n colours from the current cycle."""
        cycle = plt.rcParams['axes.prop_cycle'].by_key()['color']
        return [cycle[i % len(cycle)] for i in range(n)]


# Apply style on import
SleepSimPlotStyle.apply()


def plot_reference_vs_simulated(
    reference: pd.DataFrame,
    simulated: pd.DataFrame
) -> plt.Figure:
    """
    Side-by-side spaghetti plots of reference and simulated trajectories.

    Parameters
    ----------
    reference : pd.DataFrame
        Columns Subject, Days, Reaction
    simulated : pd.DataFrame
        Columns id, day, reaction_time

    Returns
    -------
    fig : plt.Figure
    """
    fig, axes = SleepSimPlotStyle.create_subplots(
        1, 2, figsize=SleepSimPlotStyle.FIGSIZE_WIDE, sharey=True
    )

    panels = [
        (axes[0], reference, 'Subject', 'Days', 'Reaction',
         'reference', 'Reference data'),
        (axes[1], simulated, 'id', 'day', 'reaction_time',
         'simulated', 'Simulated data'),
    ]

    for ax, df, group_col, x_col, y_col, color_key, title in panels:
        color = SleepSimPlotStyle.COLORS[color_key]
        for _, group in df.groupby(group_col):
            group = group.sort_values(x_col)
            ax.plot(group[x_col], group[y_col], color=color, alpha=0.35,
                    linewidth=1, marker='o', markersize=3)

        day_means = df.groupby(x_col)[y_col].mean()
        ax.plot(day_means.index, day_means.values, color='black',
                linewidth=2.5, label='Day mean')

        SleepSimPlotStyle.format_axis(
            ax, title=title, xlabel='Days of sleep deprivation',
            ylabel='Reaction time (ms)' if ax is axes[0] else None,
            legend=True
        )

    fig.tight_layout()
    return fig


def plot_participant_fits(
    data: pd.DataFrame,
    estimates: Dict[str, pd.DataFrame],
    pooled: Optional[Dict[str, float]] = None,
    max_participants: Optional[int] = None,
    ncols: int = 6
) -> plt.Figure:
    """
    One panel per participant with the fitted line of each method.

    Parameters
    ----------
    data : pd.DataFrame
        Columns id, day, reaction_time
    estimates : Dict[str, pd.DataFrame]
        Method name -> DataFrame with columns id, intercept, slope. Method
        names matching SleepSimPlotStyle.COLORS keys get their standard
        colour
    pooled : Dict[str, float], optional
        Complete-pooling fit with 'intercept' and 'slope', drawn dashed in
        every panel
    max_participants : int, optional
        Plot only the first max_participants participants
    ncols : int, optional (default=6)
        Panels per row

    Returns
    -------
    fig : plt.Figure
    """
    participant_ids = list(dict.fromkeys(data['id']))
    if max_participants is not None:
        participant_ids = participant_ids[:max_participants]

    n = len(participant_ids)
    ncols = min(ncols, n)
    nrows = int(np.ceil(n / ncols))

    fig, axes = SleepSimPlotStyle.create_subplots(
        nrows, ncols, figsize=(2.5 * ncols, 2.2 * nrows),
        sharex=True, sharey=True, squeeze=False
    )

    fallback_colors = SleepSimPlotStyle.get_color_cycle(len(estimates))
    x_grid = np.linspace(data['day'].min(), data['day'].max(), 20)

    for k, ax in enumerate(axes.flat):
        if k >= n:
            ax.set_visible(False)
            continue

        participant_id = participant_ids[k]
        obs = data[data['id'] == participant_id]
        ax.scatter(obs['day'], obs['reaction_time'], s=12,
                   color=SleepSimPlotStyle.COLORS['reference'], zorder=3)

        if pooled is not None:
            ax.plot(x_grid, pooled['intercept'] + pooled['slope'] * x_grid,
                    color=SleepSimPlotStyle.COLORS['complete_pooling'],
                    linestyle='--', linewidth=1,
                    label='complete_pooling' if k == 0 else None)

        for i, (method, est) in enumerate(estimates.items()):
            row = est[est['id'] == participant_id]
            if row.empty:
                continue
            color = SleepSimPlotStyle.COLORS.get(method, fallback_colors[i])
            ax.plot(x_grid,
                    row['intercept'].iloc[0] + row['slope'].iloc[0] * x_grid,
                    color=color, linewidth=1.5,
                    label=method if k == 0 else None)

        ax.set_title(f"id {participant_id}", fontsize=SleepSimPlotStyle.FONTSIZE_TICK)
        ax.grid(True, alpha=0.3, linestyle='--')

    fig.supxlabel('Days of sleep deprivation')
    fig.supylabel('Reaction time (ms)')
    fig.legend(loc='upper center', ncol=len(estimates) + 1,
               bbox_to_anchor=(0.5, 1.02))
    fig.tight_layout()
    return fig


def plot_prior_posterior(
    trace: az.InferenceData,
    var_names: Optional[List[str]] = None,
    bins: int = 40
) -> plt.Figure:
    """
    Overlay prior and posterior histograms of scalar parameters.

    Parameters
    ----------
    trace : az.InferenceData
        Must contain both 'prior' and 'posterior' groups (as produced by
        HierarchicalLinearModel.fit with prior_samples > 0)
    var_names : List[str], optional
        Scalar parameters to show. Defaults to the population parameters
    bins : int, optional (default=40)
        Histogram bins

    Returns
    -------
    fig : plt.Figure

    Raises
    ------
    ValueError
        If the trace lacks a prior or posterior group
    """
    groups = trace.groups()
    for group in ('prior', 'posterior'):
        if group not in groups:
            raise ValueError(
                f"Trace has no '{group}' group. Fit with prior_samples > 0."
            )

    if var_names is None:
        var_names = ['mu_intercept', 'mu_slope', 'sigma_intercept',
                     'sigma_slope', 'sigma_obs']

    fig, axes = SleepSimPlotStyle.create_subplots(
        1, len(var_names), figsize=(3.5 * len(var_names), 3.5), squeeze=False
    )

    for ax, var in zip(axes.flat, var_names):
        prior = trace.prior[var].values.flatten()
        posterior = trace.posterior[var].values.flatten()

        ax.hist(prior, bins=bins, density=True, alpha=0.6,
                color=SleepSimPlotStyle.COLORS['prior'], label='prior')
        ax.hist(posterior, bins=bins, density=True, alpha=0.7,
                color=SleepSimPlotStyle.COLORS['posterior'], label='posterior')

        SleepSimPlotStyle.format_axis(ax, title=var, grid=True)
        ax.title.set_fontsize(SleepSimPlotStyle.FONTSIZE_LABEL)

    axes.flat[0].legend()
    fig.tight_layout()
    return fig


def plot_shrinkage(comparison: pd.DataFrame) -> plt.Figure:
    """
    No-pooling vs. partial-pooling slopes.

    Each participant's independent OLS slope is connected to its
    hierarchical posterior mean slope; the complete-pooling slope is drawn
    as a horizontal reference.

    Parameters
    ----------
    comparison : pd.DataFrame
        Output of SleepStudyAnalysis.compare_estimates()

    Returns
    -------
    fig : plt.Figure
    """
    fig, ax = SleepSimPlotStyle.create_figure(
        figsize=SleepSimPlotStyle.FIGSIZE_SECONDARY
    )

    x = np.arange(len(comparison))
    ax.scatter(x, comparison['no_pooling_slope'],
               color=SleepSimPlotStyle.COLORS['no_pooling'],
               label='No pooling', zorder=3)
    ax.scatter(x, comparison['bayesian_slope'],
               color=SleepSimPlotStyle.COLORS['bayesian'],
               label='Partial pooling (Bayesian)', zorder=3)

    for xi, start, end in zip(x, comparison['no_pooling_slope'],
                              comparison['bayesian_slope']):
        ax.annotate('', xy=(xi, end), xytext=(xi, start),
                    arrowprops=dict(arrowstyle='->', color='gray', alpha=0.6))

    ax.axhline(comparison['complete_pooling_slope'].iloc[0],
               color=SleepSimPlotStyle.COLORS['complete_pooling'],
               linestyle='--', label='Complete pooling')

    ax.set_xticks(x)
    ax.set_xticklabels(comparison['id'].astype(str), rotation=90)
    SleepSimPlotStyle.format_axis(
        ax, title='Shrinkage of participant slopes',
        xlabel='Participant', ylabel='Slope (ms/day)', legend=True
    )
    fig.tight_layout()
    return fig
