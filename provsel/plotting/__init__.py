"""Plotting helpers (matplotlib is imported on first use)."""


def plot_null_distribution(*args, **kwargs):
    from provsel.plotting.null import plot_null_distribution as _plot

    return _plot(*args, **kwargs)


def plot_accession_intervals(*args, **kwargs):
    from provsel.plotting.null import plot_accession_intervals as _plot

    return _plot(*args, **kwargs)


def plot_sweep(*args, **kwargs):
    from provsel.plotting.null import plot_sweep as _plot

    return _plot(*args, **kwargs)


__all__ = ["plot_accession_intervals", "plot_null_distribution", "plot_sweep"]
