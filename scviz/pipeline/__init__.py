"""
Plot-independent data pipeline: observation selection, table extraction,
summaries, binning, colour assignment and faceting.
"""
