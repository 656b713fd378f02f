"""Strategic-value heatmap and move history for the tic-tac-toe workflow demo."""

__version__ = "1.0.0"
