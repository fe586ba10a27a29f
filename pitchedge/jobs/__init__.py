from . import build_predictions, evaluate_results  # noqa: F401

__all__ = [
    "build_predictions",
    "evaluate_results",
]
