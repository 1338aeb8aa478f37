from .cutoffs import CutoffSnapshot, list_cutoffs, load_cutoff_snapshot, upsert_cutoff
from .evaluator import LevelMetrics, LevelQualifier, Verdict, evaluate_cutoff, metrics_from_rows
from .messages import dismiss_message, list_messages, mark_message_read
