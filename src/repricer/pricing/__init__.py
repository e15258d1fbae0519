from .classifier import classify, is_excluded, projected_margin
from .model import PriceQuote, price, round_money
from .tags import TagOps, join_tags, reconcile_tags, split_tags

__all__ = [
    "classify",
    "is_excluded",
    "projected_margin",
    "PriceQuote",
    "price",
    "round_money",
    "TagOps",
    "join_tags",
    "reconcile_tags",
    "split_tags",
]
